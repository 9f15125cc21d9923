import json
import unittest
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

from apibase.config import load_settings
from apibase.container import build_container
from apibase.db import InMemoryDocumentStore
from apibase.router import Router
from apibase.runtime import Mode, Runtime, RuntimeState, detect_mode
from apibase.server import with_cors

FUNCTION_ENV = {"AWS_LAMBDA_FUNCTION_NAME": "apibase-fn"}


def event(method, path, *, body=None, query=""):
    payload = {
        "version": "2.0",
        "rawPath": path,
        "rawQueryString": query,
        "headers": {"Content-Type": "application/json"},
        "requestContext": {"http": {"method": method, "path": path}},
        "isBase64Encoded": False,
    }
    if body is not None:
        payload["body"] = json.dumps(body)
    return payload


class DetectModeTests(unittest.TestCase):
    def test_presence_selects_function_mode(self):
        self.assertEqual(detect_mode(FUNCTION_ENV), Mode.FUNCTION)
        self.assertEqual(detect_mode({"AWS_LAMBDA_FUNCTION_NAME": ""}), Mode.FUNCTION)

    def test_default_is_server_mode(self):
        self.assertEqual(detect_mode({"PORT": "9000"}), Mode.SERVER)


class RuntimeTests(unittest.TestCase):
    def setUp(self):
        self.settings = load_settings(_env_file=None)
        self.container = build_container(self.settings, store=InMemoryDocumentStore())
        self.factory = MagicMock(return_value=self.container)

    def _function_runtime(self):
        runtime = Runtime(self.settings, environ=FUNCTION_ENV, container_factory=self.factory)
        runtime.start()
        return runtime

    def test_state_transitions(self):
        runtime = Runtime(self.settings, environ=FUNCTION_ENV, container_factory=self.factory)
        self.assertEqual(runtime.state, RuntimeState.UNINITIALIZED)
        self.assertEqual(runtime.detect(), Mode.FUNCTION)
        self.assertEqual(runtime.state, RuntimeState.MODE_DETECTED)
        with self.assertRaises(RuntimeError):
            runtime.detect()

        runtime.start()
        self.assertEqual(runtime.state, RuntimeState.RUNNING)
        self.factory.assert_called_once_with(self.settings)
        with self.assertRaises(RuntimeError):
            runtime.start()

    def test_server_mode_serves_router(self):
        server = MagicMock()
        runtime = Runtime(
            self.settings, environ={}, container_factory=self.factory, server=server
        )
        runtime.start()
        self.assertEqual(runtime.mode, Mode.SERVER)
        server.assert_called_once()
        router, settings = server.call_args.args
        self.assertIsInstance(router, Router)
        self.assertIs(router.container, self.container)
        self.assertIs(settings, self.settings)

    def test_function_mode_returns_without_serving(self):
        server = MagicMock()
        runtime = Runtime(
            self.settings, environ=FUNCTION_ENV, container_factory=self.factory, server=server
        )
        runtime.start()
        server.assert_not_called()

    def test_invoke_requires_function_mode(self):
        runtime = Runtime(self.settings, environ={}, container_factory=self.factory)
        with self.assertRaises(RuntimeError):
            runtime.invoke(event("GET", "/api/health"))

    def test_invoke_round_trip(self):
        runtime = self._function_runtime()
        created = runtime.invoke(event("POST", "/api/examples", body={"name": "lambda"}))
        self.assertEqual(created["statusCode"], 201)
        self.assertEqual(created["headers"]["content-type"], "application/json")
        example_id = json.loads(created["body"])["id"]

        fetched = runtime.invoke(event("GET", f"/api/examples/{example_id}"))
        self.assertEqual(fetched["statusCode"], 200)
        self.assertEqual(json.loads(fetched["body"])["name"], "lambda")

        listed = runtime.invoke(event("GET", "/api/examples", query="limit=1"))
        self.assertEqual(len(json.loads(listed["body"])["items"]), 1)

    def test_transport_parity(self):
        runtime = self._function_runtime()
        client = TestClient(with_cors(Router(self.container).app))
        cases = [
            ("GET", "/api/health", None),
            ("GET", "/api/examples", None),
            ("POST", "/api/examples", {"name": "parity"}),
            ("POST", "/api/examples", {"description": "missing name"}),
            ("GET", "/api/examples/5f0000000000000000000000", None),
            ("DELETE", "/api/examples/unknown", None),
            ("GET", "/api/not-a-route", None),
        ]
        for method, path, body in cases:
            reply = runtime.invoke(event(method, path, body=body))
            response = client.request(method, path, json=body)
            self.assertEqual(reply["statusCode"], response.status_code, (method, path))

    def test_non_latin_path_parity(self):
        runtime = self._function_runtime()
        client = TestClient(with_cors(Router(self.container).app))
        for path in ("/api/examples/中", "/api/examples/%E4%B8%AD", "/api/zé"):
            reply = runtime.invoke(event("GET", path))
            response = client.get(path)
            self.assertEqual(reply["statusCode"], 404, path)
            self.assertEqual(reply["statusCode"], response.status_code, path)

    def test_rest_event_gets_rest_reply(self):
        runtime = self._function_runtime()
        reply = runtime.invoke(
            {
                "resource": "/{proxy+}",
                "httpMethod": "GET",
                "path": "/api/health",
                "headers": {"Host": "api.example.com"},
                "queryStringParameters": None,
                "body": None,
                "isBase64Encoded": False,
                "requestContext": {"identity": {"sourceIp": "198.51.100.1"}},
            }
        )
        self.assertEqual(reply["statusCode"], 200)
        self.assertIn("multiValueHeaders", reply)
        self.assertEqual(json.loads(reply["body"])["status"], "ok")

    def test_malformed_event_then_recovery(self):
        runtime = self._function_runtime()
        bad = event("POST", "/api/examples")
        bad.update(body="%%%", isBase64Encoded=True)
        reply = runtime.invoke(bad)
        self.assertEqual(reply["statusCode"], 500)
        self.assertEqual(json.loads(reply["body"])["error"], "MALFORMED_EVENT")

        ok = runtime.invoke(event("GET", "/api/health"))
        self.assertEqual(ok["statusCode"], 200)

    def test_handler_fault_is_isolated(self):
        runtime = self._function_runtime()
        with patch.object(
            self.container.example_service, "list", side_effect=RuntimeError("boom")
        ):
            reply = runtime.invoke(event("GET", "/api/examples"))
        self.assertEqual(reply["statusCode"], 500)
        self.assertEqual(json.loads(reply["body"])["error"], "HANDLER_PANIC")
        self.assertIn("boom", json.loads(reply["body"])["detail"])

        ok = runtime.invoke(event("GET", "/api/examples"))
        self.assertEqual(ok["statusCode"], 200)

    def test_router_is_rebuilt_per_invocation(self):
        runtime = self._function_runtime()
        with patch("apibase.runtime.Router", wraps=Router) as router_cls:
            runtime.invoke(event("GET", "/api/health"))
            runtime.invoke(event("GET", "/api/health"))
        self.assertEqual(router_cls.call_count, 2)
        self.factory.assert_called_once()


if __name__ == "__main__":
    unittest.main()
