import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from apibase.config import load_settings
from apibase.container import build_container
from apibase.db import InMemoryDocumentStore
from apibase.router import Router
from apibase.server import ALLOWED_HEADERS, ALLOWED_METHODS, with_cors


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        self.container = build_container(
            load_settings(_env_file=None), store=InMemoryDocumentStore()
        )
        self.client = TestClient(
            with_cors(Router(self.container).app), raise_server_exceptions=False
        )

    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ok")

    def test_example_crud(self):
        created = self.client.post(
            "/api/examples", json={"name": "first", "description": "one"}
        )
        self.assertEqual(created.status_code, 201)
        example_id = created.json()["id"]

        fetched = self.client.get(f"/api/examples/{example_id}")
        self.assertEqual(fetched.status_code, 200)
        self.assertEqual(fetched.json()["name"], "first")

        replaced = self.client.put(f"/api/examples/{example_id}", json={"name": "second"})
        self.assertEqual(replaced.status_code, 200)
        self.assertEqual(replaced.json()["name"], "second")
        self.assertEqual(replaced.json()["description"], "")

        patched = self.client.patch(
            f"/api/examples/{example_id}", json={"description": "patched"}
        )
        self.assertEqual(patched.status_code, 200)
        self.assertEqual(patched.json()["name"], "second")
        self.assertEqual(patched.json()["description"], "patched")

        listed = self.client.get("/api/examples")
        self.assertEqual([item["id"] for item in listed.json()["items"]], [example_id])

        deleted = self.client.delete(f"/api/examples/{example_id}")
        self.assertEqual(deleted.status_code, 204)
        self.assertEqual(self.client.get(f"/api/examples/{example_id}").status_code, 404)
        self.assertEqual(self.client.delete(f"/api/examples/{example_id}").status_code, 404)

    def test_example_validation(self):
        response = self.client.post("/api/examples", json={"description": "no name"})
        self.assertEqual(response.status_code, 422)

    def test_otp_issue_and_verify(self):
        issued = self.client.post(
            "/api/otp", json={"user_phone_number": "+15550100", "user_id": "user-1"}
        )
        self.assertEqual(issued.status_code, 201)
        payload = issued.json()
        self.assertEqual(payload["status"], "PENDING")
        self.assertNotIn("otp", payload)

        code = self.container.otp_repository.get(payload["id"]).otp
        wrong = "".join(str((int(digit) + 1) % 10) for digit in code)

        miss = self.client.post(f"/api/otp/{payload['id']}/verify", json={"code": wrong})
        self.assertEqual(miss.status_code, 200)
        self.assertFalse(miss.json()["verified"])
        self.assertEqual(miss.json()["otp"]["retry_attempts"], 1)

        hit = self.client.post(f"/api/otp/{payload['id']}/verify", json={"code": code})
        self.assertTrue(hit.json()["verified"])
        self.assertEqual(hit.json()["otp"]["status"], "VERIFIED")
        self.assertEqual(hit.json()["otp"]["valid_attempts"], 1)

        again = self.client.post(f"/api/otp/{payload['id']}/verify", json={"code": code})
        self.assertEqual(again.status_code, 409)

    def test_otp_unknown_id(self):
        self.assertEqual(self.client.get("/api/otp/missing").status_code, 404)
        response = self.client.post("/api/otp/missing/verify", json={"code": "123456"})
        self.assertEqual(response.status_code, 404)

    def test_preflight_on_any_path(self):
        for path in ("/api/examples", "/api/otp/123/verify", "/no/such/path"):
            for method in ALLOWED_METHODS:
                response = self.client.options(
                    path,
                    headers={
                        "Origin": "https://app.example.com",
                        "Access-Control-Request-Method": method,
                        "Access-Control-Request-Headers": "Content-Type, Authorization",
                    },
                )
                self.assertEqual(response.status_code, 200, (path, method))
                self.assertEqual(response.headers["access-control-allow-origin"], "*")
                allowed_methods = response.headers["access-control-allow-methods"]
                for expected in ALLOWED_METHODS:
                    self.assertIn(expected, allowed_methods)
                allowed_headers = response.headers["access-control-allow-headers"].lower()
                for expected in ALLOWED_HEADERS:
                    self.assertIn(expected.lower(), allowed_headers)

    def test_fault_does_not_affect_next_request(self):
        with patch.object(
            self.container.example_service, "list", side_effect=RuntimeError("boom")
        ):
            failed = self.client.get("/api/examples")
        self.assertEqual(failed.status_code, 500)

        ok = self.client.get("/api/examples")
        self.assertEqual(ok.status_code, 200)


if __name__ == "__main__":
    unittest.main()
