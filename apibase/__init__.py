"""
Backend scaffold package.

One FastAPI handler graph served either by a long-running uvicorn process or
by per-invocation AWS Lambda function URL events.
"""
