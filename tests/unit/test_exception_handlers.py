"""Unit tests for API exception rendering and sanitization behavior."""

from __future__ import annotations

import json

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from mathlab.core.exceptions import _sanitize_validation_errors, global_exception_handler, http_exception_handler, pipeline_exception_handler
from mathlab.latex.errors import CompileFailure, ProviderFailure, ProviderSafetyBlock, UnsupportedMediaType


def _request(request_id: str | None = "req-123") -> Request:
  scope = {"type": "http", "method": "POST", "path": "/latex/generate", "headers": [], "query_string": b"", "state": {}}
  if request_id:
    scope["state"]["request_id"] = request_id
  return Request(scope)


def _body(response) -> dict:
  return json.loads(response.body)


def test_sanitize_validation_errors_removes_input_and_serializes_exception_ctx() -> None:
  """Ensure validation errors stay JSON-serializable and redact raw request payloads."""
  errors = [{"type": "value_error", "loc": ("body", "latexInput"), "msg": "Value error, bad input.", "input": {"latexInput": 5}, "ctx": {"error": ValueError("bad input."), "input": {"latexInput": 5}}}]
  sanitized = _sanitize_validation_errors(errors)
  assert "input" not in sanitized[0]
  assert sanitized[0]["ctx"]["error"] == "ValueError: bad input."
  assert "input" not in sanitized[0]["ctx"]
  assert sanitized[0]["loc"] == ["body", "latexInput"]


@pytest.mark.anyio
async def test_compile_failure_body_carries_log_and_request_id() -> None:
  response = await pipeline_exception_handler(_request(), CompileFailure(error="Undefined control sequence.", latex_log="! Undefined control sequence."))
  assert response.status_code == 500
  assert _body(response) == {"message": "Failed to compile LaTeX code.", "error": "Undefined control sequence.", "latexLog": "! Undefined control sequence.", "requestId": "req-123"}


@pytest.mark.anyio
async def test_safety_block_is_a_client_error() -> None:
  response = await pipeline_exception_handler(_request(), ProviderSafetyBlock(error="Blocked by provider: SAFETY"))
  assert response.status_code == 400
  assert _body(response)["message"] == "Request blocked due to safety settings."


@pytest.mark.anyio
async def test_unsupported_media_message_names_the_type() -> None:
  response = await pipeline_exception_handler(_request(None), UnsupportedMediaType("text/plain"))
  body = _body(response)
  assert response.status_code == 400
  assert body["message"].startswith("Unsupported file type: text/plain.")
  assert "requestId" not in body


@pytest.mark.anyio
async def test_provider_failure_is_generic_server_error() -> None:
  response = await pipeline_exception_handler(_request(), ProviderFailure(error="Gemini generation failed: 503"))
  assert response.status_code == 500
  assert _body(response)["message"] == "Error processing request."


@pytest.mark.anyio
async def test_http_exception_keeps_auth_header() -> None:
  response = await http_exception_handler(_request(), HTTPException(status_code=401, detail="Not authenticated", headers={"WWW-Authenticate": "Bearer"}))
  assert response.status_code == 401
  assert response.headers["www-authenticate"] == "Bearer"
  assert _body(response) == {"message": "Not authenticated", "requestId": "req-123"}


@pytest.mark.anyio
async def test_http_exception_hides_server_error_detail() -> None:
  response = await http_exception_handler(_request(), HTTPException(status_code=503, detail="database password is hunter2"))
  assert _body(response) == {"message": "Internal Server Error", "requestId": "req-123"}


@pytest.mark.anyio
async def test_global_handler_hides_exception_text() -> None:
  response = await global_exception_handler(_request(), RuntimeError("secret path /etc/passwd"))
  assert response.status_code == 500
  assert "secret" not in response.body.decode()
