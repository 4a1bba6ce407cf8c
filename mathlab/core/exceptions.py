import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from mathlab.latex.errors import PipelineError

logger = logging.getLogger("uvicorn.error")


def _coerce_json_safe(value: Any) -> Any:
  """Convert unsupported values into JSON-safe primitives for error responses."""
  # Primitives already encode as-is.
  if value is None or isinstance(value, bool | int | float | str):
    return value
  # Walk mappings so nested validation contexts stay encodable.
  if isinstance(value, dict):
    return {str(key): _coerce_json_safe(item) for key, item in value.items()}
  # Tuples and sets become lists; error locations arrive as tuples.
  if isinstance(value, list | tuple | set):
    return [_coerce_json_safe(item) for item in value]
  # Serialize exception instances explicitly to avoid leaking non-serializable objects.
  if isinstance(value, BaseException):
    error_message = str(value)
    if error_message:
      return f"{type(value).__name__}: {error_message}"
    return type(value).__name__
  # Anything else is reduced to its text.
  return str(value)


def _error_payload(message: str, *, request_id: str | None = None, **extra: Any) -> dict[str, Any]:
  """Build the one JSON body every failure is rendered as."""
  payload: dict[str, Any] = {"message": message}
  # Optional fields are omitted rather than sent as null.
  payload.update({key: value for key, value in extra.items() if value is not None})
  # Attach a request id so support can correlate client reports to server logs.
  if request_id:
    payload["requestId"] = request_id
  return payload


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Return validation errors without raw input payloads."""
  sanitized: list[dict[str, Any]] = []
  # Raw request values never leave the server, not even in logs.
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key != "input"}
    # Pydantic may also copy the input into the error context.
    if "ctx" in scrubbed and isinstance(scrubbed["ctx"], dict):
      scrubbed_ctx = dict(scrubbed["ctx"])
      scrubbed_ctx.pop("input", None)
      scrubbed["ctx"] = scrubbed_ctx

    sanitized.append(_coerce_json_safe(scrubbed))

  return sanitized


async def pipeline_exception_handler(request: Request, exc: PipelineError) -> JSONResponse:
  """Map a job failure to its status code and body."""
  request_id = getattr(request.state, "request_id", None)
  # Server-side failures are errors; rejected input is only a warning.
  if exc.status_code >= 500:
    logger.error("Job failed request_id=%s path=%s error_type=%s error=%s", request_id, request.url.path, type(exc).__name__, exc.error, exc_info=exc.__cause__ is not None)
  else:
    logger.warning("Job rejected request_id=%s path=%s error_type=%s message=%s", request_id, request.url.path, type(exc).__name__, exc.message)
  payload = exc.to_payload()
  message = payload.pop("message")
  return JSONResponse(status_code=exc.status_code, content=_error_payload(message, request_id=request_id, **payload))


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  """Reject malformed bodies as bad requests without echoing their contents."""
  request_id = getattr(request.state, "request_id", None)
  sanitized_errors = _sanitize_validation_errors(list(exc.errors()))
  logger.warning("Request validation failed request_id=%s path=%s method=%s errors=%s", request_id, request.url.path, request.method, sanitized_errors)
  return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_error_payload("Invalid request.", request_id=request_id, detail=sanitized_errors))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Handle HTTPExceptions while keeping 5xx details out of responses."""
  from mathlab.config import get_settings

  request_id = getattr(request.state, "request_id", None)
  if exc.status_code >= 500:
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=_error_payload("Internal Server Error", request_id=request_id))

  # Client errors are logged only when operators opt in.
  if get_settings().log_http_4xx:
    logger.warning("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail)

  # Keep auth headers such as WWW-Authenticate on the response.
  message = exc.detail if isinstance(exc.detail, str) else "Request failed."
  return JSONResponse(status_code=exc.status_code, content=_error_payload(message, request_id=request_id), headers=getattr(exc, "headers", None))


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Catch anything the other handlers did not."""
  request_id = getattr(request.state, "request_id", None)
  logger.error("Global exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=exc)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error", request_id=request_id))
