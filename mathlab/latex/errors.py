"""Failure taxonomy for compilation jobs."""

from __future__ import annotations

from fastapi import status


class PipelineError(Exception):
  """Terminal failure of a job, rendered as one JSON response."""

  status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
  default_message: str = "Error processing request."

  def __init__(self, message: str | None = None, *, error: str | None = None) -> None:
    self.message = message or self.default_message
    self.error = error
    super().__init__(self.message if error is None else f"{self.message} {error}")

  def to_payload(self) -> dict[str, str]:
    """Return the client-facing body fields for this failure."""
    payload = {"message": self.message}
    if self.error:
      payload["error"] = self.error
    return payload


class InvalidRequest(PipelineError):
  """Missing or malformed required input."""

  status_code = status.HTTP_400_BAD_REQUEST
  default_message = "Invalid request."


class UnsupportedMediaType(PipelineError):
  """Upload media type is not on the allow-list."""

  status_code = status.HTTP_400_BAD_REQUEST

  def __init__(self, media_type: str | None) -> None:
    self.media_type = media_type
    super().__init__(f"Unsupported file type: {media_type}. Please upload an image (PNG, JPEG, WEBP, HEIC, HEIF) or PDF.")


class ProviderSafetyBlock(PipelineError):
  """The provider declined the request under its content-safety policy."""

  status_code = status.HTTP_400_BAD_REQUEST
  default_message = "Request blocked due to safety settings."


class ProviderFailure(PipelineError):
  """The provider call errored or returned nothing usable."""

  default_message = "Error processing request."


class CompileFailure(PipelineError):
  """The compiler finished without producing an artifact."""

  default_message = "Failed to compile LaTeX code."

  def __init__(self, message: str | None = None, *, error: str | None = None, latex_log: str | None = None) -> None:
    super().__init__(message, error=error)
    self.latex_log = latex_log

  def to_payload(self) -> dict[str, str]:
    payload = super().to_payload()
    if self.latex_log is not None:
      payload["latexLog"] = self.latex_log
    return payload


class InternalIOFailure(PipelineError):
  """Scratch directory create, write or read failed."""

  default_message = "Failed to prepare the compilation workspace."
