from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr

from mathlab.latex.pipeline import JobResult


class RecolorRequest(BaseModel):
  """Request payload for recoloring the solutions in a LaTeX document."""

  latex_input: StrictStr | None = Field(default=None, alias="latexInput", description="Complete LaTeX document whose solutions should be colored.")
  target_color: StrictStr | None = Field(default=None, alias="targetColor", description="Six-digit hex color, with or without a leading '#'.", examples=["#FF0000"])
  model_config = ConfigDict(populate_by_name=True)


class CompileRequest(BaseModel):
  """Request payload for compiling caller-supplied LaTeX."""

  latex_code: StrictStr | None = Field(default=None, alias="latexCode", description="LaTeX source to compile as-is.")
  model_config = ConfigDict(populate_by_name=True)


class CompiledDocumentResponse(BaseModel):
  """Final LaTeX source and its compiled PDF."""

  message: str
  latex: str
  pdf_base64: str = Field(serialization_alias="pdfBase64", description="Base64-encoded PDF bytes.")
  model_config = ConfigDict(populate_by_name=True)

  @classmethod
  def from_result(cls, message: str, result: JobResult) -> CompiledDocumentResponse:
    return cls(message=message, latex=result.latex, pdf_base64=result.pdf_base64)


class ErrorResponse(BaseModel):
  """Body returned for every failed request."""

  message: str
  error: str | None = None
  latex_log: str | None = Field(default=None, serialization_alias="latexLog")
  request_id: str | None = Field(default=None, serialization_alias="requestId")
  detail: list[dict[str, Any]] | None = None
