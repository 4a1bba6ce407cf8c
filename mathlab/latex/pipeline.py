"""Job pipeline: provider call, source cleanup, compile, collect."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from mathlab.ai.errors import is_safety_error, is_timeout_error
from mathlab.ai.prompts import build_recolor_prompt, build_solve_parts
from mathlab.ai.providers.base import AIModel, Attachment, GenerationSettings, PromptPart
from mathlab.latex.compiler import LatexCompiler
from mathlab.latex.errors import CompileFailure, InvalidRequest, PipelineError, ProviderFailure, ProviderSafetyBlock, UnsupportedMediaType
from mathlab.latex.sources import ensure_package, parse_hex_color, strip_code_fences
from mathlab.latex.workspace import job_workspace

logger = logging.getLogger(__name__)

ALLOWED_MEDIA_TYPES: Final[frozenset[str]] = frozenset({"image/png", "image/jpeg", "image/webp", "image/heic", "image/heif", "application/pdf"})
COLOR_PACKAGE: Final[str] = "xcolor"
_UNREADABLE_LOG = "Could not read log file."


@dataclass(frozen=True)
class JobKind:
  """Naming for one call site's scratch directory and files."""

  prefix: str
  stem: str


SOLVE_JOB = JobKind(prefix="lab_job", stem="solution")
RECOLOR_JOB = JobKind(prefix="studio_job", stem="recolored_solution")
COMPILE_JOB = JobKind(prefix="latex_job", stem="document")


@dataclass(frozen=True)
class JobResult:
  """Final source plus the compiled PDF for one job."""

  job_id: str
  latex: str
  pdf_bytes: bytes

  @property
  def pdf_base64(self) -> str:
    return base64.b64encode(self.pdf_bytes).decode("ascii")


@dataclass(frozen=True)
class PipelineConfig:
  """Startup-time configuration handed to the pipeline."""

  scratch_root: Path
  solve_generation: GenerationSettings
  recolor_generation: GenerationSettings
  max_upload_bytes: int | None = None


class JobPipeline:
  """Run solve, recolor and plain compile jobs end to end.

  Every job gets its own scratch directory that is removed when the job
  finishes, whatever the outcome. No step is retried.
  """

  def __init__(self, model: AIModel, compiler: LatexCompiler, config: PipelineConfig) -> None:
    self._model = model
    self._compiler = compiler
    self._config = config

  @property
  def config(self) -> PipelineConfig:
    return self._config

  async def solve(self, data: bytes | None, media_type: str | None, template: str | None = None) -> JobResult:
    """Turn an uploaded image/PDF of problems into a compiled LaTeX solution."""
    # Validate the upload before any provider or filesystem work.
    if data is None:
      raise InvalidRequest("No file uploaded.")
    # Content types may carry parameters such as "; charset=binary".
    normalized_type = (media_type or "").split(";", 1)[0].strip().lower()
    if normalized_type not in ALLOWED_MEDIA_TYPES:
      logger.warning("Unsupported file type: %s", media_type)
      raise UnsupportedMediaType(media_type)
    if not data:
      raise InvalidRequest("Uploaded file is empty.")
    self._check_upload_size(len(data))

    # A whitespace-only template is treated as no template.
    has_template = bool(template and template.strip())
    logger.info("Solve job: %d bytes of %s, template=%s", len(data), normalized_type, has_template)
    parts = build_solve_parts(Attachment(data=data, mime_type=normalized_type), template if has_template else None)
    generated = await self._generate(parts, self._config.solve_generation)
    latex = strip_code_fences(generated)
    return await self._compile_source(latex, SOLVE_JOB)

  async def recolor(self, latex_input: str | None, target_color: str | None) -> JobResult:
    """Color the solution parts of a LaTeX document and compile it."""
    # Reject missing inputs and malformed colors before calling the provider.
    if not isinstance(latex_input, str) or not latex_input.strip():
      raise InvalidRequest("LaTeX input string is required.")
    if not isinstance(target_color, str) or not target_color.strip():
      raise InvalidRequest("Target color hex string is required.")
    try:
      rgb = parse_hex_color(target_color)
    except ValueError as exc:
      raise InvalidRequest("Invalid target color hex format.") from exc

    logger.info("Recolor job: %d chars, color=%s rgb=%s", len(latex_input), target_color, rgb)
    prompt = build_recolor_prompt(latex_input, rgb)
    generated = await self._generate([prompt], self._config.recolor_generation)
    latex = strip_code_fences(generated)
    # Compile anyway; the log will explain a fragment that cannot build.
    if "\\documentclass" not in latex:
      logger.warning("Recolor response does not look like a full LaTeX document: %.100s", latex)
    # \textcolor needs xcolor even when the model forgot to load it.
    latex = ensure_package(latex, COLOR_PACKAGE)
    return await self._compile_source(latex, RECOLOR_JOB)

  async def compile_latex(self, latex_code: str | None) -> JobResult:
    """Compile caller-supplied LaTeX without involving the provider."""
    if not isinstance(latex_code, str) or not latex_code.strip():
      raise InvalidRequest("Missing 'latexCode' in request body.")
    return await self._compile_source(latex_code, COMPILE_JOB)

  def _check_upload_size(self, size: int) -> None:
    limit = self._config.max_upload_bytes
    if limit is not None and size > limit:
      raise InvalidRequest(f"File exceeds {limit} byte limit.")

  async def _generate(self, parts: list[PromptPart], settings: GenerationSettings) -> str:
    """Call the provider once and return its text or raise a provider failure."""
    logger.info("Sending request to %s", self._model.name)
    try:
      response = await self._model.generate(parts, settings)
    except PipelineError:
      raise
    except Exception as exc:  # noqa: BLE001
      # Classify the provider error so refusals surface as client errors.
      if is_safety_error(exc):
        logger.warning("Provider refused request on safety grounds: %s", exc)
        raise ProviderSafetyBlock(error=str(exc)) from exc
      if is_timeout_error(exc):
        logger.error("Provider call timed out: %s", exc)
        raise ProviderFailure(error="The model request timed out.") from exc
      logger.error("Provider call failed: %s", exc, exc_info=True)
      raise ProviderFailure(error=str(exc)) from exc

    # A block signal in the response wins over any partial text.
    if response.block_reason is not None:
      raise ProviderSafetyBlock(error=f"Blocked by provider: {response.block_reason}")
    if not response.content or not response.content.strip():
      logger.error("Provider returned no usable response.")
      raise ProviderFailure(error="The model did not return a response.")
    if response.usage:
      logger.info("Provider usage %s", response.usage)
    return response.content

  async def _compile_source(self, latex: str, kind: JobKind) -> JobResult:
    """Write, compile and collect inside a scoped job directory."""
    # The directory is removed when this block exits, whatever the outcome.
    async with job_workspace(self._config.scratch_root, prefix=kind.prefix, stem=kind.stem) as workspace:
      await workspace.materialize(latex)
      result = await self._compiler.compile(workspace.source_path, workspace.directory)

      # Success is judged by the artifact on disk; a killed run never counts.
      if result.timed_out or not await workspace.has_artifact():
        log_text = await workspace.read_log()
        error = "; ".join(result.errors) if result.errors else "PDF file was not generated"
        logger.error("LaTeX compilation failed for job %s: %s", workspace.job_id, error)
        if log_text:
          logger.debug("LaTeX log for job %s:\n%s", workspace.job_id, log_text)
        raise CompileFailure(error=error, latex_log=log_text if log_text is not None else _UNREADABLE_LOG)

      # TeX often exits non-zero on recoverable errors while still writing a PDF.
      if result.return_code not in (0, None):
        logger.warning("Compiler exited with %s for job %s but produced a PDF", result.return_code, workspace.job_id)
      pdf_bytes = await workspace.read_artifact()
      logger.info("PDF compiled for job %s (%d bytes)", workspace.job_id, len(pdf_bytes))
      return JobResult(job_id=workspace.job_id, latex=latex, pdf_bytes=pdf_bytes)
