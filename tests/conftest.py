"""Shared fixtures: fake model and compiler, a scratch root and an app client."""

from __future__ import annotations

import asyncio
import os
import tempfile
from pathlib import Path

# Settings are read at import time, so the environment must be ready first.
os.environ.setdefault("MATHLAB_ALLOWED_ORIGINS", "http://localhost:3000")
os.environ.setdefault("MATHLAB_SCRATCH_ROOT", tempfile.mkdtemp(prefix="mathlab-scratch-"))
os.environ.setdefault("MATHLAB_LOG_DIR", tempfile.mkdtemp(prefix="mathlab-logs-"))
os.environ.setdefault("MATHLAB_AUTH_ENABLED", "false")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from mathlab.ai.providers.base import AIModel, GenerationSettings, PromptPart, SimpleModelResponse  # noqa: E402
from mathlab.api.deps import get_pipeline  # noqa: E402
from mathlab.latex.compiler import CompilationResult, LatexCompiler  # noqa: E402
from mathlab.latex.pipeline import JobPipeline, PipelineConfig  # noqa: E402
from mathlab.main import app  # noqa: E402

PDF_BYTES = b"%PDF-1.4\n% fake\n%%EOF\n"
SAMPLE_DOCUMENT = "\\documentclass{article}\n\\begin{document}\nProblem 1. $x^2 = 4$ so $x = \\pm 2$.\n\\end{document}"
FAILED_LOG = "This is pdfTeX\n! Undefined control sequence.\nl.3 \\foo\n"


class FakeModel(AIModel):
  """Model stub that records every call and returns a canned response."""

  def __init__(self, content: str | None = SAMPLE_DOCUMENT, *, block_reason: str | None = None, error: Exception | None = None) -> None:
    self.name = "fake-model"
    self.content = content
    self.block_reason = block_reason
    self.error = error
    self.calls: list[tuple[list[PromptPart], GenerationSettings]] = []

  async def generate(self, parts: list[PromptPart], settings: GenerationSettings) -> SimpleModelResponse:
    self.calls.append((parts, settings))
    if self.error is not None:
      raise self.error
    return SimpleModelResponse(content=self.content, block_reason=self.block_reason)


class FakeCompiler(LatexCompiler):
  """Compiler stub that writes a log and, unless told otherwise, a PDF."""

  def __init__(self, *, produce_pdf: bool = True, log_text: str = "This is pdfTeX\nOutput written.\n", write_log: bool = True, delay: float = 0.0) -> None:
    self.produce_pdf = produce_pdf
    self.log_text = log_text
    self.write_log = write_log
    self.delay = delay
    self.sources: list[str] = []
    self.directories: list[Path] = []

  async def compile(self, source_path: Path, output_dir: Path) -> CompilationResult:
    self.sources.append(source_path.read_text(encoding="utf-8"))
    self.directories.append(output_dir)
    if self.delay:
      await asyncio.sleep(self.delay)

    log_path = output_dir / f"{source_path.stem}.log"
    if self.write_log:
      log_path.write_text(self.log_text, encoding="latin-1")
    pdf_path = output_dir / f"{source_path.stem}.pdf"
    if self.produce_pdf:
      pdf_path.write_bytes(PDF_BYTES)
      return CompilationResult(success=True, log_path=log_path, pdf_path=pdf_path, return_code=0)
    return CompilationResult(success=False, log_path=log_path, return_code=12, errors=["Undefined control sequence."])


SOLVE_SETTINGS = GenerationSettings(temperature=0.4, top_k=32, top_p=1.0, max_output_tokens=8192)
RECOLOR_SETTINGS = GenerationSettings(temperature=0.2, top_k=32, top_p=1.0, max_output_tokens=8192)


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def scratch_root(tmp_path: Path) -> Path:
  root = tmp_path / "latex_jobs"
  root.mkdir()
  return root


@pytest.fixture
def fake_model() -> FakeModel:
  return FakeModel()


@pytest.fixture
def fake_compiler() -> FakeCompiler:
  return FakeCompiler()


@pytest.fixture
def make_pipeline(scratch_root: Path):
  def _make(model: AIModel | None = None, compiler: LatexCompiler | None = None, *, max_upload_bytes: int | None = 10 * 1024 * 1024) -> JobPipeline:
    config = PipelineConfig(scratch_root=scratch_root, solve_generation=SOLVE_SETTINGS, recolor_generation=RECOLOR_SETTINGS, max_upload_bytes=max_upload_bytes)
    return JobPipeline(model or FakeModel(), compiler or FakeCompiler(), config)

  return _make


@pytest.fixture
def pipeline(make_pipeline, fake_model: FakeModel, fake_compiler: FakeCompiler) -> JobPipeline:
  return make_pipeline(fake_model, fake_compiler)


@pytest.fixture
async def async_client(pipeline: JobPipeline):
  app.dependency_overrides[get_pipeline] = lambda: pipeline
  async with AsyncClient(transport=ASGITransport(app=app, raise_app_exceptions=False), base_url="http://test") as client:
    yield client
  app.dependency_overrides.clear()
