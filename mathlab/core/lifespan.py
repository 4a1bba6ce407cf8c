import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mathlab.ai.providers.base import GenerationSettings
from mathlab.ai.providers.gemini import GeminiProvider
from mathlab.config import Settings
from mathlab.core.firebase import initialize_firebase
from mathlab.core.logging import initialize_logging
from mathlab.latex.compiler import LatexmkCompiler
from mathlab.latex.pipeline import JobPipeline, PipelineConfig


def build_pipeline(settings: Settings) -> JobPipeline:
  """Wire the model, compiler and scratch root into a pipeline."""
  logger = logging.getLogger("mathlab.core.lifespan")
  model = GeminiProvider(api_key=settings.gemini_api_key, timeout_seconds=settings.provider_timeout_seconds).get_model(settings.gemini_model)
  compiler = LatexmkCompiler(settings.latex_compiler, timeout_seconds=settings.compile_timeout_seconds, max_concurrency=settings.max_concurrent_compiles)
  # A missing toolchain only fails compile jobs, so keep serving.
  if not compiler.is_available():
    logger.warning("LaTeX compiler %r not found on PATH; compile jobs will fail.", settings.latex_compiler)

  solve_generation = GenerationSettings(temperature=settings.solve_temperature, top_k=settings.top_k, top_p=settings.top_p, max_output_tokens=settings.max_output_tokens, safety_threshold=settings.safety_threshold)
  recolor_generation = GenerationSettings(temperature=settings.recolor_temperature, top_k=settings.top_k, top_p=settings.top_p, max_output_tokens=settings.max_output_tokens, safety_threshold=settings.safety_threshold)
  config = PipelineConfig(scratch_root=settings.scratch_root, solve_generation=solve_generation, recolor_generation=recolor_generation, max_upload_bytes=settings.max_upload_bytes)
  return JobPipeline(model, compiler, config)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging and the job pipeline before serving requests."""
  from mathlab.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("mathlab.core.lifespan")

  initialize_logging(settings)
  logger.info("Starting mathlab environment=%s", settings.environment)

  try:
    settings.scratch_root.mkdir(parents=True, exist_ok=True)
    app.state.pipeline = build_pipeline(settings)
  except (OSError, ValueError):
    # Fail fast: without a scratch root or model client no job can run.
    logger.error("Pipeline initialization failed; refusing to start the service.", exc_info=True)
    raise

  if settings.auth_enabled:
    initialize_firebase(settings)

  logger.info("Startup complete - scratch root %s, model %s", settings.scratch_root, settings.gemini_model)
  yield
  logger.info("Shutting down.")
