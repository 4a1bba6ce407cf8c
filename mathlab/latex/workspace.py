"""Per-job scratch directories."""

from __future__ import annotations

import logging
import shutil
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from starlette.concurrency import run_in_threadpool

from mathlab.latex.errors import InternalIOFailure
from mathlab.utils.ids import generate_job_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobWorkspace:
  """Paths for one job; the directory name embeds a fresh UUID."""

  job_id: str
  directory: Path
  source_path: Path
  pdf_path: Path
  log_path: Path

  @classmethod
  def allocate(cls, scratch_root: Path, *, prefix: str, stem: str) -> JobWorkspace:
    """Build the path set for a new job without touching the filesystem."""
    job_id = generate_job_id()
    directory = scratch_root / f"{prefix}_{job_id}"
    return cls(job_id=job_id, directory=directory, source_path=directory / f"{stem}.tex", pdf_path=directory / f"{stem}.pdf", log_path=directory / f"{stem}.log")

  async def materialize(self, source: str) -> None:
    """Create the directory and write the source file."""
    try:
      await run_in_threadpool(self.directory.mkdir, parents=True, exist_ok=False)
      await run_in_threadpool(self.source_path.write_text, source, encoding="utf-8")
    except OSError as exc:
      logger.error("Failed to materialize job %s at %s", self.job_id, self.directory, exc_info=True)
      raise InternalIOFailure(error=str(exc)) from exc
    logger.debug("Wrote %s (%d chars)", self.source_path, len(source))

  async def has_artifact(self) -> bool:
    """Return True when the compiled PDF exists."""
    return await run_in_threadpool(self.pdf_path.is_file)

  async def read_artifact(self) -> bytes:
    """Read the compiled PDF into memory."""
    try:
      return await run_in_threadpool(self.pdf_path.read_bytes)
    except OSError as exc:
      logger.error("Failed to read artifact for job %s", self.job_id, exc_info=True)
      raise InternalIOFailure("Failed to read the compiled PDF.", error=str(exc)) from exc

  async def read_log(self) -> str | None:
    """Return the compiler log, or None when it cannot be read."""
    try:
      # TeX writes logs in latin-1.
      return await run_in_threadpool(self.log_path.read_text, encoding="latin-1")
    except OSError:
      logger.warning("Could not read log file %s", self.log_path)
      return None

  async def cleanup(self) -> None:
    """Remove the job directory; safe to call repeatedly."""
    try:
      await run_in_threadpool(shutil.rmtree, self.directory)
    except FileNotFoundError:
      return
    except OSError:
      # Removal problems must never replace the job's result.
      logger.error("Error cleaning up job folder %s", self.directory, exc_info=True)
      return
    logger.info("Cleaned up job folder %s", self.directory)


@asynccontextmanager
async def job_workspace(scratch_root: Path, *, prefix: str, stem: str) -> AsyncIterator[JobWorkspace]:
  """Yield a fresh workspace and remove its directory on every exit path."""
  workspace = JobWorkspace.allocate(scratch_root, prefix=prefix, stem=stem)
  try:
    yield workspace
  finally:
    await workspace.cleanup()
