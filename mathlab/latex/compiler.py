"""
LaTeX compilation.

The pipeline only sees the LatexCompiler interface; LatexmkCompiler shells out
to latexmk (or a compatible binary) with all outputs written to the job
directory.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import shutil
import signal
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

_ERROR_LINE_RE = re.compile(r"^! (.+)$", re.MULTILINE)
_FILE_LINE_ERROR_RE = re.compile(r"^(?:\./)?[^:\n]+\.tex:\d+: (.+)$", re.MULTILINE)
_FATAL_PATTERNS = (r"Undefined control sequence", r"File ended while scanning use of", r"Emergency stop")
_WARNING_PATTERNS = (r"LaTeX Warning: (.+)", r"Package \w+ Warning: (.+)", r"Overfull \\hbox \((.+)\)", r"Underfull \\hbox \((.+)\)")


@dataclass
class CompilationResult:
  """
  Result of one compiler run.

  Attributes:
      success: Whether the expected PDF exists after the run
      pdf_path: Path to the generated PDF (None if missing)
      log_path: Where the compiler log is expected
      return_code: Process exit status (None if the process never ran)
      stdout: Captured standard output
      stderr: Captured standard error
      errors: Parsed LaTeX errors
      warnings: Parsed LaTeX warnings
      timed_out: Whether the run was killed for exceeding the timeout
  """

  success: bool
  log_path: Path
  pdf_path: Path | None = None
  return_code: int | None = None
  stdout: str = ""
  stderr: str = ""
  errors: list[str] = field(default_factory=list)
  warnings: list[str] = field(default_factory=list)
  timed_out: bool = False


def parse_latex_log(log_content: str) -> tuple[list[str], list[str]]:
  """Pull error and warning lines out of a TeX log."""
  # Default TeX error lines start with "! ".
  errors = [match.group(1).strip() for match in _ERROR_LINE_RE.finditer(log_content)]

  # Logs written with -file-line-error report "<file>.tex:<line>: <message>" instead.
  for match in _FILE_LINE_ERROR_RE.finditer(log_content):
    message = match.group(1).strip()
    if message not in errors:
      errors.append(message)

  # Some fatal conditions are reported without either prefix.
  for pattern in _FATAL_PATTERNS:
    match = re.search(rf"({pattern}.*?)$", log_content, re.MULTILINE)
    if match and match.group(1) not in errors:
      errors.append(match.group(1))

  warnings: list[str] = []
  for pattern in _WARNING_PATTERNS:
    for match in re.finditer(pattern, log_content, re.MULTILINE):
      warnings.append(match.group(1).strip())

  return errors, warnings


def _read_log_if_present(log_path: Path) -> str | None:
  if not log_path.is_file():
    return None
  return log_path.read_text(encoding="latin-1")


def _kill_process_group(process: asyncio.subprocess.Process) -> None:
  """Kill the compiler and every TeX process it spawned."""
  try:
    os.killpg(process.pid, signal.SIGKILL)
  except ProcessLookupError:
    # The whole group already exited between the timeout and the kill.
    logger.debug("Process group %s already gone", process.pid)


class LatexCompiler(ABC):
  """Turns a .tex file into a PDF inside an output directory."""

  @abstractmethod
  async def compile(self, source_path: Path, output_dir: Path) -> CompilationResult:
    """Compile source_path, writing every output into output_dir."""


class LatexmkCompiler(LatexCompiler):
  """Run latexmk as a subprocess in non-interactive mode.

  latexmk runs in its own session so a timeout can kill it together with
  the pdflatex children that hold its output pipes.
  """

  def __init__(self, binary: str = "latexmk", *, timeout_seconds: float = 120.0, max_concurrency: int = 4) -> None:
    self.binary = binary
    self.timeout_seconds = timeout_seconds
    # Bound simultaneous TeX processes across all jobs in this process.
    self._slots = asyncio.Semaphore(max_concurrency)

  def is_available(self) -> bool:
    """Return True when the compiler binary resolves on PATH."""
    return shutil.which(self.binary) is not None

  def build_command(self, source_path: Path, output_dir: Path) -> list[str]:
    return [self.binary, "-pdf", "-interaction=nonstopmode", f"-output-directory={output_dir}", str(source_path)]

  async def compile(self, source_path: Path, output_dir: Path) -> CompilationResult:
    log_path = output_dir / f"{source_path.stem}.log"
    pdf_path = output_dir / f"{source_path.stem}.pdf"
    cmd = self.build_command(source_path, output_dir)

    # Wait for a free slot before starting another TeX process.
    async with self._slots:
      logger.info("Compiling %s with %s", source_path, self.binary)
      start_time = time.monotonic()
      try:
        process = await asyncio.create_subprocess_exec(*cmd, cwd=output_dir, stdin=asyncio.subprocess.DEVNULL, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE, start_new_session=True)
      except FileNotFoundError:
        logger.error("LaTeX compiler %r not found on PATH", self.binary)
        return CompilationResult(success=False, log_path=log_path, errors=[f"LaTeX compiler not found: {self.binary}"])

      timed_out = False
      try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(process.communicate(), timeout=self.timeout_seconds)
      except asyncio.TimeoutError:
        timed_out = True
        # Killing only latexmk would leave pdflatex holding the pipes open.
        _kill_process_group(process)
        stdout_bytes, stderr_bytes = await process.communicate()
        logger.error("Compilation of %s exceeded %.0fs; process group killed", source_path, self.timeout_seconds)

      elapsed = time.monotonic() - start_time

    stdout = stdout_bytes.decode("utf-8", errors="replace") if stdout_bytes else ""
    stderr = stderr_bytes.decode("utf-8", errors="replace") if stderr_bytes else ""
    logger.debug("%s stdout:\n%s", self.binary, stdout)
    if stderr:
      logger.warning("%s stderr:\n%s", self.binary, stderr)

    # Inspect the job directory off the event loop.
    errors: list[str] = []
    warnings: list[str] = []
    log_content = await run_in_threadpool(_read_log_if_present, log_path)
    if log_content is not None:
      errors, warnings = parse_latex_log(log_content)

    # A PDF left behind by a killed run may be truncated, so it never counts.
    produced = not timed_out and await run_in_threadpool(pdf_path.is_file)
    if timed_out:
      errors.append(f"Compilation timed out after {self.timeout_seconds:.0f}s")
    elif not produced and not errors:
      errors.append("PDF file was not generated")

    logger.info("Compilation finished for %s rc=%s pdf=%s in %.2fs (%d errors, %d warnings)", source_path, process.returncode, produced, elapsed, len(errors), len(warnings))
    return CompilationResult(
      success=produced,
      log_path=log_path,
      pdf_path=pdf_path if produced else None,
      return_code=process.returncode,
      stdout=stdout,
      stderr=stderr,
      errors=errors,
      warnings=warnings,
      timed_out=timed_out,
    )
