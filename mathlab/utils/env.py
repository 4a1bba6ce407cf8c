"""Minimal .env loader so local runs pick up MATHLAB_* settings."""

from __future__ import annotations

import os
from pathlib import Path


def default_env_path() -> Path:
  """Return the .env path at the repository root."""

  return Path(__file__).resolve().parents[2] / ".env"


def _unquote(value: str) -> str:
  """Drop one pair of matching surrounding quotes."""
  if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
    return value[1:-1]
  return value


def load_env_file(path: Path, *, override: bool = False) -> dict[str, str]:
  """Load KEY=VALUE lines into the process environment and return what was applied."""
  applied: dict[str, str] = {}
  if not path.is_file():
    return applied

  for raw_line in path.read_text(encoding="utf-8").splitlines():
    line = raw_line.strip()
    # Skip blanks and comments.
    if not line or line.startswith("#"):
      continue
    if line.startswith("export "):
      line = line[len("export ") :].lstrip()
    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not key:
      continue
    # The real environment wins unless the caller asks otherwise.
    if not override and key in os.environ:
      continue
    os.environ[key] = _unquote(value.strip())
    applied[key] = os.environ[key]

  return applied
