"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from mathlab.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

_SAFETY_THRESHOLDS = {"BLOCK_LOW_AND_ABOVE", "BLOCK_MEDIUM_AND_ABOVE", "BLOCK_ONLY_HIGH", "BLOCK_NONE", "OFF"}
_DEFAULT_SCRATCH_ROOT = Path(__file__).resolve().parent.parent / "latex_jobs"


@dataclass(frozen=True)
class Settings:
  """Typed settings for the mathlab service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_dir: Path
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  auth_enabled: bool
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None
  gemini_api_key: str | None
  gemini_model: str
  provider_timeout_seconds: int
  solve_temperature: float
  recolor_temperature: float
  top_k: int
  top_p: float
  max_output_tokens: int
  safety_threshold: str
  scratch_root: Path
  latex_compiler: str
  compile_timeout_seconds: int
  max_concurrent_compiles: int
  max_upload_bytes: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("MATHLAB_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("MATHLAB_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("MATHLAB_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _positive_int(name: str, default: str) -> int:
  """Read an integer setting that must be greater than zero."""
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _unit_float(name: str, default: str, *, upper: float) -> float:
  """Read a float setting bounded to [0, upper]."""
  value = float(os.getenv(name, default))
  if value < 0 or value > upper:
    raise ValueError(f"{name} must be between 0 and {upper}.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("MATHLAB_ENV", "development").lower()

  # Toggle verbose diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("MATHLAB_DEBUG"))

  log_max_bytes = _positive_int("MATHLAB_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("MATHLAB_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("MATHLAB_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Allow opt-in logging of 4xx responses for diagnostics.
  log_http_4xx = _parse_bool(os.getenv("MATHLAB_LOG_HTTP_4XX"))

  auth_enabled = _parse_bool(os.getenv("MATHLAB_AUTH_ENABLED"))
  firebase_project_id = _optional_str(os.getenv("FIREBASE_PROJECT_ID"))
  if auth_enabled and not firebase_project_id:
    raise ValueError("FIREBASE_PROJECT_ID must be set when MATHLAB_AUTH_ENABLED is on.")

  safety_threshold = (os.getenv("MATHLAB_SAFETY_THRESHOLD") or "BLOCK_MEDIUM_AND_ABOVE").strip().upper()
  if safety_threshold not in _SAFETY_THRESHOLDS:
    raise ValueError(f"MATHLAB_SAFETY_THRESHOLD must be one of {sorted(_SAFETY_THRESHOLDS)}.")

  scratch_root = Path(os.getenv("MATHLAB_SCRATCH_ROOT") or _DEFAULT_SCRATCH_ROOT).expanduser().resolve()
  log_dir = Path(os.getenv("MATHLAB_LOG_DIR") or Path(__file__).resolve().parent.parent / "logs").expanduser()

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("MATHLAB_ALLOWED_ORIGINS")),
    debug=debug,
    log_dir=log_dir,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=log_http_4xx,
    auth_enabled=auth_enabled,
    firebase_project_id=firebase_project_id,
    firebase_service_account_json_path=_optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH")),
    gemini_api_key=_optional_str(os.getenv("GEMINI_API_KEY")),
    gemini_model=(os.getenv("MATHLAB_GEMINI_MODEL") or "gemini-2.0-flash").strip(),
    provider_timeout_seconds=_positive_int("MATHLAB_PROVIDER_TIMEOUT_SECONDS", "120"),
    solve_temperature=_unit_float("MATHLAB_SOLVE_TEMPERATURE", "0.4", upper=2.0),
    recolor_temperature=_unit_float("MATHLAB_RECOLOR_TEMPERATURE", "0.2", upper=2.0),
    top_k=_positive_int("MATHLAB_TOP_K", "32"),
    top_p=_unit_float("MATHLAB_TOP_P", "1.0", upper=1.0),
    max_output_tokens=_positive_int("MATHLAB_MAX_OUTPUT_TOKENS", "8192"),
    safety_threshold=safety_threshold,
    scratch_root=scratch_root,
    latex_compiler=(os.getenv("MATHLAB_LATEX_COMPILER") or "latexmk").strip(),
    compile_timeout_seconds=_positive_int("MATHLAB_COMPILE_TIMEOUT_SECONDS", "120"),
    max_concurrent_compiles=_positive_int("MATHLAB_MAX_CONCURRENT_COMPILES", "4"),
    max_upload_bytes=_positive_int("MATHLAB_MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)),
  )
