"""Unit tests for environment-driven settings."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from mathlab.config import get_settings
from mathlab.utils.env import load_env_file


@pytest.fixture
def fresh_settings():
  get_settings.cache_clear()
  yield get_settings
  get_settings.cache_clear()


def test_defaults_match_documented_generation_parameters(fresh_settings, monkeypatch) -> None:
  for name in ("MATHLAB_SOLVE_TEMPERATURE", "MATHLAB_RECOLOR_TEMPERATURE", "MATHLAB_TOP_K", "MATHLAB_TOP_P", "MATHLAB_MAX_OUTPUT_TOKENS", "MATHLAB_SAFETY_THRESHOLD", "MATHLAB_COMPILE_TIMEOUT_SECONDS", "MATHLAB_MAX_CONCURRENT_COMPILES"):
    monkeypatch.delenv(name, raising=False)
  settings = fresh_settings()
  assert settings.solve_temperature == 0.4
  assert settings.recolor_temperature == 0.2
  assert settings.top_k == 32
  assert settings.top_p == 1.0
  assert settings.max_output_tokens == 8192
  assert settings.safety_threshold == "BLOCK_MEDIUM_AND_ABOVE"
  assert settings.compile_timeout_seconds == 120
  assert settings.max_concurrent_compiles == 4


def test_allowed_origins_are_split_and_trimmed(fresh_settings, monkeypatch) -> None:
  monkeypatch.setenv("MATHLAB_ALLOWED_ORIGINS", "http://a.test, http://b.test ,")
  assert fresh_settings().allowed_origins == ("http://a.test", "http://b.test")


def test_wildcard_origin_is_rejected(fresh_settings, monkeypatch) -> None:
  monkeypatch.setenv("MATHLAB_ALLOWED_ORIGINS", "*")
  with pytest.raises(ValueError, match="wildcard"):
    fresh_settings()


def test_missing_origins_are_rejected(fresh_settings, monkeypatch) -> None:
  monkeypatch.delenv("MATHLAB_ALLOWED_ORIGINS")
  with pytest.raises(ValueError, match="MATHLAB_ALLOWED_ORIGINS"):
    fresh_settings()


@pytest.mark.parametrize("name", ["MATHLAB_COMPILE_TIMEOUT_SECONDS", "MATHLAB_MAX_CONCURRENT_COMPILES", "MATHLAB_MAX_UPLOAD_BYTES", "MATHLAB_TOP_K"])
def test_non_positive_limits_are_rejected(fresh_settings, monkeypatch, name: str) -> None:
  monkeypatch.setenv(name, "0")
  with pytest.raises(ValueError, match=name):
    fresh_settings()


def test_top_p_is_bounded(fresh_settings, monkeypatch) -> None:
  monkeypatch.setenv("MATHLAB_TOP_P", "1.5")
  with pytest.raises(ValueError, match="MATHLAB_TOP_P"):
    fresh_settings()


def test_unknown_safety_threshold_is_rejected(fresh_settings, monkeypatch) -> None:
  monkeypatch.setenv("MATHLAB_SAFETY_THRESHOLD", "BLOCK_EVERYTHING")
  with pytest.raises(ValueError, match="MATHLAB_SAFETY_THRESHOLD"):
    fresh_settings()


def test_auth_requires_firebase_project(fresh_settings, monkeypatch) -> None:
  monkeypatch.setenv("MATHLAB_AUTH_ENABLED", "true")
  monkeypatch.delenv("FIREBASE_PROJECT_ID", raising=False)
  with pytest.raises(ValueError, match="FIREBASE_PROJECT_ID"):
    fresh_settings()


def test_scratch_root_comes_from_environment(fresh_settings, monkeypatch, tmp_path: Path) -> None:
  monkeypatch.setenv("MATHLAB_SCRATCH_ROOT", str(tmp_path / "jobs"))
  assert fresh_settings().scratch_root == (tmp_path / "jobs").resolve()


def test_load_env_file_does_not_override_process_env(monkeypatch, tmp_path: Path) -> None:
  env_file = tmp_path / ".env"
  env_file.write_text("# comment\nMATHLAB_TEST_KEEP=from-file\nexport MATHLAB_TEST_NEW='quoted value'\nnot a pair\n", encoding="utf-8")
  monkeypatch.setenv("MATHLAB_TEST_KEEP", "from-process")
  monkeypatch.delenv("MATHLAB_TEST_NEW", raising=False)

  loaded = load_env_file(env_file)

  assert loaded == {"MATHLAB_TEST_NEW": "quoted value"}
  assert os.environ["MATHLAB_TEST_KEEP"] == "from-process"
  assert os.environ["MATHLAB_TEST_NEW"] == "quoted value"


def test_load_env_file_missing_path_is_empty(tmp_path: Path) -> None:
  assert load_env_file(tmp_path / "missing.env") == {}
