"""Shared error classification helpers for AI provider handling."""

from __future__ import annotations

import re
from typing import Iterable

# Only explicit refusal signals count; request fields such as "safety_settings" do not.
_SAFETY_PATTERNS: tuple[re.Pattern[str], ...] = (
  re.compile(r"blocked due to (?:safety|prohibited[_ ]content|blocklist)", re.IGNORECASE),
  re.compile(r"(?:block|finish)[_ ]?reason\W+(?:safety|prohibited_content|blocklist|spii)\b", re.IGNORECASE),
)

_TIMEOUT_HINTS: tuple[str, ...] = (
  "timeout",
  "timed out",
  "deadline exceeded",
)


def _match_hint(message: str, hints: Iterable[str]) -> bool:
  """Return True when any hint appears in the message."""
  return any(hint in message for hint in hints)


def is_safety_error(exc: BaseException) -> bool:
  """Return True when a provider exception reports a content-safety refusal."""
  message = str(exc)
  return any(pattern.search(message) for pattern in _SAFETY_PATTERNS)


def is_timeout_error(exc: BaseException) -> bool:
  """Return True when a provider exception looks like a timeout."""
  # Transport timeouts arrive as TimeoutError; SDK errors only carry text.
  if isinstance(exc, TimeoutError):
    return True
  return _match_hint(str(exc).lower(), _TIMEOUT_HINTS)
