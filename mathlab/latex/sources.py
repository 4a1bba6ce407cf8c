"""Text-level cleanup of generated LaTeX before it is compiled."""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

_FENCED_BLOCK_RE = re.compile(r"```[A-Za-z0-9_+-]*[ \t]*\r?\n?(.*?)\s*```", re.DOTALL)
_OPENING_FENCE_RE = re.compile(r"^```[A-Za-z0-9_+-]*[ \t]*\r?\n?")
_UNCOMMENTED_PREFIX = r"^(?:\\%|[^%\n])*?"
_DOCUMENTCLASS_RE = re.compile(_UNCOMMENTED_PREFIX + r"\\documentclass\s*(?:\[[^\]]*\])?\s*\{[^}]*\}", re.MULTILINE)
_HEX_COLOR_RE = re.compile(r"^#?([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})$")

RGBTriple = tuple[float, float, float]


def strip_code_fences(text: str) -> str:
  """Return the contents of the first fenced block, or the trimmed text when there is none."""
  stripped = text.strip()
  match = _FENCED_BLOCK_RE.search(stripped)
  if match:
    return match.group(1).strip()

  # An unterminated opening fence still gets dropped.
  if stripped.startswith("```"):
    logger.warning("Opening code fence without a closing fence; dropping the fence line only.")
    return _OPENING_FENCE_RE.sub("", stripped, count=1).strip()

  return stripped


def _package_pattern(package: str) -> re.Pattern[str]:
  # Skip declarations that sit behind a comment marker on their line.
  return re.compile(_UNCOMMENTED_PREFIX + r"\\usepackage\s*(?:\[[^\]]*\])?\s*\{[^}]*\b" + re.escape(package) + r"\b[^}]*\}", re.MULTILINE)


def declares_package(source: str, package: str) -> bool:
  """Check whether the source already loads the package."""
  return _package_pattern(package).search(source) is not None


def ensure_package(source: str, package: str) -> str:
  """Insert \\usepackage{package} right after the document class when it is missing."""
  if declares_package(source, package):
    return source

  match = _DOCUMENTCLASS_RE.search(source)
  if match is None:
    logger.warning("No \\documentclass found; cannot add \\usepackage{%s}.", package)
    return source

  insertion = f"\n\\usepackage{{{package}}}"
  logger.info("Added \\usepackage{%s} to LaTeX preamble.", package)
  return source[: match.end()] + insertion + source[match.end() :]


def parse_hex_color(value: str) -> RGBTriple:
  """Convert #RRGGBB into a 0-1 RGB triple rounded to three decimals."""
  match = _HEX_COLOR_RE.match(value.strip())
  if match is None:
    raise ValueError(f"Invalid hex color: {value!r}")

  red, green, blue = (int(component, 16) for component in match.groups())
  return round(red / 255, 3), round(green / 255, 3), round(blue / 255, 3)


def format_rgb_triple(triple: RGBTriple) -> str:
  """Render a triple the way \\textcolor[rgb] expects it, e.g. {1.000, 0.000, 0.000}."""
  return "{" + ", ".join(f"{channel:.3f}" for channel in triple) + "}"
