"""Prompt construction for the solve and recolor call sites."""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path

from mathlab.ai.providers.base import Attachment, PromptPart
from mathlab.latex.sources import RGBTriple, format_rgb_triple

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
_PLACEHOLDER_RE = re.compile(r"\{\{([A-Z_]+)\}\}")


@lru_cache(maxsize=8)
def load_template(name: str) -> str:
  """Read a packaged prompt template by file stem."""
  try:
    return (TEMPLATES_DIR / f"{name}.md").read_text(encoding="utf-8")
  except (FileNotFoundError, PermissionError, UnicodeDecodeError) as exc:
    raise RuntimeError(f"Failed to load prompt '{name}': {exc}") from exc


def _replace_placeholders(template: str, values: dict[str, str]) -> str:
  """Substitute {{PLACEHOLDER}} markers in one pass so inserted text is never re-expanded."""
  return _PLACEHOLDER_RE.sub(lambda match: values.get(match.group(1), match.group(0)), template)


def build_solve_parts(attachment: Attachment, template: str | None) -> list[PromptPart]:
  """Instructions, then the upload, then either the template or the self-contained rule."""
  parts: list[PromptPart] = [load_template("solve").rstrip(), attachment]
  if template and template.strip():
    parts.append(_replace_placeholders(load_template("solve_with_template"), {"TEMPLATE": template}))
  else:
    parts.append(load_template("solve_standalone"))
  return parts


def build_recolor_prompt(latex_input: str, rgb: RGBTriple) -> str:
  """Ask for solutions wrapped in \\textcolor with the given triple."""
  return _replace_placeholders(load_template("recolor"), {"LATEX_INPUT": latex_input, "RGB": format_rgb_triple(rgb)}).strip()
