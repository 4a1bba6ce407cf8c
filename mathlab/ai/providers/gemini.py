"""Gemini provider implementation using the google-genai SDK."""

from __future__ import annotations

import logging
import os
from typing import Any, Final

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from mathlab.ai.providers.base import AIModel, Attachment, GenerationSettings, PromptPart, Provider, SimpleModelResponse

logger = logging.getLogger(__name__)

_BLOCKING_FINISH_REASONS: Final[frozenset[str]] = frozenset({"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII"})


def _enum_name(value: Any) -> str | None:
  if value is None:
    return None
  return getattr(value, "name", None) or str(value)


def _to_part(part: PromptPart) -> types.Part:
  if isinstance(part, Attachment):
    return types.Part.from_bytes(data=part.data, mime_type=part.mime_type)
  return types.Part.from_text(text=part)


def build_generate_config(settings: GenerationSettings) -> types.GenerateContentConfig:
  """Translate provider-neutral settings into a Gemini request config."""
  safety_settings = [types.SafetySetting(category=category, threshold=settings.safety_threshold) for category in settings.harm_categories]
  return types.GenerateContentConfig(temperature=settings.temperature, top_k=settings.top_k, top_p=settings.top_p, max_output_tokens=settings.max_output_tokens, safety_settings=safety_settings)


def detect_block_reason(response: Any) -> str | None:
  """Return the safety block reason carried by a response, if any."""
  feedback = getattr(response, "prompt_feedback", None)
  prompt_block = _enum_name(getattr(feedback, "block_reason", None)) if feedback is not None else None
  if prompt_block and prompt_block != "BLOCKED_REASON_UNSPECIFIED":
    return prompt_block

  candidates = getattr(response, "candidates", None) or []
  if candidates:
    finish_reason = _enum_name(getattr(candidates[0], "finish_reason", None))
    if finish_reason in _BLOCKING_FINISH_REASONS:
      return finish_reason

  return None


def _usage(response: Any) -> dict[str, int] | None:
  metadata = getattr(response, "usage_metadata", None)
  if not metadata:
    return None
  return {"prompt_tokens": metadata.prompt_token_count or 0, "completion_tokens": metadata.candidates_token_count or 0, "total_tokens": metadata.total_token_count or 0}


class GeminiModel(AIModel):
  """Gemini model client for multimodal text generation."""

  def __init__(self, name: str, api_key: str | None = None, *, timeout_seconds: float | None = None) -> None:
    self.name: str = name

    api_key = api_key or os.getenv("GEMINI_API_KEY")
    if not api_key:
      raise ValueError("GEMINI_API_KEY environment variable is required")

    http_options = types.HttpOptions(timeout=int(timeout_seconds * 1000)) if timeout_seconds else None
    self._client = genai.Client(api_key=api_key, http_options=http_options)

  async def generate(self, parts: list[PromptPart], settings: GenerationSettings) -> SimpleModelResponse:
    """Generate text from the given parts in a single user turn."""
    contents = [types.Content(role="user", parts=[_to_part(part) for part in parts])]
    try:
      # Use the async client to avoid blocking the event loop.
      response = await self._client.aio.models.generate_content(model=self.name, contents=contents, config=build_generate_config(settings))
    except genai_errors.APIError as exc:
      raise RuntimeError(f"Gemini generation failed: {exc}") from exc

    block_reason = detect_block_reason(response)
    if block_reason is not None:
      logger.warning("Gemini blocked the request reason=%s", block_reason)
      return SimpleModelResponse(content=None, usage=_usage(response), block_reason=block_reason)

    text = response.text
    logger.info("Gemini response (%d chars)", len(text or ""))
    logger.debug("Gemini response:\n%s", text)
    return SimpleModelResponse(content=text, usage=_usage(response))


class GeminiProvider(Provider):
  """Gemini provider."""

  _DEFAULT_MODEL: Final[str] = "gemini-2.0-flash"
  _AVAILABLE_MODELS: Final[set[str]] = {"gemini-1.5-flash", "gemini-1.5-pro", "gemini-2.0-flash", "gemini-2.0-flash-lite", "gemini-2.5-flash", "gemini-2.5-pro"}

  def __init__(self, api_key: str | None = None, *, timeout_seconds: float | None = None) -> None:
    self.name: str = "gemini"
    self._api_key = api_key
    self._timeout_seconds = timeout_seconds

  def get_model(self, model: str | None = None) -> AIModel:
    """Return a Gemini model client."""
    model_name = model or self._DEFAULT_MODEL
    if model_name not in self._AVAILABLE_MODELS:
      raise ValueError(f"Unsupported Gemini model '{model_name}'.")

    return GeminiModel(model_name, api_key=self._api_key, timeout_seconds=self._timeout_seconds)
