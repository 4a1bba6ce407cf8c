"""Base interfaces for AI providers and models."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Protocol

HARM_CATEGORIES: tuple[str, ...] = ("HARM_CATEGORY_HARASSMENT", "HARM_CATEGORY_HATE_SPEECH", "HARM_CATEGORY_SEXUALLY_EXPLICIT", "HARM_CATEGORY_DANGEROUS_CONTENT")


class ModelResponse(Protocol):
  """Response contract for model outputs."""

  content: str | None
  usage: dict[str, int] | None
  block_reason: str | None


@dataclass
class SimpleModelResponse:
  """Minimal model response structure."""

  content: str | None
  usage: dict[str, int] | None = None
  block_reason: str | None = None

  @property
  def blocked(self) -> bool:
    return self.block_reason is not None


@dataclass(frozen=True)
class Attachment:
  """Binary input sent inline alongside the prompt."""

  data: bytes
  mime_type: str


@dataclass(frozen=True)
class GenerationSettings:
  """Sampling and safety configuration for one call site."""

  temperature: float
  top_k: int
  top_p: float
  max_output_tokens: int
  safety_threshold: str = "BLOCK_MEDIUM_AND_ABOVE"
  harm_categories: tuple[str, ...] = field(default=HARM_CATEGORIES)


PromptPart = str | Attachment


class AIModel(ABC):
  """Abstract base class for AI models."""

  name: str

  @abstractmethod
  async def generate(self, parts: list[PromptPart], settings: GenerationSettings) -> ModelResponse:
    """Generate a response for the given prompt parts."""


class Provider(ABC):
  """Abstract base class for AI providers."""

  name: str

  @abstractmethod
  def get_model(self, model: str | None = None) -> AIModel:
    """Return the model client for the provider."""
