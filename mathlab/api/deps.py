"""Shared FastAPI dependencies for the job routes."""

from __future__ import annotations

from fastapi import Request

from mathlab.latex.pipeline import JobPipeline


def get_pipeline(request: Request) -> JobPipeline:
  """Return the pipeline built during startup."""
  return request.app.state.pipeline
