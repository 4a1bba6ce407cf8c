"""Router for recoloring LaTeX documents."""

from fastapi import APIRouter, Depends

from mathlab.api.deps import get_pipeline
from mathlab.api.models import CompiledDocumentResponse, ErrorResponse, RecolorRequest
from mathlab.core.security import get_current_identity
from mathlab.latex.pipeline import JobPipeline

# Every job route requires a verified caller when auth is enabled.
router = APIRouter(dependencies=[Depends(get_current_identity)])

RECOLOR_SUCCESS_MESSAGE = "LaTeX recolored and PDF compiled successfully."


@router.post("/recolor-latex", response_model=CompiledDocumentResponse, responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
async def recolor_latex(request: RecolorRequest, pipeline: JobPipeline = Depends(get_pipeline)) -> CompiledDocumentResponse:  # noqa: B008
  """Color the solutions of a LaTeX document and compile it."""
  result = await pipeline.recolor(request.latex_input, request.target_color)
  return CompiledDocumentResponse.from_result(RECOLOR_SUCCESS_MESSAGE, result)
