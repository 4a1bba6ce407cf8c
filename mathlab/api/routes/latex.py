"""Router for compiling caller-supplied LaTeX."""

from fastapi import APIRouter, Depends

from mathlab.api.deps import get_pipeline
from mathlab.api.models import CompiledDocumentResponse, CompileRequest, ErrorResponse
from mathlab.core.security import get_current_identity
from mathlab.latex.pipeline import JobPipeline

# Every job route requires a verified caller when auth is enabled.
router = APIRouter(dependencies=[Depends(get_current_identity)])

COMPILE_SUCCESS_MESSAGE = "PDF generated successfully."


@router.post("/generate", response_model=CompiledDocumentResponse, responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
async def generate_pdf(request: CompileRequest, pipeline: JobPipeline = Depends(get_pipeline)) -> CompiledDocumentResponse:  # noqa: B008
  """Compile the posted LaTeX without calling the model."""
  result = await pipeline.compile_latex(request.latex_code)
  return CompiledDocumentResponse.from_result(COMPILE_SUCCESS_MESSAGE, result)
