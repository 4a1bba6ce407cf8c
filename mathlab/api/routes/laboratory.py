"""Router for solving uploaded problem sheets."""

from fastapi import APIRouter, Depends, File, Form, UploadFile

from mathlab.api.deps import get_pipeline
from mathlab.api.models import CompiledDocumentResponse, ErrorResponse
from mathlab.core.security import get_current_identity
from mathlab.latex.pipeline import JobPipeline

# Every job route requires a verified caller when auth is enabled.
router = APIRouter(dependencies=[Depends(get_current_identity)])

# Define file and form defaults once to avoid inline function calls.
PROBLEM_FILE_FIELD = File(None, alias="problemFile")
TEMPLATE_FIELD = Form(None, alias="latexTemplate")

SOLVE_SUCCESS_MESSAGE = "LaTeX solution generated and PDF compiled successfully."


@router.post("/solve", response_model=CompiledDocumentResponse, responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}})
async def solve_problem(problem_file: UploadFile | None = PROBLEM_FILE_FIELD, latex_template: str | None = TEMPLATE_FIELD, pipeline: JobPipeline = Depends(get_pipeline)) -> CompiledDocumentResponse:  # noqa: B008
  """Solve the uploaded image or PDF into LaTeX and compile it."""
  data: bytes | None = None
  media_type: str | None = None
  if problem_file is not None:
    media_type = problem_file.content_type
    data = await problem_file.read()

  result = await pipeline.solve(data, media_type, latex_template)
  return CompiledDocumentResponse.from_result(SOLVE_SUCCESS_MESSAGE, result)
