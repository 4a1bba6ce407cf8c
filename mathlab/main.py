from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from mathlab import __version__
from mathlab.api.routes import laboratory, latex, studio
from mathlab.config import get_settings
from mathlab.core.exceptions import global_exception_handler, http_exception_handler, pipeline_exception_handler, request_validation_exception_handler
from mathlab.core.lifespan import lifespan
from mathlab.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from mathlab.latex.errors import PipelineError

settings = get_settings()

app = FastAPI(title="mathlab", version=__version__, lifespan=lifespan)

app.add_middleware(CORSMiddleware, allow_origins=list(settings.allowed_origins), allow_credentials=True, allow_methods=["GET", "POST", "OPTIONS"], allow_headers=["content-type", "authorization"], expose_headers=["content-length", "x-request-id"])


# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(PipelineError, pipeline_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": __version__}


app.include_router(laboratory.router, prefix="/laboratory", tags=["laboratory"])
app.include_router(studio.router, prefix="/studio", tags=["studio"])
app.include_router(latex.router, prefix="/latex", tags=["latex"])
