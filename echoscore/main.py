import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from echoscore.api import attempts, evaluations, protocols
from echoscore.config import settings
from echoscore.services.errors import EvaluationError

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Echoscore", version="0.1.0")


@app.exception_handler(EvaluationError)
async def evaluation_error_handler(request: Request, exc: EvaluationError):
    """Answer service errors with the status their class carries."""
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(
        "Database error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc
    )
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Include routers
app.include_router(protocols.router)
app.include_router(attempts.router)
app.include_router(evaluations.router)
app.include_router(evaluations.teachers_router)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
