from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from goalkernel.config import settings
from goalkernel.db import create_schema
from goalkernel.logging_setup import configure_logging
from goalkernel.progress.errors import ConcurrentModificationError, NotFoundError, ValidationError
from goalkernel.progress.router import router as goals_router

configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.create_schema_on_startup:
        await create_schema()
    yield


app = FastAPI(title="GoalKernel", version="0.1.0", lifespan=lifespan)
app.include_router(goals_router)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc), "errors": exc.errors})


@app.exception_handler(ConcurrentModificationError)
async def conflict_handler(request: Request, exc: ConcurrentModificationError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.get("/")
async def root() -> dict:
    return {
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
        "goals": {
            "list": "/goals",
            "summary": "/goals/summary",
            "detail": "/goals/{id}",
            "status": "/goals/{id}/status",
            "metrics": "/goals/{id}/metrics/{metric_id}",
            "actions": "/goals/{id}/actions/{action_id}",
            "trends": "/goals/{id}/trends",
            "visualization": "/goals/{id}/visualization",
        },
    }


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
