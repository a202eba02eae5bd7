import logging
from contextlib import asynccontextmanager

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from quill.config import settings
from quill.exceptions import QuillError, ValidationError
from quill.routers import evaluation
from quill.services.agents import ROLE_ORDER
from quill.services.evaluator import WritingEvaluationService
from quill.services.llm import build_backends
from quill.services.orchestrator import AgentOrchestrator
from quill.services.result_store import InMemoryResultStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create backend clients on startup, close them on shutdown."""
    logger.info("Starting Quill service ...")

    names = {settings.agent_config(role)["backend"] for role in ROLE_ORDER}
    names.add(settings.realtime_backend)
    backends = build_backends(settings, names)
    try:
        app.state.evaluator = WritingEvaluationService(
            AgentOrchestrator.from_settings(settings, backends),
            settings,
            realtime_backend=backends[settings.realtime_backend],
        )
        app.state.result_store = InMemoryResultStore(settings.result_max_in_memory)

        logger.info("Quill service ready (backends: %s).", ", ".join(backends))
        yield
    finally:
        logger.info("Shutting down Quill service ...")
        for backend in backends.values():
            await backend.close()


app = FastAPI(
    title="Quill",
    description="Multi-agent written-response evaluation service",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(evaluation.router)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "detail": "Invalid request data",
            "errors": [{"field": exc.field, "message": exc.constraint}],
        },
    )


@app.exception_handler(QuillError)
async def quill_error_handler(request: Request, exc: QuillError):
    return JSONResponse(status_code=500, content={"detail": str(exc)})
