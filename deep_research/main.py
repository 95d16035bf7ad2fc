from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from deep_research.api.routes import research
from deep_research.config import settings
from deep_research.services import logger as log_service
from deep_research.services.job_runner import get_job_runner


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_service.log_event(
        event_type="app_started",
        message="Deep research service started",
        storage_backend=settings.storage_backend,
        search_provider=settings.search_provider,
    )
    yield
    await get_job_runner().shutdown()


app = FastAPI(
    title="Deep Research",
    description="Iterative, coverage-driven web research reports",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(research.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "deep-research"}
