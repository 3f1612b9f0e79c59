import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from datetime import datetime

from config import GEMINI_API_KEY, CORS_ORIGINS
from .repository import RepositoryError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    if GEMINI_API_KEY:
        try:
            import google.generativeai as genai
            genai.configure(api_key=GEMINI_API_KEY)
            logger.info("Gemini API configured successfully.")
        except Exception:
            logger.exception("Failed to configure Gemini API")
    else:
        logger.warning("GEMINI_API_KEY not found. AI-enhanced analysis will fall back to statistics only.")

    yield

    logger.info("Application shutting down...")


async def repository_error_handler(request: Request, exc: RepositoryError):
    logger.error(f"Repository error on {request.url.path}: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": str(exc), "timestamp": datetime.now().isoformat()},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="MoodPulse Analytics Service",
        description="Mood logging, streaks, pattern analytics, risk levels and predictions.",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RepositoryError, repository_error_handler)

    # Import endpoints to register routes (import the router to avoid circular imports)
    from .endpoints import router as endpoints_router  # noqa: F401
    app.include_router(endpoints_router)

    return app


app = create_app()
