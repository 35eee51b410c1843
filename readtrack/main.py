from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from readtrack.core.config import get_settings
from readtrack.core.db import init_db, close_db
from readtrack.middleware import setup_middleware
from readtrack.routers import books as books_router
from readtrack.routers import quizzes as quizzes_router
from readtrack.routers import gamification as gamification_router
from readtrack.routers import notifications as notifications_router
from readtrack.routers import book_clubs as book_clubs_router
from readtrack.routers import feed as feed_router

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle"""
    logger.info(f"Starting {settings.APP_NAME}...")
    await init_db()
    yield
    logger.info(f"Shutting down {settings.APP_NAME}...")
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    description="Personal reading tracker with quizzes, badges and book clubs",
    version=settings.VERSION,
    lifespan=lifespan,
)

setup_middleware(app, environment=settings.ENVIRONMENT, cors_origins=settings.CORS_ORIGINS)

app.include_router(books_router.router)
app.include_router(quizzes_router.router)
app.include_router(gamification_router.router)
app.include_router(notifications_router.router)
app.include_router(book_clubs_router.router)
app.include_router(feed_router.router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
