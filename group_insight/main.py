"""FastAPI application for daily group reports."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from redis.asyncio import Redis

from group_insight.config import get_settings
from group_insight.container import ServiceContainer
from group_insight.handlers.http import setup_routes

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Connects Redis, builds the service container and starts the daily
    report scheduler.
    """
    settings = get_settings()
    logger.info("Starting application...")

    redis = Redis.from_url(settings.redis_url)
    try:
        await redis.ping()
        logger.info("Connected to Redis")
    except Exception as e:
        logger.error(f"Failed to connect to Redis: {e}")
        raise

    container = ServiceContainer(settings, redis)
    await container.start()
    app.state.redis = redis
    app.state.container = container

    logger.info("Application started successfully")

    yield

    logger.info("Shutting down application...")
    await container.stop()
    await redis.aclose()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Group Insight",
    description="Incremental LLM-backed daily reports for group chats",
    version="0.1.0",
    lifespan=lifespan,
)
setup_routes(app)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("group_insight.main:app", host="0.0.0.0", port=8000)
