import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from config import settings

logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🎃 Heinous Trivia backend starting up...")
    logger.info(f"Default haunt: {settings.default_haunt}, {settings.questions_per_game} questions per game")
    yield
    logger.info("Backend shutting down.")


app = FastAPI(
    title="Heinous Trivia",
    version="0.1.0",
    description="Multi-tenant horror trivia for haunted attractions",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.get("/health")
async def health_check():
    return {"status": "ok", "service": "heinous-trivia", "version": "0.1.0"}


from routers.trivia_router import router as trivia_router
from routers.game_router import router as game_router
from routers.sidequest_router import router as sidequest_router
from routers.analytics_router import router as analytics_router
from routers.admin_router import router as admin_router

app.include_router(trivia_router, prefix="/api")
app.include_router(game_router, prefix="/api")
app.include_router(sidequest_router, prefix="/api")
app.include_router(analytics_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


# Serve the compiled client when STATIC_DIR points at it
if settings.static_dir and os.path.isdir(settings.static_dir):
    app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")
    logger.info(f"Serving client from {settings.static_dir}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.debug)
