# server.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from decorai import auth, dashboard, projects
from decorai.ai import build_analyzer
from decorai.db import create_tables
from decorai.settings import settings
from decorai.storage import BlobStorage

# --- Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger(__name__)

# --- App Initialization ---
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Room photo analysis and decoration suggestions.",
    version="1.0.0",
)

# --- CORS Middleware ---
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Routers ---
app.include_router(auth.router, prefix=settings.API_PREFIX)
app.include_router(projects.router, prefix=settings.API_PREFIX)
app.include_router(dashboard.router, prefix=settings.API_PREFIX)


# --- Startup Event ---
@app.on_event("startup")
async def on_startup():
    """Create database tables and the long-lived external clients."""
    await create_tables()
    app.state.analyzer = build_analyzer(settings)
    app.state.storage = BlobStorage(settings.BLOB_READ_WRITE_TOKEN)
    log.info(f"{settings.PROJECT_NAME} started with AI provider '{app.state.analyzer.provider}'.")


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("decorai.server:app", host="0.0.0.0", port=8000)
