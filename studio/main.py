import os
import time
import logging
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

load_dotenv()

from . import metrics
from .pipeline import studio_router
from .pipeline.routes import get_registry

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Studio worker starting up...")
    metrics.set_gauge("start_time", time.time())
    metrics.set_gauge("active_sessions", 0)
    yield
    logger.info("Studio worker shutting down...")
    await get_registry().aclose()


app = FastAPI(title="Product Content Studio", lifespan=lifespan)
app.include_router(studio_router)


@app.get("/health")
def health_check():
    """Verify the worker is running and the backend is configured."""
    return {
        "status": "ok",
        "supabase_url_set": bool(os.environ.get("SUPABASE_URL", "")),
        "supabase_key_set": bool(os.environ.get("SUPABASE_ANON_KEY", "")),
        "direct_backend_url_set": bool(os.environ.get("STUDIO_BACKEND_URL", "")),
        "active_sessions": len(get_registry()),
    }


@app.get("/metrics")
def metrics_endpoint():
    """Return a snapshot of all worker metrics."""
    metrics.set_gauge("active_sessions", len(get_registry()))
    return metrics.get_snapshot()


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    uvicorn.run("studio.main:app", host="0.0.0.0", port=port)
