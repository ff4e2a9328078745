"""
main.py - FastAPI application entrypoint for the LifeSync coaching API

Purpose:
- Mounts the account endpoints under /auth and every aggregation handler
  under /api (POST /api/<handlerName>).
- Turns LifeSyncError subclasses into the uniform JSON error envelope and
  request-validation failures into 400 responses.
- Initializes Vertex AI on startup (best-effort; handlers report a 500 if the
  LLM is unusable when they need it).

Handlers are stateless: each request reads what it needs from Firestore,
aggregates, calls the LLM at most once and writes derived records back.
"""

import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import auth, coaching, gamification, habits, journal, mindfulness, suggestions
from .errors import LifeSyncError
from .gcp_clients import VERTEX_MODEL_NAME, init_vertex
from .utils import now_iso

# Configure logging (configurable via LOG_LEVEL env var)
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
_logger = logging.getLogger(__name__)

# FastAPI app and routers
app = FastAPI(title="LifeSync Coaching API")
app.include_router(auth.router, prefix="/auth")
for _module in (gamification, habits, journal, coaching, suggestions, mindfulness):
    app.include_router(_module.router, prefix="/api")


# -------------------------
# Error envelope
# -------------------------
@app.exception_handler(LifeSyncError)
async def lifesync_error_handler(request: Request, exc: LifeSyncError):
    if exc.status_code >= 500:
        _logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else (first.get("msg") or "Invalid request")
    _logger.warning("Rejected request to %s: %s", request.url.path, message)
    return JSONResponse(status_code=400, content={"success": False, "error": message})


# -------------------------
# Startup event
# -------------------------
@app.on_event("startup")
async def startup_event():
    """
    App startup hook:
    - Logs startup and attempts to initialize Vertex AI (best-effort).
    """
    _logger.info("LifeSync API starting up")
    try:
        init_vertex()
    except Exception as e:
        _logger.warning("Vertex init failed or unavailable: %s", e)


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": now_iso(),
        "vertex_available": bool(VERTEX_MODEL_NAME),
    }


@app.get("/_debug_env")
async def debug_env():
    """
    Expose a small debug summary of environment variables. Only enabled when ALLOW_DEBUG_ENDPOINT=1.
    Guard this endpoint in production!
    """
    if os.environ.get("ALLOW_DEBUG_ENDPOINT") != "1":
        return JSONResponse(status_code=403, content={"error": "Debug endpoint disabled"})
    return {
        "gcp_project": os.environ.get("GCP_PROJECT"), "gcp_location": os.environ.get("GCP_LOCATION"),
        "vertex_model_env": os.environ.get("VERTEX_MODEL_NAME"), "vertex_model_resolved": VERTEX_MODEL_NAME,
        "google_credentials_set": bool(os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")),
        "local_timezone": os.environ.get("LOCAL_TIMEZONE", "UTC"),
    }


# -------------------------
# Run with Uvicorn when executed directly
# -------------------------
if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("lifesync.main:app", host="0.0.0.0", port=port)
