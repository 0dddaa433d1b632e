"""
Unified backend entry point.

Architecture:
- One Python process, one asyncio event loop
- FastAPI serves the REST API and the per-lesson WebSocket sessions
- Each connected learner gets a LearningSession running as tasks on
  the same loop

We use FastAPI's lifespan to manage startup/shutdown. The lifespan
pattern gives us uvicorn's signal handling and --reload for free.

Run with: python main.py [--dev] [--port PORT]
"""

import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Set up import paths before any local imports
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

# Load .env.local first (if exists), then .env as fallback
# .env.local is gitignored and used for local dev overrides
load_dotenv(project_root / ".env.local")  # Local overrides (gitignored)
load_dotenv()  # Fallback to .env

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from learning_core.config import check_required_env_vars, get_allowed_origins, is_dev_mode
from learning_core.database import close_engine, is_configured

# Import routes using full paths (don't add web_api to sys.path to avoid main.py conflict)
from web_api.routes.conversations import router as conversations_router
from web_api.routes.progress import router as progress_router
from web_api.routes.sessions import router as sessions_router

SENTRY_DSN = os.environ.get("SENTRY_DSN")
if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment="development" if is_dev_mode() else "production",
        traces_sample_rate=0.1,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan context manager."""
    ok, warnings = check_required_env_vars()
    for warning in warnings:
        print(warning)
    if not ok:
        raise RuntimeError("Missing required environment variables")

    print("Learning session API starting...")

    yield  # FastAPI runs here

    print("Shutting down...")
    await close_engine()  # Close database connections


# Create FastAPI app with lifespan
app = FastAPI(
    title="Learning Session API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(sessions_router)
app.include_router(progress_router)
app.include_router(conversations_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "database_configured": is_configured(),
    }


if __name__ == "__main__":
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Learning Session API Server")
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Development mode (relaxed env checks, local CORS origins)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("API_PORT", "8000")),
        help="Port to run the server on (default: 8000)",
    )
    args = parser.parse_args()

    # Set env var so it persists across uvicorn reloads
    if args.dev:
        os.environ["DEV_MODE"] = "true"

    # Pass app object directly (not string) to avoid module reimport issues
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=args.port,
    )
