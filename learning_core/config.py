"""
Centralized configuration for the learning session backend.

Environment-aware settings plus the timing constants the session
orchestrator runs on. Everything is read from environment variables so
the same build runs in dev, CI and production.
"""

import os


def is_dev_mode() -> bool:
    """Check if running in development mode (--dev flag or DEV_MODE env)."""
    return os.getenv("DEV_MODE", "").lower() in ("true", "1", "yes")


def is_production() -> bool:
    """Check if running on Railway (production environment)."""
    return bool(os.environ.get("RAILWAY_ENVIRONMENT"))


def get_api_port() -> int:
    """Get API server port from env or default."""
    return int(os.getenv("API_PORT", "8000"))


def get_frontend_port() -> int:
    """Get frontend dev server port from env or default."""
    return int(os.getenv("FRONTEND_PORT", "3000"))


def get_frontend_url() -> str:
    """Get frontend URL based on mode."""
    if is_dev_mode():
        return os.environ.get(
            "FRONTEND_URL", f"http://localhost:{get_frontend_port()}"
        ).rstrip("/")
    if is_production():
        return os.environ.get("FRONTEND_URL", f"http://localhost:{get_api_port()}")
    return f"http://localhost:{get_api_port()}"


def get_allowed_origins() -> list[str]:
    """
    Get list of allowed CORS origins.

    Includes localhost variants for dev and the production frontend URL.
    """
    ports = [get_api_port(), get_frontend_port()]
    hosts = ["localhost", "127.0.0.1"]
    origins = [f"http://{host}:{port}" for host in hosts for port in ports]

    frontend_url = get_frontend_url()
    if frontend_url not in origins:
        origins.append(frontend_url)

    env_frontend = os.environ.get("FRONTEND_URL")
    if env_frontend and env_frontend not in origins:
        origins.append(env_frontend)

    return origins


def is_evaluation_enabled() -> bool:
    """Free-text answers are graded by an LLM when a provider is configured."""
    return bool(os.environ.get("EVALUATION_PROVIDER") or os.environ.get("LLM_PROVIDER"))


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        print(f"  ⚠ {name}: expected an integer, got {value!r}; using {default}")
        return default


# =====================================================
# Session orchestrator timing
# =====================================================

# A bookmark fires when playback lands 0..N ms past its offset
FA_TRIGGER_TOLERANCE_MS = _int_env("FA_TRIGGER_TOLERANCE_MS", 500)
INLESSON_TRIGGER_TOLERANCE_MS = _int_env("INLESSON_TRIGGER_TOLERANCE_MS", 1000)

# Watch-progress reporting
PROGRESS_MIN_WATCH_MS = _int_env("PROGRESS_MIN_WATCH_MS", 5000)
PROGRESS_INTERVAL_S = _int_env("PROGRESS_INTERVAL_S", 15)

# Lesson counts as completed at this percentage even if the video never ends
LESSON_COMPLETE_PERCENT = _int_env("LESSON_COMPLETE_PERCENT", 90)

# Free-text grading round trip; a slower answer is treated as ungraded
EVALUATION_TIMEOUT_S = _int_env("EVALUATION_TIMEOUT_S", 20)


# Required environment variables
# Format: (name, description, required_in_dev)
REQUIRED_ENV_VARS = [
    ("DATABASE_URL", "PostgreSQL connection string", True),
    ("JWT_SECRET", "Secret key for JWT tokens", True),
    ("LLM_PROVIDER", "LiteLLM model string for free-text grading", False),
    ("SENTRY_DSN", "Sentry DSN for error reporting", False),
]


def check_required_env_vars() -> tuple[bool, list[str]]:
    """
    Check that required environment variables are set.

    Returns:
        (all_ok, warnings): Tuple of success flag and list of warning messages
    """
    warnings = []
    errors = []
    in_dev = is_dev_mode()

    for name, description, required_in_dev in REQUIRED_ENV_VARS:
        value = os.environ.get(name)

        if not value:
            if is_production() and required_in_dev:
                errors.append(f"  ✗ {name}: Not set ({description})")
            elif required_in_dev or not in_dev:
                warnings.append(f"  ⚠ {name}: Not set ({description})")

    if errors:
        for error in errors:
            print(error)
        return False, warnings

    return True, warnings
