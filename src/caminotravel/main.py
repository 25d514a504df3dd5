import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .agent import TravelAgentService, get_agent_service
from .services.travel_api import close_travel_api_client
from .settings import get_settings


def setup_server_logging(level: str = "INFO") -> logging.Logger:
    """Configure and return the server logger."""
    logs_dir = Path("logs")
    logs_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("caminotravel")
    if logger.handlers:
        return logging.getLogger("caminotravel.server")

    logger.setLevel(level)
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    fh = RotatingFileHandler(logs_dir / "server.log", maxBytes=5_000_000, backupCount=3)
    fh.setFormatter(fmt)
    logger.addHandler(fh)

    return logging.getLogger("caminotravel.server")


def _cors_origins_list(origins: str) -> list[str]:
    """Parse CORS_ORIGINS into a list."""
    if not origins or origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in origins.split(",") if o.strip()]


settings = get_settings()
LOGGER = setup_server_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the idle-session sweeper; stop it and close the travel API client on shutdown."""
    service = get_agent_service()
    sweeper = asyncio.create_task(service.run_session_sweeper())
    LOGGER.info(
        "Session sweeper running every %ss (max idle %ss)",
        settings.session_sweep_interval_seconds,
        settings.session_max_idle_seconds,
    )

    yield

    LOGGER.info("Shutting down...")
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    await close_travel_api_client()


app = FastAPI(
    title="Camino Travel Assistant",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins_list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health(service: TravelAgentService = Depends(get_agent_service)) -> dict[str, Any]:
    """Health check for load balancers and monitoring.

    Returns:
        dict[str, Any]: JSON response with status and the active session count.
    """
    return {"status": "ok", "sessions": service.session_count()}


@app.post("/prompts")
async def prompts(
    request: Request, service: TravelAgentService = Depends(get_agent_service)
) -> JSONResponse:
    """Send a prompt to the travel assistant.

    Expected Input (JSON):
        {
            "prompt": str - user query text,
            "sessionId": str - optional; omitted or unknown ids start a new session
        }

    Response Format:
        {"sessionId": str, "response": dict | str} - the first successful tool
        payload when one was produced, otherwise the assistant's text.
        {"error": str} with status 400 for bad input, 500 for processing errors.
    """
    try:
        payload = await request.json()
    except ValueError as e:
        LOGGER.error("Invalid request payload (not JSON): %s", e)
        payload = None

    prompt = payload.get("prompt") if isinstance(payload, dict) else None
    if not prompt or not isinstance(prompt, str):
        return JSONResponse(status_code=400, content={"error": "prompt is required (string)"})

    session_id = payload.get("sessionId")
    session_id = str(session_id) if session_id else None

    try:
        result = await service.process_prompt(prompt, session_id)
    except Exception as e:
        LOGGER.exception("Error processing prompt: %s", e)
        return JSONResponse(
            status_code=500, content={"error": str(e) or "Internal server error"}
        )

    return JSONResponse(content={"sessionId": result.session_id, "response": result.response})


def run() -> None:
    """Run the HTTP server with uvicorn."""
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
