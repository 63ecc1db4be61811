"""
camtool control service: HTTP access to a running Session.
"""

import logging
import os
from typing import Optional

from fastapi import FastAPI

from camtool.routes import control
from camtool.session import Session

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8091


def create_app(session: Session) -> FastAPI:
    """
    Build the FastAPI app around an existing session.

    The host owns the session lifecycle (start/shutdown); the app only
    exposes the UI-facing operations.
    """
    app = FastAPI(title="camtool", version="0.1.0")
    app.state.session = session
    app.include_router(control.router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "enabled": session.enabled}

    return app


def get_bind_host() -> str:
    """Host from CAMTOOL_CONTROL_HOST, localhost by default."""
    return os.environ.get("CAMTOOL_CONTROL_HOST") or DEFAULT_HOST


def run_control_server(session: Session, host: Optional[str] = None, port: int = DEFAULT_PORT) -> None:
    """
    Serve the control API for `session` until interrupted.

    Args:
        session: A started session
        host: Host to bind to. Defaults to get_bind_host().
        port: Port to listen on.
    """
    import uvicorn

    host = host or get_bind_host()
    app = create_app(session)

    logger.info(f"Starting camtool control API on {host}:{port}")
    if host == "0.0.0.0":
        logger.warning("Control API is exposed to the network without authentication")

    uvicorn.run(app, host=host, port=port)
