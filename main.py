"""
Main entry point for the Nova gateway

Imports the FastAPI app from app.py for uvicorn to run.

@.architecture
Incoming: none --- {entry point for uvicorn server}
Processing: create_app() import, uvicorn.run() --- {2 jobs: config_loading, server_startup}
Outgoing: uvicorn server, Network (HTTP/WebSocket) --- {FastAPI application instance, HTTP/WebSocket server}
"""

import os
from app import create_app
from config.settings import get_settings

# Create app instance (fails fast on missing configuration)
app = create_app()

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    host = settings.security.bind_host
    port = settings.security.bind_port
    reload = os.getenv("GATEWAY_RELOAD", "false").lower() == "true"
    log_level = os.getenv("GATEWAY_UVICORN_LOG_LEVEL", "info")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level
    )
