"""Application entry point.

Serves the relay API and the NiceGUI chat page from one FastAPI app.
Environment variables are loaded from .env file.
"""

import logging
import os
import sys

from dotenv import load_dotenv

# Load environment variables before any other imports that might need them
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def run_server() -> None:
    """Run the relay API with the chat page mounted at ``/``.

    API routes live under ``/api``; NiceGUI serves the page and its
    per-browser storage from the same process.
    """
    import uvicorn
    from nicegui import ui

    from chatrelay.api.app import create_app
    from chatrelay.relay.config import get_relay_config
    from chatrelay.ui.chat_page import APP_TITLE, chat_page  # noqa: F401 - Registers the page

    config = get_relay_config()
    app = create_app()

    ui.run_with(
        app,
        title=APP_TITLE,
        favicon="🐟",
        storage_secret=os.getenv("NICEGUI_STORAGE_SECRET", "chat-relay-secret"),
    )

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))

    logger.info(f"Chat UI on http://localhost:{port}/ (API docs at /docs)")
    logger.info(f"Settings file: {config.settings_path}")
    if config.access_password:
        logger.info("Access passphrase enabled")

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


def run_api_only() -> None:
    """Run only the relay API, with auto-reload, for development."""
    import uvicorn

    logger.info("Starting relay API without the chat page")
    uvicorn.run(
        "chatrelay.api.app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )


def main() -> None:
    """Application entry point.

    Set RUN_MODE=api to serve the API alone. Default serves API and UI.
    """
    mode = os.getenv("RUN_MODE", "integrated").lower()

    logger.info(f"Starting chat relay in {mode} mode")

    if mode == "api":
        run_api_only()
    else:
        run_server()


if __name__ == "__main__":
    main()
