"""Main entry point for the chat sync console."""

from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from chatsync import ChatClient, ClientSettings
from chatsync.api import create_fastapi_app
from chatsync.logging_config import setup_logging


def main():
    """Run the console API."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    settings = ClientSettings.from_env()
    setup_logging(role=settings.role)

    client = ChatClient(settings)

    # Create FastAPI app
    app = create_fastapi_app(client)

    # Run with uvicorn
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
