"""FastAPI application setup."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..app import ChatClient
from .routes import conversation, directory, session


def create_fastapi_app(client: ChatClient | None = None) -> FastAPI:
    """Create and configure FastAPI application around a chat client."""
    chat_client = client or ChatClient()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage client lifespan."""
        # Startup
        await chat_client.start()
        yield
        # Shutdown
        await chat_client.stop()

    fastapi_app = FastAPI(
        title="Chat Sync Console API",
        description="Local console API for the chat synchronization client",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Enable CORS
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:5174"],  # Vite default
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    fastapi_app.include_router(session.create_session_router(chat_client))
    fastapi_app.include_router(conversation.create_conversation_router(chat_client))
    fastapi_app.include_router(directory.create_directory_router(chat_client))

    return fastapi_app
