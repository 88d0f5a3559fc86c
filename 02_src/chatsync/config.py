"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "chatsync.db"
DEFAULT_LOG_PATH = LOGS_DIR / "chatsync.log"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


@dataclass
class ClientSettings:
    """Runtime settings for a chat client process."""

    server_url: str = "http://localhost:8080"
    role: str = "agent"
    rooms_refresh_interval: float = 30.0
    agents_refresh_interval: float = 20.0
    http_timeout: float = 10.0
    db_path: PathLike = DEFAULT_DB_PATH
    api_host: str = "localhost"
    api_port: int = 8000

    @classmethod
    def from_env(cls) -> "ClientSettings":
        """Build settings from environment variables."""
        role = os.getenv("CHAT_ROLE", "agent").lower()
        if role not in ("agent", "player"):
            raise ValueError(f"CHAT_ROLE must be 'agent' or 'player', got {role!r}")

        return cls(
            server_url=os.getenv("CHAT_SERVER_URL", "http://localhost:8080").rstrip("/"),
            role=role,
            rooms_refresh_interval=float(os.getenv("ROOMS_REFRESH_INTERVAL", "30")),
            agents_refresh_interval=float(os.getenv("AGENTS_REFRESH_INTERVAL", "20")),
            http_timeout=float(os.getenv("HTTP_TIMEOUT", "10")),
            db_path=resolve_db_path(os.getenv("DATABASE_URL")),
            api_host=os.getenv("API_HOST", "localhost"),
            api_port=int(os.getenv("API_PORT", "8000")),
        )

    @property
    def stream_url(self) -> str:
        """Base URL of the streaming endpoint derived from the server URL."""
        if self.server_url.startswith("https://"):
            return "wss://" + self.server_url[len("https://"):] + "/ws"
        if self.server_url.startswith("http://"):
            return "ws://" + self.server_url[len("http://"):] + "/ws"
        return self.server_url + "/ws"
