"""
Runtime configuration for the Daybook API.

Values come from the process environment, with a local ``.env`` file loaded
first when present. Nothing here opens a connection: the storage selector in
``database.py`` decides what to do with these values.
"""

import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()

HERE = os.path.dirname(os.path.abspath(__file__))


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


@dataclass(frozen=True)
class Settings:
    supabase_url: str = ""
    supabase_key: str = ""
    env: str = "development"
    sqlite_path: str = os.path.join(HERE, "data.sqlite")
    frontend_dist: str = os.path.join(HERE, "frontend", "dist")
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @property
    def hosted_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @property
    def production(self) -> bool:
        return self.env.lower() == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        origins = [o.strip() for o in _env("CORS_ORIGINS", "*").split(",") if o.strip()]
        return cls(
            supabase_url=_env("SUPABASE_URL"),
            supabase_key=_env("SUPABASE_SERVICE_ROLE_KEY"),
            env=_env("ENV") or _env("NODE_ENV", "development"),
            sqlite_path=_env("SQLITE_PATH", os.path.join(HERE, "data.sqlite")),
            frontend_dist=_env("FRONTEND_DIST", os.path.join(HERE, "frontend", "dist")),
            host=_env("HOST", "0.0.0.0"),
            port=int(_env("PORT", "3000")),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            cors_origins=origins or ["*"],
        )
