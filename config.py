"""
Application settings.

Values are read from environment variables once, when ``Settings.from_env``
is called at startup. Tests construct ``Settings`` directly.
"""

import os

from pydantic import BaseModel, Field


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


class Settings(BaseModel):
    project_name: str = "Shop API"
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "shop"
    jwt_secret: str = "supersecretkey"
    token_ttl_minutes: int = Field(120, gt=0)
    port: int = 5000
    log_level: str = "INFO"
    seed_products: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL") or os.getenv("MONGO_URI") or "mongodb://localhost:27017",
            database_name=os.getenv("DATABASE_NAME", "shop"),
            jwt_secret=os.getenv("JWT_SECRET", "supersecretkey"),
            token_ttl_minutes=int(os.getenv("TOKEN_TTL_MINUTES", "120")),
            port=int(os.getenv("PORT", "5000")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            seed_products=_env_flag("SEED_PRODUCTS"),
        )
