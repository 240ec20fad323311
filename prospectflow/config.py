"""
ProspectFlow — Configuration via environment variables.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """All settings read from env / .env file."""

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./prospectflow.db",
        description="Async SQLAlchemy DB URL",
    )

    # Outbound HTTP identity (Nominatim requires an identifying UA)
    http_user_agent: str = Field(default="ProspectFlow/1.0 (contact@prospectflow.fr)")
    accept_language: str = Field(default="fr,en;q=0.9")

    # Geocoding
    nominatim_url: str = Field(default="https://nominatim.openstreetmap.org/search")
    country_codes: str = Field(default="fr", description="Comma-separated ISO country filter")
    geocode_timeout: float = Field(default=15.0)

    # Directory search
    overpass_url: str = Field(default="https://overpass-api.de/api/interpreter")
    overpass_timeout: float = Field(default=30.0, description="Seconds; must stay above 20")

    # Site audit
    audit_nav_timeout_ms: int = Field(default=15000)
    audit_worker_nav_timeout_ms: int = Field(default=20000)
    audit_worker_timeout: float = Field(default=45.0, description="Hard limit for the audit subprocess")

    # Map listing enrichment
    maps_search_url: str = Field(default="https://www.google.com/maps/search")

    # Logging
    log_level: str = Field(default="INFO")

    # CORS
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
