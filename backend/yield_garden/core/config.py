"""
Application configuration using pydantic-settings.

WHAT: Centralized config from environment variables
WHY: Type-safe, validated config with sensible defaults
HOW: Pydantic BaseSettings reads from .env and environment
"""

from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Literal
from pathlib import Path


class Settings(BaseSettings):
    """Application settings loaded from environment."""
    
    # App metadata
    APP_NAME: str = "Yield Garden"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    
    # Database
    DATABASE_URL: str = "sqlite:///./data/garden.db"
    
    # Agent identities (account addresses on the messaging network)
    GARDEN_AGENT_ADDRESS: str = ""
    FARM_AGENT_ADDRESS: str = ""
    RUN_AGENTS_WITH_API: bool = False
    
    # Transport Selection
    TRANSPORT_PROVIDER: Literal["memory", "http_relay"] = "memory"
    
    # HTTP relay configuration
    TRANSPORT_RELAY_URL: str = "http://localhost:5555"
    TRANSPORT_TIMEOUT: int = 10  # seconds
    TRANSPORT_MAX_RETRIES: int = 3
    TRANSPORT_RETRY_DELAY: float = 1.0  # seconds, base for exponential backoff
    TRANSPORT_POLL_INTERVAL: float = 2.0  # seconds between inbox polls
    
    # Garden negotiation policy
    GARDEN_TIER_AMOUNTS: list[float] = [5.0, 25.0, 100.0]
    GARDEN_FLEXIBILITY: float = 0.20  # fraction below the minimum tier still accepted
    GARDEN_MAX_NEGOTIATION_ROUNDS: int = 3
    GARDEN_SUPPORT_PATTERNS: list[str] = [
        r"support.*work",
        r"pay.*you",
        r"compensat",
        r"contribute",
        r"sponsor",
        r"fund",
        r"donate",
        r"i'd like to",
        r"i would like to",
        r"how much",
        r"pricing",
        r"cost",
        r"price",
    ]
    CONVERSATION_TTL_SECONDS: int = 86400  # 24 hours
    
    # Payment request
    PAYMENT_CHAIN_ID: int = 84532  # Base Sepolia
    PAYMENT_CURRENCY: str = "USDC"
    
    # Stream buffer
    MESSAGE_BUFFER_SIZE: int = 1000
    
    # CORS - accepts comma-separated string or list
    CORS_ORIGINS: str = "http://localhost:3000"
    
    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from comma-separated string or list."""
        if isinstance(v, list):
            return ",".join(v)
        return v
    
    @field_validator("GARDEN_TIER_AMOUNTS")
    @classmethod
    def validate_tiers(cls, v: list[float]) -> list[float]:
        """Require exactly three ascending, positive tier amounts."""
        if len(v) != 3:
            raise ValueError("GARDEN_TIER_AMOUNTS must contain exactly 3 amounts")
        if v[0] <= 0 or not (v[0] < v[1] < v[2]):
            raise ValueError("GARDEN_TIER_AMOUNTS must be positive and strictly ascending")
        return v
    
    @field_validator("GARDEN_FLEXIBILITY")
    @classmethod
    def validate_flexibility(cls, v: float) -> float:
        """Flexibility is a fraction in [0, 1)."""
        if not 0.0 <= v < 1.0:
            raise ValueError("GARDEN_FLEXIBILITY must be in [0, 1)")
        return v
    
    def get_cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]
    
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "./data/logs/app.log"
    
    # Streaming / SSE
    SSE_HEARTBEAT_INTERVAL: int = 15  # seconds between heartbeat events
    SSE_POLL_INTERVAL: float = 1.0  # seconds between buffer polls
    
    class Config:
        # Look for .env in project root first, then backend/.env
        env_file = [
            str(Path(__file__).parent.parent.parent.parent / ".env"),
            str(Path(__file__).parent.parent.parent / ".env"),
        ]
        env_file_encoding = "utf-8"
        case_sensitive = True


# Singleton instance
settings = Settings()
