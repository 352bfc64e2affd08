"""Estimate engine configuration settings.

Loads configuration from environment variables with sensible defaults.
Secrets are loaded via Firebase Secrets Manager (production) or environment variables (emulator).
"""

import os
from typing import Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Non-secret configuration (emulator hosts, feature flags) may come from .env
load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Note: Secrets (OPENAI_API_KEY, SERP_API_KEY) are accessed via the
    config.secrets module. The openai_api_key property delegates to it.
    """

    # LLM Configuration (non-secrets)
    llm_model: str = field(default_factory=lambda: os.getenv("LLM_MODEL", "gpt-4o-mini"))
    llm_temperature: float = field(default_factory=lambda: float(os.getenv("LLM_TEMPERATURE", "0.1")))

    # Firebase Configuration
    firebase_project_id: Optional[str] = field(default_factory=lambda: os.getenv("FIREBASE_PROJECT_ID"))
    use_firebase_emulators: bool = field(default_factory=lambda: _env_flag("USE_FIREBASE_EMULATORS", "false"))
    firestore_emulator_host: str = field(default_factory=lambda: os.getenv("FIRESTORE_EMULATOR_HOST", "localhost:8081"))

    # Pricing Configuration
    default_price_point: str = field(default_factory=lambda: os.getenv("DEFAULT_PRICE_POINT", "medium"))
    default_jurisdiction: str = field(default_factory=lambda: os.getenv("DEFAULT_JURISDICTION", "ON"))

    # Signal gathering
    signal_concurrency: int = field(default_factory=lambda: int(os.getenv("SIGNAL_CONCURRENCY", "3")))
    ai_pricing_enabled: bool = field(default_factory=lambda: _env_flag("AI_PRICING_ENABLED", "true"))
    benchmark_search_enabled: bool = field(default_factory=lambda: _env_flag("BENCHMARK_SEARCH_ENABLED", "true"))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # Internal: cached secret value (use openai_api_key property instead)
    _openai_api_key: Optional[str] = field(default=None, repr=False)

    @property
    def openai_api_key(self) -> Optional[str]:
        """Get OpenAI API key from Firebase Secrets Manager or environment."""
        if self._openai_api_key is None:
            from config.secrets import get_openai_api_key
            self._openai_api_key = get_openai_api_key()
        return self._openai_api_key

    def validate(self) -> None:
        """Validate required settings are present.

        Raises:
            ValueError: If required settings are missing.
        """
        if self.ai_pricing_enabled and not self.openai_api_key and not self.use_firebase_emulators:
            raise ValueError("OPENAI_API_KEY is required in production when AI pricing is enabled")
        if self.signal_concurrency < 1:
            raise ValueError("SIGNAL_CONCURRENCY must be at least 1")

    @property
    def is_emulator_mode(self) -> bool:
        """Check if running in emulator mode."""
        return self.use_firebase_emulators


# Singleton settings instance
settings = Settings()
