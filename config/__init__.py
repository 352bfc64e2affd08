"""Estimate engine configuration.

This package contains:
- settings: Environment variables and configuration
- secrets: Unified secret access (Firebase Secrets Manager)
- errors: Custom exceptions and error codes
- pricing_config: Versioned pricing heuristics
"""

from config.settings import settings
from config.errors import PricingError
from config.secrets import get_secret, get_openai_api_key, get_serp_api_key
from config.pricing_config import PricingConfig, DEFAULT_PRICING_CONFIG

__all__ = [
    "settings",
    "PricingError",
    "get_secret",
    "get_openai_api_key",
    "get_serp_api_key",
    "PricingConfig",
    "DEFAULT_PRICING_CONFIG",
]
