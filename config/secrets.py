"""Secret access for the pricing signal providers.

The AI pricing model and the benchmark search both need API keys. Deployed
functions read them from Secret Manager; under the emulator they come from
the environment (usually a local .env loaded by config.settings).

A missing key is not an error here: callers treat it as "provider
unavailable" and price from the remaining signals.
"""

import os
from functools import lru_cache
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)

OPENAI_API_KEY = "OPENAI_API_KEY"
SERP_API_KEY = "SERP_API_KEY"


def is_emulator_mode() -> bool:
    """True when running under the Firebase emulator suite."""
    return (
        os.environ.get("FUNCTIONS_EMULATOR") == "true"
        or os.environ.get("FIRESTORE_EMULATOR_HOST") is not None
    )


def _gcp_project() -> Optional[str]:
    return os.environ.get("GCLOUD_PROJECT") or os.environ.get("GOOGLE_CLOUD_PROJECT")


def _from_environment(secret_id: str) -> Optional[str]:
    value = (os.environ.get(secret_id) or "").strip()
    return value or None


def get_secret(secret_id: str) -> Optional[str]:
    """Resolve a secret by name.

    Falls back to the environment when Secret Manager is unreachable or the
    GCP project cannot be determined. Blank values count as missing.
    """
    if is_emulator_mode():
        value = _from_environment(secret_id)
        logger.debug("secret_resolved", secret_id=secret_id, source="environment", found=value is not None)
        return value

    project_id = _gcp_project()
    if not project_id:
        logger.warning("secret_project_unknown", secret_id=secret_id)
        return _from_environment(secret_id)

    try:
        from google.cloud import secretmanager

        client = secretmanager.SecretManagerServiceClient()
        response = client.access_secret_version(
            request={"name": f"projects/{project_id}/secrets/{secret_id}/versions/latest"}
        )
        value = response.payload.data.decode("UTF-8").strip() or None
        logger.debug("secret_resolved", secret_id=secret_id, source="secret_manager", found=value is not None)
        return value
    except Exception as e:
        logger.warning("secret_manager_failed", secret_id=secret_id, error=str(e))
        return _from_environment(secret_id)


@lru_cache(maxsize=1)
def get_openai_api_key() -> Optional[str]:
    """Key for the AI pricing model."""
    return get_secret(OPENAI_API_KEY)


@lru_cache(maxsize=1)
def get_serp_api_key() -> Optional[str]:
    """Key for benchmark and material evidence searches."""
    return get_secret(SERP_API_KEY)


def clear_secret_cache() -> None:
    """Drop cached keys, e.g. after rotation."""
    get_openai_api_key.cache_clear()
    get_serp_api_key.cache_clear()
