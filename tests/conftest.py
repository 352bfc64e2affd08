"""Pytest configuration and shared fixtures for estimate engine tests."""

import os
import sys
import pytest
from unittest.mock import AsyncMock, MagicMock, patch


# ============================================================================
# Ensure local imports work (config/, models/, pricing/, services/)
# ============================================================================
#
# The codebase uses absolute imports like `from models...` / `from pricing...`,
# so the repository root must be importable as the top-level module root.
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


from tests.fixtures.firestore_mocks import make_snapshot  # noqa: E402


# ============================================================================
# Firebase Mocks
# ============================================================================

@pytest.fixture
def mock_firestore_client():
    """Mock Firestore client.

    Every collection()/document() call returns the same chained mocks, so
    tests configure behaviour on ``client.document_mock``.
    """
    client = MagicMock()

    collection_mock = MagicMock()
    document_mock = MagicMock()
    document_mock.id = "new-estimate-id"

    client.collection.return_value = collection_mock
    collection_mock.document.return_value = document_mock
    document_mock.collection.return_value = collection_mock

    document_mock.get = AsyncMock(return_value=make_snapshot(exists=False))
    document_mock.set = AsyncMock()
    document_mock.update = AsyncMock()
    document_mock.delete = AsyncMock()
    collection_mock.stream.return_value = []
    collection_mock.order_by.return_value = collection_mock

    batch = MagicMock()
    batch.commit = AsyncMock()
    client.batch.return_value = batch
    client.write_option.return_value = "precondition-option"

    client.collection_mock = collection_mock
    client.document_mock = document_mock
    client.batch_mock = batch
    return client


@pytest.fixture
def mock_estimate_store(mock_firestore_client):
    """EstimateStore with mocked client."""
    from services.firestore_service import EstimateStore

    return EstimateStore(db=mock_firestore_client)


# ============================================================================
# LLM Mocks
# ============================================================================

@pytest.fixture
def mock_chat_openai():
    """Mock ChatOpenAI client."""
    mock = AsyncMock()
    mock.ainvoke.return_value = MagicMock(
        content='{"lines": []}',
        response_metadata={"token_usage": {"total_tokens": 100}}
    )
    return mock


@pytest.fixture
def mock_ai_pricing_service(mock_chat_openai):
    """AiPricingService wired to the mocked chat client."""
    from services.ai_pricing_service import AiPricingService

    service = AiPricingService(model="gpt-4o-mini", temperature=0.1, api_key="test-api-key")
    service._client = mock_chat_openai
    return service


# ============================================================================
# Pricing Fixtures
# ============================================================================

@pytest.fixture
def pricing_config():
    from config.pricing_config import DEFAULT_PRICING_CONFIG

    return DEFAULT_PRICING_CONFIG


@pytest.fixture
def ontario():
    from pricing.jurisdictions import get_jurisdiction

    return get_jurisdiction("ON")


@pytest.fixture
def fallback_pricer(ontario, pricing_config):
    """LinePricer with no user rates or web benchmarks."""
    from pricing.benchmark import BenchmarkBlender
    from pricing.line_pricer import LinePricer

    blender = BenchmarkBlender("medium", ontario, [], {}, pricing_config)
    return LinePricer(blender, ontario.tax_rate, pricing_config)


@pytest.fixture
def engine(pricing_config):
    from pricing.engine import PricingEngine

    return PricingEngine(pricing_config)


# ============================================================================
# Environment Setup
# ============================================================================

@pytest.fixture(autouse=True)
def mock_settings():
    """Mock settings for all tests."""
    with patch('config.settings.settings') as mock:
        mock.openai_api_key = "test-api-key"
        mock.llm_model = "gpt-4o-mini"
        mock.llm_temperature = 0.1
        mock.use_firebase_emulators = True
        mock.default_price_point = "medium"
        mock.default_jurisdiction = "ON"
        mock.signal_concurrency = 3
        mock.ai_pricing_enabled = False
        mock.benchmark_search_enabled = False
        mock.log_level = "INFO"
        yield mock


@pytest.fixture(autouse=True)
def reset_search_circuit_breaker():
    """The search circuit breaker is class-level state."""
    from services.benchmark_search_service import BenchmarkSearchService

    BenchmarkSearchService.reset_circuit_breaker()
    yield
    BenchmarkSearchService.reset_circuit_breaker()
