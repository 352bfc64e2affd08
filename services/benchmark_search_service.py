"""Web benchmark search via SerpAPI.

Finds per-sqft labor benchmarks for work categories and per-sqft material
price evidence for specific products by scraping "$x / sq ft" mentions out
of organic search snippets.

Every public lookup returns a SignalResult; search failures never propagate.
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
import structlog

from config.errors import ErrorCode, SignalError
from config.pricing_config import PricingConfig, DEFAULT_PRICING_CONFIG
from models.pricing_signal import MaterialEvidence, SignalResult
from pricing.evidence import extract_sqft_prices, median, percentile

logger = structlog.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

SERPAPI_BASE_URL = "https://serpapi.com"
SEARCH_TIMEOUT_MS = 20000
DEFAULT_NUM_RESULTS = 10

CIRCUIT_BREAKER_RESET_MS = 60 * 60 * 1000  # 1 hour reset

SIGNAL_SOURCE = "web_search"


@dataclass
class SearchResult:
    """Single organic search result."""
    title: str
    link: str
    snippet: str
    position: int


@dataclass
class SearchResponse:
    """Organic results for one query."""
    query: str
    results: List[SearchResult]
    search_time_ms: float
    cached: bool = False

    @property
    def texts(self) -> List[str]:
        return [f"{r.title} {r.snippet}" for r in self.results]


class BenchmarkSearchService:
    """SerpAPI-backed benchmark and evidence lookups."""

    # Class-level circuit breaker state (shared across instances)
    _circuit_open = False
    _circuit_opened_at: Optional[float] = None

    def __init__(self, api_key: Optional[str] = None, config: PricingConfig = DEFAULT_PRICING_CONFIG):
        if api_key is None:
            from config.secrets import get_serp_api_key
            api_key = get_serp_api_key()
        self.api_key = api_key
        self.config = config
        if not self.api_key:
            logger.warning("serp_api_key_missing", message="SERP_API_KEY not configured")

        # Simple in-memory cache (15 min TTL)
        self._cache: Dict[str, tuple] = {}
        self._cache_ttl = 900

    @property
    def available(self) -> bool:
        return bool(self.api_key) and not self._is_circuit_open()

    def _is_circuit_open(self) -> bool:
        """Check if circuit breaker is open (API unavailable)."""
        if not BenchmarkSearchService._circuit_open:
            return False

        if BenchmarkSearchService._circuit_opened_at:
            elapsed_ms = (time.time() - BenchmarkSearchService._circuit_opened_at) * 1000
            if elapsed_ms > CIRCUIT_BREAKER_RESET_MS:
                logger.info("search_circuit_breaker_reset")
                BenchmarkSearchService._circuit_open = False
                BenchmarkSearchService._circuit_opened_at = None
                return False

        return True

    def _trip_circuit_breaker(self) -> None:
        BenchmarkSearchService._circuit_open = True
        BenchmarkSearchService._circuit_opened_at = time.time()
        logger.warning("search_circuit_breaker_tripped", reason="API quota exhausted")

    @classmethod
    def reset_circuit_breaker(cls) -> None:
        cls._circuit_open = False
        cls._circuit_opened_at = None

    def _get_cached(self, cache_key: str) -> Optional[Any]:
        if cache_key in self._cache:
            result, timestamp = self._cache[cache_key]
            if time.time() - timestamp < self._cache_ttl:
                return result
            del self._cache[cache_key]
        return None

    def _set_cached(self, cache_key: str, result: Any) -> None:
        self._cache[cache_key] = (result, time.time())

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.HTTPError, httpx.TimeoutException)),
    )
    async def _make_request(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Call SerpAPI with retry on transport errors.

        Raises:
            httpx.HTTPError: On HTTP errors after retries
            RuntimeError: If the circuit breaker is open or quota is exhausted
            ValueError: If the API key is not configured
        """
        if self._is_circuit_open():
            raise RuntimeError("SerpAPI circuit breaker is open - quota exhausted")
        if not self.api_key:
            raise ValueError("SerpAPI key not configured")

        async with httpx.AsyncClient(timeout=SEARCH_TIMEOUT_MS / 1000) as client:
            response = await client.get(
                f"{SERPAPI_BASE_URL}/search",
                params={**params, "api_key": self.api_key},
            )

            if response.status_code == 429:
                self._trip_circuit_breaker()
                raise RuntimeError("SerpAPI quota exhausted")

            response.raise_for_status()
            return response.json()

    async def search(self, query: str, num_results: int = DEFAULT_NUM_RESULTS) -> SearchResponse:
        """Organic Google search (Canada)."""
        cache_key = f"search:{query}:{num_results}"
        cached = self._get_cached(cache_key)
        if cached:
            cached.cached = True
            return cached

        start_time = time.time()
        data = await self._make_request({
            "engine": "google",
            "q": query,
            "num": min(num_results, 100),
            "gl": "ca",
            "hl": "en",
        })

        results = [
            SearchResult(
                title=item.get("title", ""),
                link=item.get("link", ""),
                snippet=item.get("snippet", ""),
                position=item.get("position", i + 1),
            )
            for i, item in enumerate(data.get("organic_results", []))
        ]
        search_time = round((time.time() - start_time) * 1000, 2)
        response = SearchResponse(query=query, results=results, search_time_ms=search_time)
        self._set_cached(cache_key, response)

        logger.info("search_complete", query=query[:50], results_count=len(results), search_time_ms=search_time)
        return response

    async def labor_benchmark(self, category: str, province: str) -> SignalResult:
        """Median per-sqft installed labor price for a category."""
        query = f"{category} labor cost per square foot {province} Canada"
        return await self._lookup(query, self._median_rate)

    async def material_evidence(self, material: str, province: str) -> SignalResult:
        """Per-sqft material price samples and their 75th percentile."""
        query = f"{material} price per square foot {province} Canada"
        return await self._lookup(query, self._evidence)

    def _median_rate(self, query: str, samples: List[float]) -> float:
        return median(samples)

    def _evidence(self, query: str, samples: List[float]) -> MaterialEvidence:
        return MaterialEvidence(
            query=query,
            samples=samples,
            p75=percentile(samples, self.config.evidence_percentile),
        )

    async def _lookup(self, query: str, build) -> SignalResult:
        try:
            response = await self.search(query)
        except Exception as e:
            logger.warning("signal_degraded", source=SIGNAL_SOURCE, query=query[:50], error=str(e))
            return SignalResult.err(SignalError(
                SIGNAL_SOURCE,
                f"Search failed: {str(e)}",
                code=ErrorCode.EXTERNAL_API_ERROR,
                details={"query": query},
            ))

        samples = extract_sqft_prices(response.texts, self.config)
        if not samples:
            return SignalResult.missing()
        return SignalResult.ok(build(query, samples))
