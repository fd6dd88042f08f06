"""Capability orchestrator: provider fallback, aggregation and caching.

One ``search`` call runs a query against the providers configured for its
capability, merges what comes back into a single price-ordered list and
records a per-provider report. Provider failures never escape ``search``;
they are recorded in the report and, when nothing succeeded, summarized in
``SearchResponse.error``.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from travel_aggregator.caching import build_cache_key, capability_key_pattern, ttl_for
from travel_aggregator.config import Settings
from travel_aggregator.errors import (
    RETRYABLE_KINDS,
    USER_MESSAGES,
    AggregatorError,
    CacheError,
    ErrorInfo,
    ErrorKind,
    classify_exception,
)
from travel_aggregator.orchestration.health import HealthAggregator
from travel_aggregator.orchestration.merger import dedupe_airports, merge_results
from travel_aggregator.registry import ProviderRegistry
from travel_aggregator.repositories.cache import CacheRepository
from travel_aggregator.schemas import (
    Capability,
    CapabilityQuery,
    HealthReport,
    ProviderReportEntry,
    ResultBase,
    SearchMeta,
    SearchResponse,
    build_query,
    parse_capability,
)

logger = logging.getLogger(__name__)

ProviderOutcome = Tuple[List[ResultBase], ProviderReportEntry]

# Capabilities answered by the first provider returning anything
SHORT_CIRCUIT_CAPABILITIES = frozenset({Capability.CAR})


def _error_info(kind: ErrorKind) -> ErrorInfo:
    return ErrorInfo(kind=kind, message=USER_MESSAGES[kind], should_retry=kind in RETRYABLE_KINDS)


class CapabilityOrchestrator:
    """Runs capability searches across the registered providers."""

    def __init__(
        self,
        settings: Settings,
        registry: ProviderRegistry,
        cache: Optional[CacheRepository] = None,
    ):
        self.settings = settings
        self.registry = registry
        self.cache_repo = cache
        self.health = HealthAggregator(registry)

    def provider_priority(self, capability: Capability) -> List[str]:
        """Configured provider order for a capability."""
        return list(getattr(self.settings, f"{capability.value}_provider_priority"))

    async def search(
        self,
        capability: Union[str, Capability],
        query: Union[CapabilityQuery, Mapping[str, Any]],
        preferred_provider: Optional[str] = None,
    ) -> SearchResponse:
        """
        Search one capability across its providers.

        Args:
            capability: Capability tag, e.g. ``flight``
            query: Query model or loose parameters for the capability
            preferred_provider: Restrict the search to this provider

        Returns:
            SearchResponse with merged results and the provider report

        Raises:
            QueryValidationError: The query parameters are invalid
            CacheError: The cache backend failed
        """
        capability = parse_capability(capability)
        query = build_query(capability, query)
        if preferred_provider is not None:
            preferred_provider = preferred_provider.strip().lower() or None

        cache_key = build_cache_key(self.settings.cache_scope_prefix, capability, query, preferred_provider)
        if self.cache_repo is not None:
            cached = self.cache_repo.get(cache_key)
            if cached is not None:
                logger.info(f"Serving {capability.value} search from cache: {cache_key}")
                return SearchResponse.model_validate(cached)

        candidates = [preferred_provider] if preferred_provider else self.provider_priority(capability)
        logger.info(f"Searching {capability.value} with providers: {', '.join(candidates)}")

        if capability in SHORT_CIRCUIT_CAPABILITIES:
            outcomes = await self._first_success(capability, query, candidates)
        else:
            outcomes = await self._fan_out(capability, query, candidates)

        provider_results = [results for results, _ in outcomes]
        if capability == Capability.AIRPORT:
            provider_results = dedupe_airports(provider_results)
        merged = merge_results(provider_results, query.max_results)

        report = [entry for _, entry in outcomes]
        response = SearchResponse(
            capability=capability,
            results=merged,
            provider_report=report,
            meta=SearchMeta(
                query=query.as_params(),
                preferred_provider=preferred_provider,
                searched_at=datetime.utcnow(),
                total_results=len(merged),
            ),
        )

        if response.all_providers_failed:
            failures = [entry.error_kind for entry in report if entry.status == "error"]
            kind = failures[-1] if failures else ErrorKind.SERVICE_UNAVAILABLE
            response.error = _error_info(kind)
            logger.warning(f"No provider answered the {capability.value} search ({kind.value})")
            return response

        if self.cache_repo is not None:
            self.cache_repo.set(cache_key, response.model_dump(mode="json"), ttl_for(capability, self.settings))

        logger.info(
            f"{capability.value.capitalize()} search found {len(merged)} results "
            f"from {', '.join(response.succeeded_providers)}"
        )
        return response

    async def _fan_out(
        self,
        capability: Capability,
        query: CapabilityQuery,
        candidates: List[str],
    ) -> List[ProviderOutcome]:
        """Query every candidate with bounded concurrency, keeping priority order."""
        semaphore = asyncio.Semaphore(max(1, self.settings.max_concurrent_providers))

        async def bounded(name: str) -> ProviderOutcome:
            async with semaphore:
                return await self._run_provider(name, capability, query)

        return list(await asyncio.gather(*(bounded(name) for name in candidates)))

    async def _first_success(
        self,
        capability: Capability,
        query: CapabilityQuery,
        candidates: List[str],
    ) -> List[ProviderOutcome]:
        """Query candidates in order until one returns a non-empty list."""
        outcomes = []
        for name in candidates:
            outcome = await self._run_provider(name, capability, query)
            outcomes.append(outcome)
            if outcome[0]:
                break
        return outcomes

    async def _run_provider(self, name: str, capability: Capability, query: CapabilityQuery) -> ProviderOutcome:
        """Run one provider and record its status."""
        descriptor = self.registry.get(name)
        if descriptor is None:
            logger.warning(f"Provider {name} is not registered")
            return [], ProviderReportEntry(name=name, status="skipped", error="Provider not registered")
        if not descriptor.supports(capability):
            return [], ProviderReportEntry(
                name=name, status="skipped", error=f"Does not support {capability.value} search"
            )
        if not await descriptor.adapter.is_available():
            logger.info(f"Provider {name} is not available, skipping")
            return [], ProviderReportEntry(name=name, status="skipped", error="Provider not available")

        started = time.monotonic()
        try:
            results = await asyncio.wait_for(
                descriptor.adapter.search(capability, query),
                timeout=self.settings.provider_timeout_seconds,
            )
        except CacheError:
            raise
        except asyncio.TimeoutError:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            logger.error(f"Provider {name} timed out after {elapsed_ms}ms")
            return [], ProviderReportEntry(
                name=name,
                status="error",
                error="Search timed out",
                error_kind=ErrorKind.NETWORK_ERROR,
                latency_ms=elapsed_ms,
            )
        except Exception as e:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            info = classify_exception(e, context={"provider": name, "capability": capability.value})
            message = e.message if isinstance(e, AggregatorError) else info.message
            logger.error(f"Provider {name} failed: {message}")
            return [], ProviderReportEntry(
                name=name,
                status="error",
                error=message,
                error_kind=info.kind,
                latency_ms=elapsed_ms,
            )

        elapsed_ms = int((time.monotonic() - started) * 1000)
        tagged = [result.model_copy(update={"source_provider": name}) for result in results]
        logger.info(f"Provider {name} returned {len(tagged)} {capability.value} results in {elapsed_ms}ms")
        return tagged, ProviderReportEntry(name=name, status="success", count=len(tagged), latency_ms=elapsed_ms)

    async def get_available_providers(self) -> Dict[str, Dict[str, Any]]:
        """Availability and health of every registered provider."""
        available: Dict[str, Dict[str, Any]] = {}
        for descriptor in self.registry.descriptors():
            adapter = descriptor.adapter
            try:
                is_available = await adapter.is_available()
                health = await adapter.health_check()
                available[descriptor.name] = {
                    "name": descriptor.name,
                    "available": is_available,
                    "capabilities": sorted(c.value for c in descriptor.capabilities),
                    "health": health.model_dump(exclude_none=True),
                }
            except Exception as e:
                kind = e.kind if isinstance(e, AggregatorError) else ErrorKind.UNKNOWN_ERROR
                logger.error(f"Error checking provider {descriptor.name}: {type(e).__name__}: {e}")
                available[descriptor.name] = {
                    "name": descriptor.name,
                    "available": False,
                    "capabilities": sorted(c.value for c in descriptor.capabilities),
                    "error": kind.value,
                }
        return available

    async def health_check(self) -> HealthReport:
        return await self.health.check()

    def clear_cache(self, capability: Union[str, Capability]) -> Dict[str, Any]:
        """Delete every aggregated cache entry of a capability."""
        capability = parse_capability(capability)
        if self.cache_repo is None:
            return {"capability": capability.value, "cleared_key_count": 0}

        keys = self.cache_repo.keys(capability_key_pattern(self.settings.cache_scope_prefix, capability))
        cleared = self.cache_repo.delete(keys)
        if cleared:
            logger.info(f"Cleared {cleared} {self.settings.cache_scope_prefix} {capability.value} cache entries")
        return {"capability": capability.value, "cleared_key_count": cleared}

    async def get_provider_stats(self) -> Dict[str, Any]:
        """Provider counts and per-provider details."""
        details: Dict[str, Dict[str, Any]] = {}
        available_count = 0

        for name, info in (await self.get_available_providers()).items():
            if info["available"]:
                available_count += 1
            details[name] = {
                "name": name,
                "available": info["available"],
                "capabilities": info["capabilities"],
                "health": (info.get("health") or {}).get("status", "unhealthy"),
                "last_check": datetime.utcnow().isoformat(),
            }

        stats: Dict[str, Any] = {
            "total_providers": len(self.registry),
            "available_providers": available_count,
            "provider_details": details,
        }
        if self.cache_repo is not None:
            stats["cache"] = self.cache_repo.get_stats()
        return stats
