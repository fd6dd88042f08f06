"""Provider health aggregation."""

import logging
from datetime import datetime
from typing import Dict

from travel_aggregator.errors import AggregatorError, ErrorKind
from travel_aggregator.registry import ProviderDescriptor, ProviderRegistry
from travel_aggregator.schemas import HealthReport, HealthSummary, ProviderHealth

logger = logging.getLogger(__name__)


def overall_status(healthy: int, total: int) -> str:
    """Classify a healthy/total count into healthy, degraded or unhealthy.

    Any partial outage is degraded; only no healthy provider at all is unhealthy.
    """
    if total == 0 or healthy == 0:
        return "unhealthy"
    if healthy == total:
        return "healthy"
    return "degraded"


class HealthAggregator:
    """Checks every registered provider and summarizes the result."""

    def __init__(self, registry: ProviderRegistry):
        self.registry = registry

    async def _check(self, descriptor: ProviderDescriptor) -> ProviderHealth:
        adapter = descriptor.adapter
        checked_at = datetime.utcnow()
        try:
            available = await adapter.is_available()
            result = await adapter.health_check()
        except AggregatorError as e:
            logger.error(f"Health check for {descriptor.name} failed: {e.message}")
            return ProviderHealth(
                provider_name=descriptor.name,
                available=False,
                status="unhealthy",
                last_error=e.kind.value,
                checked_at=checked_at,
            )
        except Exception as e:
            logger.error(f"Health check for {descriptor.name} raised {type(e).__name__}: {e}")
            return ProviderHealth(
                provider_name=descriptor.name,
                available=False,
                status="unhealthy",
                last_error=ErrorKind.UNKNOWN_ERROR.value,
                checked_at=checked_at,
            )

        if not available:
            status = "unavailable"
        elif result.is_healthy:
            status = "healthy"
        else:
            status = result.status

        return ProviderHealth(
            provider_name=descriptor.name,
            available=available,
            status=status,
            last_error=None if status == "healthy" else result.detail,
            checked_at=checked_at,
        )

    async def check(self) -> HealthReport:
        """Run a health check against every provider. Results are never cached."""
        providers: Dict[str, ProviderHealth] = {}
        for descriptor in self.registry.descriptors():
            providers[descriptor.name] = await self._check(descriptor)

        total = len(providers)
        healthy = sum(1 for health in providers.values() if health.status == "healthy")
        fraction = healthy / total if total else 0.0
        status = overall_status(healthy, total)

        if status != "healthy":
            logger.warning(f"Provider health {status}: {healthy}/{total} healthy")

        return HealthReport(
            status=status,
            providers=providers,
            summary=HealthSummary(total=total, healthy=healthy, healthy_fraction=fraction),
            checked_at=datetime.utcnow(),
        )
