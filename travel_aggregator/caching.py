"""Cache key construction and TTL policy."""

from typing import Optional, Union
from urllib.parse import quote

from travel_aggregator.config import Settings
from travel_aggregator.schemas import Capability, CapabilityQuery, parse_capability

ALL_PROVIDERS = "all"
# Explicit selectors carry a prefix so no provider name can produce ALL_PROVIDERS
SELECTOR_PREFIX = "only:"


def _key_part(text: str) -> str:
    # ASCII only; separators inside values are percent-encoded.
    # quote() never escapes "_", so it is replaced by hand.
    return quote(text, safe="-.:+@,").replace("_", "%5F")


def build_cache_key(
    scope: str,
    capability: Union[str, Capability],
    query: CapabilityQuery,
    preferred_provider: Optional[str] = None,
) -> str:
    """Build the deterministic key for an aggregated search.

    Format: ``{scope}_{capability}_{param1}_..._{only:preferred_provider|all}``.
    Parameters are taken in the query model's declared order, so the key does
    not depend on how the caller ordered its mapping.
    """
    capability = parse_capability(capability)
    preferred = preferred_provider.strip().lower() if preferred_provider else ""
    selector = f"{SELECTOR_PREFIX}{preferred}" if preferred else ALL_PROVIDERS
    parts = [scope, capability.value]
    parts.extend(_key_part(part) for part in query.cache_key_parts())
    parts.append(_key_part(selector))
    return "_".join(parts)


def build_provider_cache_key(
    provider_name: str,
    capability: Union[str, Capability],
    query: CapabilityQuery,
) -> str:
    """Key for a single provider's own upstream response."""
    capability = parse_capability(capability)
    parts = [provider_name, capability.value]
    parts.extend(_key_part(part) for part in query.cache_key_parts())
    return "_".join(parts)


def capability_key_pattern(scope: str, capability: Union[str, Capability]) -> str:
    """Glob pattern matching every aggregated key of a capability."""
    return f"{scope}_{parse_capability(capability).value}_*"


def ttl_for(capability: Union[str, Capability], settings: Settings) -> int:
    """Location lookups live longer than priced search results."""
    if parse_capability(capability) == Capability.AIRPORT:
        return settings.location_cache_ttl_seconds
    return settings.search_cache_ttl_seconds
