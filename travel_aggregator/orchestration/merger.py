"""Merging of per-provider result lists."""

from typing import List, Sequence

from travel_aggregator.schemas import AirportResult, ResultBase, price_sort_value


def merge_results(provider_results: Sequence[List[ResultBase]], max_results: int) -> List[ResultBase]:
    """Merge provider lists into one price-ordered list.

    Lists are concatenated in priority order and stable-sorted by price, so
    equal prices keep provider priority. A missing price sorts as zero. The
    merged list keeps up to twice ``max_results`` entries.
    """
    merged: List[ResultBase] = []
    for results in provider_results:
        merged.extend(results)

    merged.sort(key=price_sort_value)
    return merged[:max_results * 2]


def dedupe_airports(provider_results: Sequence[List[ResultBase]]) -> List[List[ResultBase]]:
    """Drop airports whose code was already returned by a higher-priority provider."""
    seen = set()
    deduped = []
    for results in provider_results:
        kept = []
        for result in results:
            if isinstance(result, AirportResult):
                code = result.code.upper()
                if code in seen:
                    continue
                seen.add(code)
            kept.append(result)
        deduped.append(kept)
    return deduped
