"""Ticket price comparison across providers."""

import logging
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel

from travel_aggregator.errors import ErrorInfo
from travel_aggregator.orchestration.orchestrator import CapabilityOrchestrator
from travel_aggregator.schemas import ProviderReportEntry, TicketResult

logger = logging.getLogger(__name__)

COMPARISON_MAX_RESULTS = 50
_CENTS = Decimal("0.01")


class PriceRange(BaseModel):
    min: Decimal
    max: Decimal
    average: Decimal
    median: Decimal
    count: int


class ProviderTicketStats(BaseModel):
    total_tickets: int
    available_sections: List[str] = []
    delivery_methods: List[str] = []


class TicketPriceComparison(BaseModel):
    event_name: str
    venue_name: Optional[str] = None
    city: Optional[str] = None
    event_date: Optional[date] = None
    price_ranges: Dict[str, PriceRange] = {}
    provider_stats: Dict[str, ProviderTicketStats] = {}
    provider_report: List[ProviderReportEntry] = []
    error: Optional[ErrorInfo] = None
    compared_at: datetime


def price_range(prices: Sequence[Decimal]) -> Optional[PriceRange]:
    """Min, max, average and median of the positive prices, or None if there are none."""
    ordered = sorted(p for p in prices if p > 0)
    if not ordered:
        return None
    average = (sum(ordered) / len(ordered)).quantize(_CENTS, rounding=ROUND_HALF_UP)
    return PriceRange(
        min=ordered[0],
        max=ordered[-1],
        average=average,
        # Upper median for even counts
        median=ordered[len(ordered) // 2],
        count=len(ordered),
    )


def _distinct(values) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


async def compare_ticket_prices(
    orchestrator: CapabilityOrchestrator,
    event_name: str,
    venue_name: Optional[str] = None,
    city: Optional[str] = None,
    event_date: Optional[date] = None,
) -> TicketPriceComparison:
    """Search tickets for an event and summarize prices per provider.

    Tickets without a price count towards a provider's totals but are left
    out of its price range.
    """
    response = await orchestrator.search(
        "ticket",
        {
            "event_name": event_name,
            "venue_name": venue_name,
            "city": city,
            "event_date": event_date,
            "max_results": COMPARISON_MAX_RESULTS,
        },
    )

    by_provider: Dict[str, List[TicketResult]] = {}
    for ticket in response.results:
        if isinstance(ticket, TicketResult):
            by_provider.setdefault(ticket.source_provider, []).append(ticket)

    price_ranges: Dict[str, PriceRange] = {}
    provider_stats: Dict[str, ProviderTicketStats] = {}
    for provider, tickets in by_provider.items():
        summary = price_range([t.price.total for t in tickets if t.price is not None])
        if summary is not None:
            price_ranges[provider] = summary
        provider_stats[provider] = ProviderTicketStats(
            total_tickets=len(tickets),
            available_sections=_distinct(t.section for t in tickets),
            delivery_methods=_distinct(t.delivery for t in tickets),
        )

    logger.info(f"Compared ticket prices for {event_name} across {len(by_provider)} providers")
    return TicketPriceComparison(
        event_name=event_name,
        venue_name=venue_name,
        city=city,
        event_date=event_date,
        price_ranges=price_ranges,
        provider_stats=provider_stats,
        provider_report=response.provider_report,
        error=response.error,
        compared_at=datetime.utcnow(),
    )
