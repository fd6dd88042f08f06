"""Shared schema: capability queries, normalized results and reports.

Every provider adapter normalizes its upstream payload into one of the
``NormalizedResult`` variants; nothing provider-specific travels past the
adapter boundary.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationError

from travel_aggregator.errors import ErrorInfo, ErrorKind, QueryValidationError


class Capability(str, Enum):
    """Searchable capabilities."""
    FLIGHT = "flight"
    HOTEL = "hotel"
    CAR = "car"
    TICKET = "ticket"
    AIRPORT = "airport"


def parse_capability(value: Union[str, Capability]) -> Capability:
    """Parse a capability tag, raising ``QueryValidationError`` if unknown."""
    try:
        return Capability(str(getattr(value, "value", value)).lower())
    except ValueError:
        raise QueryValidationError(f"Unknown capability: {value}")


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

class CapabilityQuery(BaseModel):
    """Base class for per-capability query parameters."""

    capability: ClassVar[Capability]
    # Ordered fields that make up the cache key
    key_fields: ClassVar[Tuple[str, ...]] = ()
    # Fields compared case-insensitively (airport/city codes, place names)
    location_fields: ClassVar[Tuple[str, ...]] = ()
    # (start, end) pair that must be chronologically ordered
    date_range: ClassVar[Optional[Tuple[str, str]]] = None

    max_results: int = Field(default=10, ge=1, le=100)

    def cache_key_parts(self) -> List[str]:
        """Ordered, normalized parameter values for cache key construction."""
        parts = []
        for name in self.key_fields:
            value = getattr(self, name)
            if value is None:
                parts.append("none")
                continue
            text = value.isoformat() if isinstance(value, (date, datetime)) else str(value)
            text = text.strip()
            if name in self.location_fields:
                text = text.lower()
            parts.append(text)
        return parts

    def check_dates(self) -> None:
        """Raise INVALID_DATE when the end of the date range precedes its start."""
        if not self.date_range:
            return
        start = getattr(self, self.date_range[0])
        end = getattr(self, self.date_range[1])
        if start is not None and end is not None and end < start:
            raise QueryValidationError(
                f"{self.date_range[1]} must not be before {self.date_range[0]}",
                kind=ErrorKind.INVALID_DATE,
            )

    def as_params(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class FlightQuery(CapabilityQuery):
    capability: ClassVar[Capability] = Capability.FLIGHT
    key_fields: ClassVar[Tuple[str, ...]] = (
        "origin", "destination", "departure_date", "return_date", "passengers", "max_results",
    )
    location_fields: ClassVar[Tuple[str, ...]] = ("origin", "destination")
    date_range: ClassVar[Optional[Tuple[str, str]]] = ("departure_date", "return_date")

    origin: str = Field(min_length=3, max_length=3)
    destination: str = Field(min_length=3, max_length=3)
    departure_date: date
    return_date: Optional[date] = None
    passengers: int = Field(default=1, ge=1, le=9)


class HotelQuery(CapabilityQuery):
    capability: ClassVar[Capability] = Capability.HOTEL
    key_fields: ClassVar[Tuple[str, ...]] = (
        "city_code", "check_in_date", "check_out_date", "adults", "radius", "max_results",
    )
    location_fields: ClassVar[Tuple[str, ...]] = ("city_code",)
    date_range: ClassVar[Optional[Tuple[str, str]]] = ("check_in_date", "check_out_date")

    city_code: str = Field(min_length=2)
    check_in_date: date
    check_out_date: date
    adults: int = Field(default=1, ge=1, le=9)
    radius: int = Field(default=5, ge=1, le=300)
    max_results: int = Field(default=20, ge=1, le=100)


class CarQuery(CapabilityQuery):
    capability: ClassVar[Capability] = Capability.CAR
    key_fields: ClassVar[Tuple[str, ...]] = (
        "pick_up_location", "drop_off_location", "pick_up_date", "drop_off_date", "max_results",
    )
    location_fields: ClassVar[Tuple[str, ...]] = ("pick_up_location", "drop_off_location")
    date_range: ClassVar[Optional[Tuple[str, str]]] = ("pick_up_date", "drop_off_date")

    pick_up_location: str = Field(min_length=3)
    drop_off_location: str = Field(min_length=3)
    pick_up_date: datetime
    drop_off_date: datetime


class TicketQuery(CapabilityQuery):
    capability: ClassVar[Capability] = Capability.TICKET
    key_fields: ClassVar[Tuple[str, ...]] = (
        "event_name", "venue_name", "city", "event_date", "max_results",
    )
    location_fields: ClassVar[Tuple[str, ...]] = ("venue_name", "city")

    event_name: str = Field(min_length=1)
    venue_name: Optional[str] = None
    city: Optional[str] = None
    event_date: Optional[date] = None


class AirportQuery(CapabilityQuery):
    capability: ClassVar[Capability] = Capability.AIRPORT
    key_fields: ClassVar[Tuple[str, ...]] = ("keyword", "max_results")
    location_fields: ClassVar[Tuple[str, ...]] = ("keyword",)

    keyword: str = Field(min_length=2)


QUERY_MODELS = {
    Capability.FLIGHT: FlightQuery,
    Capability.HOTEL: HotelQuery,
    Capability.CAR: CarQuery,
    Capability.TICKET: TicketQuery,
    Capability.AIRPORT: AirportQuery,
}


def build_query(
    capability: Union[str, Capability],
    params: Union[CapabilityQuery, Mapping[str, Any]],
) -> CapabilityQuery:
    """Build and validate the query model for a capability.
    Args:
        capability (Union[str, Capability]): Capability tag.
        params (Union[CapabilityQuery, Mapping[str, Any]]): Query model or loose parameters.
    Returns:
        CapabilityQuery: The validated, capability-specific query.
    """
    capability = parse_capability(capability)

    if isinstance(params, CapabilityQuery):
        if params.capability != capability:
            raise QueryValidationError(
                f"{type(params).__name__} cannot be used for {capability.value} search"
            )
        query = params
    else:
        model = QUERY_MODELS[capability]
        try:
            query = model.model_validate(dict(params))
        except ValidationError as exc:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
            raise QueryValidationError(f"Invalid {capability.value} query parameters: {fields}") from exc

    query.check_dates()
    return query


# ---------------------------------------------------------------------------
# Normalized results
# ---------------------------------------------------------------------------

class Price(BaseModel):
    total: Decimal = Field(ge=0)
    currency: str = "USD"
    base: Optional[Decimal] = None


class ResultBase(BaseModel):
    id: str
    source_provider: str = Field(min_length=1)
    price: Optional[Price] = None
    url: Optional[str] = None


class FlightSegment(BaseModel):
    departure_airport: Optional[str] = None
    departure_time: Optional[str] = None
    arrival_airport: Optional[str] = None
    arrival_time: Optional[str] = None
    carrier: Optional[str] = None
    flight_number: Optional[str] = None
    duration: Optional[str] = None


class Itinerary(BaseModel):
    duration: Optional[str] = None
    segments: List[FlightSegment] = []


class TripSegment(BaseModel):
    """One leg of a multi-city trip."""
    origin: str
    destination: str
    departure_date: date


class FlightResult(ResultBase):
    kind: Literal["flight"] = "flight"
    itineraries: List[Itinerary] = []
    cabin_class: Optional[str] = None
    stops: int = 0
    bookable_seats: Optional[int] = None
    trip_segment: Optional[TripSegment] = None


class HotelOffer(BaseModel):
    id: Optional[str] = None
    room_type: Optional[str] = None
    board_type: Optional[str] = None
    price: Optional[Price] = None
    refundable: bool = False


class HotelResult(ResultBase):
    kind: Literal["hotel"] = "hotel"
    name: str
    rating: Optional[float] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    amenities: List[str] = []
    offers: List[HotelOffer] = []


class CarResult(ResultBase):
    kind: Literal["car"] = "car"
    vehicle_class: Optional[str] = None
    transmission: Optional[str] = None
    seats: Optional[int] = None
    bags: Optional[int] = None
    air_conditioning: Optional[bool] = None
    vendor: Optional[str] = None
    pick_up_location: Optional[str] = None
    drop_off_location: Optional[str] = None


class TicketResult(ResultBase):
    kind: Literal["ticket"] = "ticket"
    event_name: Optional[str] = None
    venue_name: Optional[str] = None
    event_date: Optional[str] = None
    section: Optional[str] = None
    row: Optional[str] = None
    seat: Optional[str] = None
    delivery: Optional[str] = None
    max_price: Optional[Decimal] = None


class AirportResult(ResultBase):
    kind: Literal["airport"] = "airport"
    code: str
    name: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    location_type: Optional[str] = None


NormalizedResult = Annotated[
    Union[FlightResult, HotelResult, CarResult, TicketResult, AirportResult],
    Field(discriminator="kind"),
]


def price_sort_value(result: ResultBase) -> Decimal:
    """Price used for ordering; a missing price counts as zero."""
    if result.price is None:
        return Decimal(0)
    return result.price.total


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

class ProviderReportEntry(BaseModel):
    name: str
    status: Literal["success", "error", "skipped"]
    count: int = 0
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    latency_ms: Optional[int] = None


class SearchMeta(BaseModel):
    query: Dict[str, Any]
    preferred_provider: Optional[str] = None
    searched_at: datetime
    total_results: int = 0


class SearchResponse(BaseModel):
    """Merged results of one capability search plus per-provider status."""
    capability: Capability
    results: List[NormalizedResult] = []
    provider_report: List[ProviderReportEntry] = []
    meta: SearchMeta
    error: Optional[ErrorInfo] = None

    @property
    def succeeded_providers(self) -> List[str]:
        return [entry.name for entry in self.provider_report if entry.status == "success"]

    @property
    def all_providers_failed(self) -> bool:
        return not self.succeeded_providers


class HealthCheckResult(BaseModel):
    status: str
    detail: Optional[str] = None
    response_time_ms: Optional[int] = None

    @property
    def is_healthy(self) -> bool:
        return self.status in ("healthy", "ok")


class ProviderHealth(BaseModel):
    provider_name: str
    available: bool
    status: str
    last_error: Optional[str] = None
    checked_at: datetime


class HealthSummary(BaseModel):
    total: int
    healthy: int
    healthy_fraction: float


class HealthReport(BaseModel):
    status: Literal["healthy", "degraded", "unhealthy"]
    providers: Dict[str, ProviderHealth]
    summary: HealthSummary
    checked_at: datetime
