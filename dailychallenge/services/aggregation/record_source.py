"""
Raw order record source.

Order records live in an upstream BI service and are read through saved
card queries:
- Date-filtered card (DATE_FILTERED_CARD_ID): orders for one date, filtered
  server-side via a `date` template tag
- All-orders card (ALL_ORDERS_CARD_ID): every order, filtered client-side
  with filter_records_for_date()
- Brand ratings card (BRAND_RATINGS_CARD_ID): cumulative ratings per brand

Card responses are column-oriented ({"data": {"cols": [...], "rows": [...]}})
and are converted to dicts keyed by column display name, then parsed into
OrderRecord / BrandRatings.

Usage:
    source = CardQueryRecordSource()
    records = await source.fetch_records_for_date(date(2026, 3, 2))
"""
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from dailychallenge.core.circuit_breaker import record_source_breaker, with_circuit_breaker
from dailychallenge.core.config import settings
from dailychallenge.utils.timezone import local_date, parse_timestamp

logger = logging.getLogger(__name__)


@dataclass
class OrderRecord:
    """One upstream order line."""
    order_id: Optional[str] = None
    status: Optional[str] = None
    order_date: Optional[datetime] = None  # naive UTC
    quantity: float = 0.0  # grams
    total_price: float = 0.0  # currency units, converted to cents on aggregation
    manufacturer: Optional[str] = None
    strain: Optional[str] = None
    product: Optional[str] = None
    pharmacy: Optional[str] = None
    brand: Optional[str] = None


@dataclass
class BrandRatings:
    """Cumulative rating counters for one brand."""
    name: str
    total_ratings: int = 0
    average_rating: float = 0.0
    bayesian_average: float = 0.0


class RecordSource(Protocol):
    """What the orchestrator needs from a raw record provider."""

    async def fetch_records_for_date(self, stat_date: date) -> List[OrderRecord]: ...

    async def fetch_all_records(self) -> List[OrderRecord]: ...

    async def fetch_brand_ratings(self) -> List[BrandRatings]: ...


# =============================================================================
# PARSING
# =============================================================================

def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _float(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    # float() accepts "NaN" and "Infinity"
    return number if math.isfinite(number) else 0.0


def _int(value: Any) -> int:
    return int(_float(value))


def parse_order_record(row: Dict[str, Any]) -> OrderRecord:
    """
    Map an order card row onto an OrderRecord.

    Missing, malformed or non-finite quantity/price become 0; blank names become None.
    """
    return OrderRecord(
        order_id=_text(row.get("ID")),
        status=_text(row.get("Status")),
        order_date=parse_timestamp(row.get("OrderDate")),
        quantity=_float(row.get("Quantity")),
        total_price=_float(row.get("TotalPrice")),
        manufacturer=_text(row.get("ProductManufacturer")),
        strain=_text(row.get("ProductStrainName")),
        product=_text(row.get("Product")),
        pharmacy=_text(row.get("PharmacyName")),
        brand=_text(row.get("ProductBrand")),
    )


def parse_brand_ratings(row: Dict[str, Any]) -> Optional[BrandRatings]:
    """Map a brand ratings card row (aggregated or plain column names)."""
    name = _text(row.get("Name") or row.get("name"))
    if name is None:
        return None
    return BrandRatings(
        name=name,
        total_ratings=_int(row.get("Sum of TotalRatings", row.get("totalRatings"))),
        average_rating=_float(row.get("Average of AverageRating", row.get("averageRating"))),
        bayesian_average=_float(row.get("Average of BayesianAverage", row.get("bayesianAverage"))),
    )


def rows_from_card_response(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Convert a column-oriented card response to dicts keyed by column name."""
    data = payload.get("data") or {}
    rows = data.get("rows") or []
    cols = data.get("cols") or []
    names = [col.get("display_name") or col.get("name") for col in cols]
    return [dict(zip(names, row)) for row in rows]


def filter_records_for_date(
    records: Iterable[OrderRecord],
    stat_date: date,
    tz_name: Optional[str] = None,
) -> List[OrderRecord]:
    """
    Keep records whose order timestamp falls on stat_date in the challenge zone.

    Records without a timestamp are dropped.
    """
    return [
        record for record in records
        if record.order_date is not None and local_date(record.order_date, tz_name) == stat_date
    ]


# =============================================================================
# CARD QUERY CLIENT
# =============================================================================

class CardQueryRecordSource:
    """
    RecordSource backed by saved card queries over HTTP.

    Requests retry 3 times with exponential backoff on transport and HTTP
    status errors, behind the record_source circuit breaker.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.RECORD_SOURCE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.RECORD_SOURCE_API_KEY
        self.timeout = timeout or settings.RECORD_SOURCE_TIMEOUT
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if not self.api_key:
            return headers
        # API keys are prefixed "mb_"; anything else is a session token
        if self.api_key.startswith("mb_"):
            headers["X-API-KEY"] = self.api_key
        else:
            headers["X-Metabase-Session"] = self.api_key
        return headers

    @with_circuit_breaker(record_source_breaker)
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.RequestError, httpx.TimeoutException)),
        reraise=True,
    )
    async def _query_card(self, card_id: int, parameters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        body: Dict[str, Any] = {}
        if parameters:
            body["parameters"] = [
                {"type": "category", "target": ["variable", ["template-tag", key]], "value": value}
                for key, value in parameters.items()
            ]

        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=self._headers(),
            transport=self._transport,
        ) as client:
            response = await client.post(f"/api/card/{card_id}/query", json=body)
            response.raise_for_status()
            rows = rows_from_card_response(response.json())

        logger.debug(f"Card {card_id} returned {len(rows)} rows")
        return rows

    async def fetch_records_for_date(self, stat_date: date) -> List[OrderRecord]:
        rows = await self._query_card(settings.DATE_FILTERED_CARD_ID, {"date": stat_date.isoformat()})
        return [parse_order_record(row) for row in rows]

    async def fetch_all_records(self) -> List[OrderRecord]:
        rows = await self._query_card(settings.ALL_ORDERS_CARD_ID)
        return [parse_order_record(row) for row in rows]

    async def fetch_brand_ratings(self) -> List[BrandRatings]:
        if settings.BRAND_RATINGS_CARD_ID is None:
            logger.info("BRAND_RATINGS_CARD_ID not configured, skipping brand ratings")
            return []
        rows = await self._query_card(settings.BRAND_RATINGS_CARD_ID)
        ratings = [parse_brand_ratings(row) for row in rows]
        return [r for r in ratings if r is not None]
