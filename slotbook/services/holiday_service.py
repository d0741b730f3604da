"""Public-holiday lookup, used only to pre-seed availability exceptions."""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Protocol

import httpx

from slotbook.core.config import settings
from slotbook.core.errors import UnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Holiday:
    date: date
    name: str


class HolidayProvider(Protocol):
    async def holidays_in_range(self, start: date, end: date, region: str) -> list[Holiday]: ...

    async def is_non_working_date(self, d: date, region: str) -> bool: ...


class NagerDateHolidayProvider:
    """Reads https://date.nager.at public holidays, one request per year."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.holiday_api_url).rstrip("/")
        self.timeout = timeout or settings.holiday_api_timeout_seconds
        self.transport = transport

    async def _fetch_year(self, client: httpx.AsyncClient, year: int, region: str) -> list[Holiday]:
        url = f"{self.base_url}/PublicHolidays/{year}/{region.upper()}"
        try:
            resp = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning("Holiday lookup failed: year=%s region=%s error=%s", year, region, e)
            raise UnavailableError("Holiday data source unavailable") from e
        if resp.status_code == 404:
            logger.info("No holiday data for region %s", region)
            return []
        if resp.status_code != 200:
            logger.warning(
                "Holiday lookup failed: status=%s body=%s", resp.status_code, resp.text[:200]
            )
            raise UnavailableError("Holiday data source unavailable")
        return [
            Holiday(date=date.fromisoformat(item["date"]), name=item.get("name") or "Holiday")
            for item in resp.json()
        ]

    async def holidays_in_range(self, start: date, end: date, region: str) -> list[Holiday]:
        found: list[Holiday] = []
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            for year in range(start.year, end.year + 1):
                found.extend(await self._fetch_year(client, year, region))
        return sorted((h for h in found if start <= h.date <= end), key=lambda h: h.date)

    async def is_non_working_date(self, d: date, region: str) -> bool:
        return bool(await self.holidays_in_range(d, d, region))


def get_holiday_provider() -> HolidayProvider:
    return NagerDateHolidayProvider()
