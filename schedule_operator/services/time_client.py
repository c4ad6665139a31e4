"""
World Time API Client

Fetches the current wall-clock time for a timezone. The operator never
converts timezones locally; the returned local timestamp is used as-is.
"""

import httpx
import logging
from datetime import datetime
from typing import Optional

from schedule_common.schemas import TimeSnapshot

from .errors import TimeAPIError

logger = logging.getLogger(__name__)


class WorldTimeClient:
    """Client for GET {base}/{timezone}"""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize World Time API client

        Args:
            base_url: Endpoint base (e.g. https://worldtimeapi.org/api/timezone)
            timeout_seconds: Per-request timeout; the call is not retried
            client: Pre-built client (tests pass one with a mock transport)
        """
        self.base_url = base_url.rstrip('/')
        self.client = client or httpx.AsyncClient(timeout=timeout_seconds)
        logger.info(f"World Time client initialized: {self.base_url}")

    async def get_current_time(self, timezone: str) -> TimeSnapshot:
        """
        Get the current time in a timezone

        Args:
            timezone: IANA timezone identifier (e.g. America/Toronto)

        Returns:
            TimeSnapshot with an offset-aware local datetime

        Raises:
            TimeAPIError: network failure, non-200 status or bad payload
        """
        url = f"{self.base_url}/{timezone}"

        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            raise TimeAPIError(f"failed to call World Time API: {e}") from e

        if response.status_code != httpx.codes.OK:
            raise TimeAPIError(f"World Time API returned status {response.status_code}")

        try:
            payload = response.json()
        except ValueError as e:
            raise TimeAPIError(f"failed to decode World Time API response: {e}") from e

        if not isinstance(payload, dict):
            raise TimeAPIError("failed to decode World Time API response: expected an object")

        raw = payload.get("datetime")
        try:
            local_datetime = datetime.fromisoformat(raw)
        except (TypeError, ValueError) as e:
            raise TimeAPIError(f"failed to parse datetime: {raw!r}") from e

        # RFC3339 requires an offset
        if local_datetime.tzinfo is None:
            raise TimeAPIError(f"failed to parse datetime: {raw!r} has no UTC offset")

        return TimeSnapshot(
            timezone=payload.get("timezone") or timezone,
            datetime=local_datetime,
            utc_datetime=payload.get("utc_datetime"),
            utc_offset=payload.get("utc_offset"),
            day_of_week=payload.get("day_of_week"),
            day_of_year=payload.get("day_of_year"),
            week_number=payload.get("week_number"),
        )

    async def close(self):
        await self.client.aclose()
