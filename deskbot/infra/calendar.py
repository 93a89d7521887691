"""
Google Calendar Client

Thin async wrapper over the Calendar v3 REST API:
- freeBusy query for one calendar
- event insertion

Callers pass the tenant's bearer token on every call; the client holds no
per-tenant state. Errors split into two categories:
- CalendarAPIError: Google answered with an error status (bad token,
  invalid request). Not worth retrying.
- CalendarUnavailableError: the request never got an answer (network
  failure, timeout). Transient.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)

REMINDER_MINUTES = (60, 10)


class CalendarAPIError(Exception):
    """Raised when the Calendar API rejects a request."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class CalendarUnavailableError(Exception):
    """Raised when the Calendar API cannot be reached or times out."""
    pass


@dataclass(frozen=True)
class BusyInterval:
    """Busy period reported by freeBusy (timezone-aware)."""

    start: datetime
    end: datetime

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return start < self.end and end > self.start


def _parse_rfc3339(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


class GoogleCalendarClient:
    """HTTP client for Google Calendar v3."""

    def __init__(
        self,
        base_url: str = "https://www.googleapis.com/calendar/v3",
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize client.

        Args:
            base_url: Calendar API base URL
            timeout: Request timeout in seconds
            client: Preconfigured HTTP client (tests pass a MockTransport)
        """
        self.base_url = base_url
        self.timeout = timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        access_token: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.request(
                method,
                path,
                json=payload,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"Calendar API {method} {path} returned {status}")
            raise CalendarAPIError(
                f"Calendar API error ({status}): {e.response.text[:200]}",
                status_code=status,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Calendar API {method} {path} unreachable: {e}")
            raise CalendarUnavailableError(f"Calendar API unreachable: {e}") from e

        return response.json()

    async def query_busy(
        self,
        access_token: str,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
    ) -> list[BusyInterval]:
        """
        Busy intervals of one calendar between two aware datetimes.

        Raises:
            CalendarAPIError: On an error response
            CalendarUnavailableError: On transport failure or timeout
        """
        data = await self._request(
            "POST",
            "/freeBusy",
            access_token,
            {
                "timeMin": time_min.isoformat(),
                "timeMax": time_max.isoformat(),
                "items": [{"id": calendar_id}],
            },
        )

        busy = data.get("calendars", {}).get(calendar_id, {}).get("busy", [])
        return [
            BusyInterval(start=_parse_rfc3339(b["start"]), end=_parse_rfc3339(b["end"]))
            for b in busy
        ]

    async def insert_event(
        self,
        access_token: str,
        calendar_id: str,
        *,
        summary: str,
        description: str,
        start: datetime,
        end: datetime,
        timezone: str,
    ) -> str:
        """
        Create an event with popup reminders.

        Returns:
            Google event id

        Raises:
            CalendarAPIError: On an error response
            CalendarUnavailableError: On transport failure or timeout
        """
        body = {
            "summary": summary,
            "description": description,
            "start": {"dateTime": start.isoformat(), "timeZone": timezone},
            "end": {"dateTime": end.isoformat(), "timeZone": timezone},
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "popup", "minutes": minutes} for minutes in REMINDER_MINUTES
                ],
            },
        }

        data = await self._request(
            "POST", f"/calendars/{quote(calendar_id, safe='@')}/events", access_token, body
        )
        event_id = data.get("id")
        if not event_id:
            raise CalendarAPIError("Calendar API response missing event id")

        logger.info(f"Calendar event created: {event_id}")
        return event_id
