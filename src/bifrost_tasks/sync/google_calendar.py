# src/bifrost_tasks/sync/google_calendar.py

from __future__ import annotations

"""
Google Calendar v3 implementation of the CalendarClient port.

Token management is external: this client only loads an authorized-user token
file (as written by an OAuth consent flow). The authorized transport refreshes
expired access tokens on its own when a refresh token is present.

The discovery client is blocking, so every request.execute() runs in a worker
thread. Errors are mapped onto the project taxonomy:
- HTTP 404 / 410           -> NotFoundError
- other HTTP / transport   -> NetworkError
"""

import asyncio
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from dateutil import parser as date_parser
from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..core.models import EventView, Task, all_day_range
from ..core.ports import CalendarEvent
from ..errors import NetworkError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]

_GONE_STATUSES = (404, 410)


def load_credentials(token_path: str | Path) -> Credentials | None:
    path = Path(token_path)
    if not path.exists():
        logger.info("No Google token at %s; calendar sync stays unauthenticated", path)
        return None
    try:
        return Credentials.from_authorized_user_file(str(path), SCOPES)
    except (OSError, ValueError):
        logger.warning("Unreadable Google token file %s", path, exc_info=True)
        return None


def _to_local_naive(raw: str) -> datetime:
    dt = date_parser.isoparse(raw)
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


class GoogleCalendarClient:
    def __init__(
        self,
        *,
        token_path: str | Path | None = None,
        calendar_id: str = "primary",
        credentials: Credentials | None = None,
        service: Any = None,
        local_source: str = "bifrost",
    ) -> None:
        if credentials is None and token_path is not None:
            credentials = load_credentials(token_path)
        self._credentials = credentials
        self._service = service
        self._calendar_id = calendar_id
        self._local_source = local_source

    # ---- plumbing ----

    def is_authenticated(self) -> bool:
        if self._service is not None and self._credentials is None:
            # Injected pre-authorized service.
            return True
        creds = self._credentials
        if creds is None:
            return False
        return bool(creds.valid or creds.refresh_token)

    async def _events(self) -> Any:
        if self._service is None:
            if self._credentials is None:
                raise NetworkError("Google Calendar is not authenticated")
            # build() reads the discovery document; keep it off the event loop.
            self._service = await asyncio.to_thread(
                build, "calendar", "v3", credentials=self._credentials, cache_discovery=False
            )
        return self._service.events()

    async def _execute(self, request: Any, *, what: str) -> Any:
        try:
            return await asyncio.to_thread(request.execute)
        except HttpError as e:
            status = getattr(e.resp, "status", None)
            try:
                status = int(status) if status is not None else None
            except (TypeError, ValueError):
                status = None
            if status in _GONE_STATUSES:
                raise NotFoundError(f"{what}: not found") from e
            raise NetworkError(f"{what}: HTTP {status}", status=status) from e
        except (GoogleAuthError, OSError) as e:
            raise NetworkError(f"{what}: {e}") from e

    # ---- CalendarClient port ----

    async def list_events(self, start: datetime, end: datetime, max_results: int = 50) -> list[CalendarEvent]:
        events = await self._events()
        request = events.list(
            calendarId=self._calendar_id,
            timeMin=start.astimezone().isoformat(),
            timeMax=end.astimezone().isoformat(),
            showDeleted=False,
            singleEvents=True,
            maxResults=max_results,
            orderBy="startTime",
        )
        result = await self._execute(request, what="list events")
        return list(result.get("items", []))

    async def list_upcoming_events(self, days_ahead: int = 7) -> list[CalendarEvent]:
        now = datetime.now()
        return await self.list_events(now, now + timedelta(days=days_ahead))

    async def create_event(self, body: CalendarEvent) -> CalendarEvent:
        events = await self._events()
        request = events.insert(calendarId=self._calendar_id, body=body)
        event = await self._execute(request, what="create event")
        logger.debug("Event created id=%s", event.get("id"))
        return event

    async def create_event_from_task(self, task: Task) -> CalendarEvent:
        if not task.due_date:
            raise ValidationError(f"task {task.id} has no due date")

        start, end = all_day_range(task.due_date)
        body: CalendarEvent = {
            "summary": task.text,
            "description": f"Created from Bifrost todo\nPriority: {task.priority or 'normal'}",
            "start": {"date": start},
            "end": {"date": end},
            "reminders": {
                "useDefault": False,
                "overrides": [{"method": "popup", "minutes": 60}],
            },
            "extendedProperties": {
                "private": {
                    "bifrostId": task.id,
                    "bifrostSource": task.source or self._local_source,
                    "bifrostTags": ",".join(task.tags),
                }
            },
        }
        return await self.create_event(body)

    async def update_event(self, event_id: str, payload: dict[str, Any]) -> CalendarEvent:
        events = await self._events()
        current = await self._execute(
            events.get(calendarId=self._calendar_id, eventId=event_id),
            what=f"get event {event_id}",
        )
        merged = {**current, **payload}
        updated = await self._execute(
            events.update(calendarId=self._calendar_id, eventId=event_id, body=merged),
            what=f"update event {event_id}",
        )
        logger.debug("Event updated id=%s", event_id)
        return updated

    async def delete_event(self, event_id: str) -> None:
        events = await self._events()
        await self._execute(
            events.delete(calendarId=self._calendar_id, eventId=event_id),
            what=f"delete event {event_id}",
        )
        logger.debug("Event deleted id=%s", event_id)

    def format_event(self, event: CalendarEvent) -> EventView:
        start_info = event.get("start") or {}
        end_info = event.get("end") or {}
        all_day = "dateTime" not in start_info

        if all_day:
            start = datetime.fromisoformat(start_info.get("date", ""))
            end = datetime.fromisoformat(end_info.get("date") or start_info.get("date", ""))
        else:
            start = _to_local_naive(start_info["dateTime"])
            end = _to_local_naive(end_info.get("dateTime") or start_info["dateTime"])

        return EventView(
            id=str(event.get("id", "")),
            title=event.get("summary") or "(No title)",
            description=event.get("description") or "",
            start=start,
            end=end,
            all_day=all_day,
            location=event.get("location"),
            link=event.get("htmlLink"),
        )
