# tests/test_google_calendar.py

from __future__ import annotations

import threading
from datetime import datetime
from types import SimpleNamespace
from typing import Any

import pytest
from googleapiclient.errors import HttpError

from bifrost_tasks.errors import NetworkError, NotFoundError, ValidationError
from bifrost_tasks.sync import google_calendar
from bifrost_tasks.sync.google_calendar import GoogleCalendarClient

from .fakes import make_task


def _http_error(status: int) -> HttpError:
    resp = SimpleNamespace(status=status, reason="error")
    return HttpError(resp, b'{"error": {"message": "error"}}')


class _Request:
    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self._result = result
        self._error = error

    def execute(self) -> Any:
        if self._error is not None:
            raise self._error
        return self._result


class FakeEventsResource:
    """Mimics service.events(): each call records its kwargs and returns a request."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.store: dict[str, dict[str, Any]] = {}
        self.errors: dict[str, Exception] = {}

    def _request(self, op: str, result: Any, kwargs: dict[str, Any]) -> _Request:
        self.calls.append((op, kwargs))
        return _Request(result, self.errors.get(op))

    def insert(self, **kwargs: Any) -> _Request:
        event = {"id": f"g{len(self.store) + 1}", **kwargs["body"]}
        self.store[event["id"]] = event
        return self._request("insert", event, kwargs)

    def get(self, **kwargs: Any) -> _Request:
        return self._request("get", self.store.get(kwargs["eventId"]), kwargs)

    def update(self, **kwargs: Any) -> _Request:
        return self._request("update", kwargs["body"], kwargs)

    def delete(self, **kwargs: Any) -> _Request:
        return self._request("delete", "", kwargs)

    def list(self, **kwargs: Any) -> _Request:
        return self._request("list", {"items": list(self.store.values())}, kwargs)


@pytest.fixture()
def resource() -> FakeEventsResource:
    return FakeEventsResource()


@pytest.fixture()
def client(resource: FakeEventsResource) -> GoogleCalendarClient:
    service = SimpleNamespace(events=lambda: resource)
    return GoogleCalendarClient(service=service, calendar_id="work")


def test_authentication_state(client: GoogleCalendarClient, tmp_path) -> None:
    assert client.is_authenticated()
    assert not GoogleCalendarClient(token_path=tmp_path / "missing.json").is_authenticated()


@pytest.mark.asyncio
async def test_create_event_from_task_builds_all_day_event(
    client: GoogleCalendarClient, resource: FakeEventsResource
) -> None:
    task = make_task("t1", text="Renew passport", due_date="2025-12-31", priority="high", tags=["admin", "travel"])

    event = await client.create_event_from_task(task)

    op, kwargs = resource.calls[0]
    assert op == "insert"
    assert kwargs["calendarId"] == "work"
    body = kwargs["body"]
    assert body["summary"] == "Renew passport"
    assert body["description"] == "Created from Bifrost todo\nPriority: high"
    assert body["start"] == {"date": "2025-12-31"}
    assert body["end"] == {"date": "2026-01-01"}
    assert body["reminders"]["overrides"] == [{"method": "popup", "minutes": 60}]
    assert body["extendedProperties"]["private"] == {
        "bifrostId": "t1",
        "bifrostSource": "bifrost",
        "bifrostTags": "admin,travel",
    }
    assert event["id"] == "g1"


@pytest.mark.asyncio
async def test_create_without_due_date_is_rejected(client: GoogleCalendarClient) -> None:
    with pytest.raises(ValidationError):
        await client.create_event_from_task(make_task("t1", due_date=None))


@pytest.mark.asyncio
async def test_update_merges_into_current_event(
    client: GoogleCalendarClient, resource: FakeEventsResource
) -> None:
    created = await client.create_event_from_task(make_task("t1"))

    updated = await client.update_event(created["id"], {"summary": "Renamed"})

    assert [op for op, _ in resource.calls] == ["insert", "get", "update"]
    assert updated["summary"] == "Renamed"
    assert updated["reminders"] == created["reminders"]


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [404, 410])
async def test_gone_event_maps_to_not_found(
    client: GoogleCalendarClient, resource: FakeEventsResource, status: int
) -> None:
    resource.errors["get"] = _http_error(status)
    with pytest.raises(NotFoundError):
        await client.update_event("missing", {"summary": "x"})


@pytest.mark.asyncio
async def test_server_error_maps_to_network_error(
    client: GoogleCalendarClient, resource: FakeEventsResource
) -> None:
    resource.errors["delete"] = _http_error(500)
    with pytest.raises(NetworkError) as info:
        await client.delete_event("e1")
    assert info.value.status == 500


@pytest.mark.asyncio
async def test_list_upcoming_events_requests_single_ordered_events(
    client: GoogleCalendarClient, resource: FakeEventsResource
) -> None:
    await client.create_event_from_task(make_task("t1"))
    items = await client.list_upcoming_events(3)

    assert [e["id"] for e in items] == ["g1"]
    _, kwargs = resource.calls[-1]
    assert kwargs["singleEvents"] is True
    assert kwargs["orderBy"] == "startTime"
    assert kwargs["calendarId"] == "work"


def test_format_event_all_day_and_timed(client: GoogleCalendarClient) -> None:
    all_day = client.format_event(
        {"id": "a", "start": {"date": "2025-12-01"}, "end": {"date": "2025-12-02"}}
    )
    assert all_day.all_day
    assert all_day.title == "(No title)"
    assert all_day.start == datetime(2025, 12, 1)
    assert all_day.end == datetime(2025, 12, 2)

    timed = client.format_event(
        {
            "id": "b",
            "summary": "Call",
            "location": "Room 4",
            "htmlLink": "https://calendar.example/b",
            "start": {"dateTime": "2025-12-01T10:00:00"},
            "end": {"dateTime": "2025-12-01T10:30:00"},
        }
    )
    assert not timed.all_day
    assert timed.start == datetime(2025, 12, 1, 10, 0)
    assert timed.end == datetime(2025, 12, 1, 10, 30)
    assert timed.location == "Room 4"
    assert timed.link == "https://calendar.example/b"


@pytest.mark.asyncio
async def test_service_is_built_once_off_the_event_loop(monkeypatch, resource: FakeEventsResource) -> None:
    loop_thread = threading.get_ident()
    builds = []

    def fake_build(api, version, *, credentials, cache_discovery):
        builds.append((api, version, threading.get_ident()))
        return SimpleNamespace(events=lambda: resource)

    monkeypatch.setattr(google_calendar, "build", fake_build)
    client = GoogleCalendarClient(credentials=SimpleNamespace(valid=True, refresh_token="r"))

    await client.create_event_from_task(make_task("t1"))
    await client.delete_event("g1")

    assert len(builds) == 1
    api, version, thread_id = builds[0]
    assert (api, version) == ("calendar", "v3")
    assert thread_id != loop_thread


@pytest.mark.asyncio
async def test_unauthenticated_client_raises_network_error(tmp_path) -> None:
    client = GoogleCalendarClient(token_path=tmp_path / "missing.json")
    with pytest.raises(NetworkError):
        await client.delete_event("e1")
