"""Tests for promoter event resolvers."""

from typing import Any, Callable, Dict

import pytest

from src.handlers.event_operations import create_event, get_event, list_events
from src.utils.errors import AppError, ErrorCode
from tests.unit.fixtures import make_event_record, make_promoter, make_user


@pytest.fixture
def promoter_user(put: Callable[..., Dict[str, Any]]) -> Dict[str, Any]:
    promoter = put("promoters", make_promoter("PROMOTER#one", name="Gala Co"))
    put("users", make_user("promoter-sub", "p@example.com", role="PROMOTER", promoterId=promoter["promoterId"]))
    return promoter


def _event_input(**overrides: Any) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "title": "Founders Day",
        "location": "Hall",
        "eventDate": "2031-01-05T19:00:00Z",
        "ticketPriceCents": 2500,
        "durationMinutes": 90,
        "city": "Atlanta",
        "state": "GA",
    }
    data.update(overrides)
    return {"input": data}


class TestCreateEvent:
    def test_approved_promoter(self, promoter_user: Dict[str, Any], event_for: Callable[..., Dict[str, Any]]) -> None:
        result = create_event(event_for("promoter-sub", arguments=_event_input(maxAttendees=100)), None)

        assert result["eventId"].startswith("EVENT#")
        assert result["promoterName"] == "Gala Co"
        assert result["eventDate"] == "2031-01-05T19:00:00+00:00"
        assert result["durationMinutes"] == 90
        assert result["maxAttendees"] == 100

    def test_pending_promoter_forbidden(
        self, put: Callable[..., Dict[str, Any]], event_for: Callable[..., Dict[str, Any]]
    ) -> None:
        put("promoters", make_promoter("PROMOTER#p", status="PENDING"))
        put("users", make_user("pending-sub", role="PROMOTER", promoterId="PROMOTER#p"))

        with pytest.raises(AppError) as exc_info:
            create_event(event_for("pending-sub", arguments=_event_input()), None)
        assert exc_info.value.error_code == ErrorCode.FORBIDDEN

    def test_guest_forbidden(self, guest_user: Dict[str, Any], event_for: Callable[..., Dict[str, Any]]) -> None:
        with pytest.raises(AppError) as exc_info:
            create_event(event_for("guest-sub", arguments=_event_input()), None)
        assert exc_info.value.error_code == ErrorCode.FORBIDDEN

    @pytest.mark.parametrize(
        "overrides",
        [{"eventDate": "next friday"}, {"ticketPriceCents": -1}, {"maxAttendees": 0}, {"title": ""}],
    )
    def test_invalid_input(
        self, overrides: Dict[str, Any], promoter_user: Dict[str, Any], event_for: Callable[..., Dict[str, Any]]
    ) -> None:
        with pytest.raises(AppError) as exc_info:
            create_event(event_for("promoter-sub", arguments=_event_input(**overrides)), None)
        assert exc_info.value.error_code == ErrorCode.INVALID_INPUT


class TestListEvents:
    @pytest.fixture(autouse=True)
    def events(self, put: Callable[..., Dict[str, Any]]) -> None:
        put("promoters", make_promoter("PROMOTER#a"))
        put("promoters", make_promoter("PROMOTER#p", status="PENDING"))
        put("events", make_event_record("PROMOTER#a", "EVENT#later", eventDate="2032-01-01T00:00:00+00:00"))
        put("events", make_event_record("PROMOTER#a", "EVENT#soon", eventDate="2030-01-01T00:00:00+00:00"))
        put("events", make_event_record("PROMOTER#a", "EVENT#past", eventDate="2000-01-01T00:00:00+00:00"))
        put("events", make_event_record("PROMOTER#p", "EVENT#pending", eventDate="2031-01-01T00:00:00+00:00"))

    def test_upcoming_from_approved_promoters(self, event_for: Callable[..., Dict[str, Any]]) -> None:
        ids = [e["eventId"] for e in list_events(event_for(""), None)]

        assert ids == ["EVENT#soon", "EVENT#later"]

    def test_all_events(self, event_for: Callable[..., Dict[str, Any]]) -> None:
        ids = [e["eventId"] for e in list_events(event_for("", arguments={"all": True}), None)]

        assert ids == ["EVENT#past", "EVENT#soon", "EVENT#pending", "EVENT#later"]


def test_get_event_includes_calendar_links(
    put: Callable[..., Dict[str, Any]], event_for: Callable[..., Dict[str, Any]]
) -> None:
    put("promoters", make_promoter("PROMOTER#a", name="Gala Co"))
    put("events", make_event_record("PROMOTER#a", "EVENT#1", durationMinutes=120))

    result = get_event(event_for("", arguments={"eventId": "EVENT#1"}), None)

    assert result["promoterName"] == "Gala Co"
    links = result["calendarLinks"]
    assert "dates=20300105T190000Z/20300105T210000Z" in links["google"]
    assert links["apple"].startswith("webcal://")
    assert "startdt=2030-01-05T19:00:00.000Z" in links["outlook"]


def test_get_event_missing(dynamodb_tables: Dict[str, Any], event_for: Callable[..., Dict[str, Any]]) -> None:
    with pytest.raises(AppError) as exc_info:
        get_event(event_for("", arguments={"eventId": "EVENT#nope"}), None)
    assert exc_info.value.error_code == ErrorCode.NOT_FOUND
