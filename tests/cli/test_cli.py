"""Tests for the yearbird CLI."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest
from click.testing import CliRunner

from yearbird.calendar.client import CalendarClient
from yearbird.categories import CategoryRegistry, CategoryResult
from yearbird.cli import cli

pytestmark = pytest.mark.unit


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    root = logging.getLogger()
    root.handlers.clear()
    root.filters.clear()


@pytest.fixture
def invoke(runner: CliRunner, tmp_path: Path):
    storage_dir = tmp_path / "store"

    def _invoke(*args: str, **kwargs):
        base = ["--storage-dir", str(storage_dir), "--log-level", "WARNING"]
        return runner.invoke(cli, [*base, *args], **kwargs)

    return _invoke


def _patch_client(handler):
    def factory(config=None):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return CalendarClient(config, http_client=http_client)

    return patch("yearbird.cli.CalendarClient", side_effect=factory)


def _calendar_handler(events_by_calendar: dict[str, list[dict]], status: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        if status != 200:
            return httpx.Response(status)
        if request.url.path.endswith("/users/me/calendarList"):
            items = [{"id": cid, "summary": cid} for cid in events_by_calendar]
            return httpx.Response(200, json={"items": items})
        calendar_id = request.url.path.split("/calendars/")[1].removesuffix("/events")
        return httpx.Response(200, json={"items": events_by_calendar[calendar_id]})

    return handler


# ---------------------------------------------------------------------------
# Global options
# ---------------------------------------------------------------------------


class TestVersion:
    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestConfigOption:
    def test_invalid_config_exits_1(self, runner, tmp_path):
        config = tmp_path / "yearbird.toml"
        config.write_text('[yearbird.logging]\nformat = "xml"\n')
        result = runner.invoke(cli, ["--config", str(config), "categories", "list"])
        assert result.exit_code == 1
        assert "Config error" in result.output


# ---------------------------------------------------------------------------
# categories
# ---------------------------------------------------------------------------


class TestCategoriesCommands:
    def test_list_defaults(self, invoke):
        result = invoke("categories", "list")
        assert result.exit_code == 0
        for label in ("Birthdays", "Family", "Holidays/Trips", "Races", "Work", "Uncategorized"):
            assert label in result.output

    def test_add_and_list_json(self, invoke):
        keywords = ["--keyword", "gym", "--keyword", "Gym", "--keyword", "pool"]
        result = invoke(
            "categories", "add", "Gym", "--color", "#22C55E", *keywords, "--match", "any"
        )
        assert result.exit_code == 0, result.output
        assert "Added custom-" in result.output

        listed = json.loads(invoke("categories", "list", "--json").output)
        gym = next(c for c in listed["categories"] if c["label"] == "Gym")
        assert gym["keywords"] == ["gym", "pool"]
        assert gym["isDefault"] is False
        assert listed["removedDefaults"] == []

    def test_add_builtin_label_fails(self, invoke):
        result = invoke("categories", "add", "work", "--color", "#22C55E", "--keyword", "x")
        assert result.exit_code == 1
        assert "Name already exists as a default category." in result.output

    def test_update_keeps_unspecified_fields(self, invoke):
        invoke("categories", "add", "Gym", "--color", "#22C55E", "--keyword", "gym")
        listed = json.loads(invoke("categories", "list", "--json").output)
        gym_id = next(c["id"] for c in listed["categories"] if c["label"] == "Gym")

        result = invoke("categories", "update", gym_id, "--color", "#0EA5E9")
        assert result.exit_code == 0, result.output

        listed = json.loads(invoke("categories", "list", "--json").output)
        gym = next(c for c in listed["categories"] if c["id"] == gym_id)
        assert gym["color"] == "#0EA5E9"
        assert gym["keywords"] == ["gym"]

    def test_update_missing(self, invoke):
        result = invoke("categories", "update", "custom-missing", "--label", "X")
        assert result.exit_code == 1
        assert "Category no longer exists." in result.output

    def test_remove_and_restore_default(self, invoke):
        assert invoke("categories", "remove", "work").exit_code == 0

        listed = json.loads(invoke("categories", "list", "--json").output)
        assert "work" not in [c["id"] for c in listed["categories"]]
        assert [c["id"] for c in listed["removedDefaults"]] == ["work"]
        assert "Removed defaults" in invoke("categories", "list").output

        result = invoke("categories", "restore", "work")
        assert result.exit_code == 0
        assert "Restored work: Work" in result.output

    def test_restore_active_default_fails(self, invoke):
        result = invoke("categories", "restore", "work")
        assert result.exit_code == 1
        assert "Category already exists." in result.output

    def test_result_without_category_exits_1(self, invoke):
        with patch.object(CategoryRegistry, "add_category", return_value=CategoryResult()):
            result = invoke("categories", "add", "Gym", "--color", "#22C55E", "--keyword", "gym")

        assert result.exit_code == 1
        assert "Added" not in result.output

    def test_reset(self, invoke):
        invoke("categories", "add", "Gym", "--color", "#22C55E", "--keyword", "gym")
        invoke("categories", "remove", "races")

        result = invoke("categories", "reset", "--yes")

        assert result.exit_code == 0
        assert "Reset to 5 default categories" in result.output
        listed = json.loads(invoke("categories", "list", "--json").output)
        ids = [c["id"] for c in listed["categories"]]
        assert ids == ["birthdays", "family", "holidays", "races", "work", "uncategorized"]


# ---------------------------------------------------------------------------
# calendars
# ---------------------------------------------------------------------------


class TestCalendarsCommands:
    def test_disable_enable_and_list(self, invoke):
        assert invoke("calendars", "disable", "team").exit_code == 0

        with _patch_client(_calendar_handler({"primary": [], "team": []})):
            result = invoke("calendars", "list", env={"YEARBIRD_ACCESS_TOKEN": "tok"})

        assert result.exit_code == 0, result.output
        assert "[ shown] primary" in result.output
        assert "[hidden] team" in result.output

        assert invoke("calendars", "enable", "team").exit_code == 0
        with _patch_client(_calendar_handler({"primary": [], "team": []})):
            result = invoke("calendars", "list", "--token", "tok")
        assert "[hidden]" not in result.output

    def test_token_is_required(self, invoke):
        result = invoke("calendars", "list", env={"YEARBIRD_ACCESS_TOKEN": None})
        assert result.exit_code != 0
        assert "--token" in result.output


# ---------------------------------------------------------------------------
# events
# ---------------------------------------------------------------------------


_EVENTS = {
    "primary": [
        {
            "id": "1",
            "summary": "Mom birthday",
            "start": {"date": "2025-05-04"},
            "end": {"date": "2025-05-05"},
        }
    ],
    "team": [
        {
            "id": "2",
            "summary": "Sprint review",
            "start": {"dateTime": "2025-06-02T15:00:00Z"},
            "end": {"dateTime": "2025-06-02T16:00:00Z"},
        }
    ],
}


class TestEventsCommand:
    def test_enabled_calendars_are_loaded(self, invoke):
        invoke("calendars", "disable", "team")

        with _patch_client(_calendar_handler(_EVENTS)):
            result = invoke("events", "2025", "--token", "tok")

        assert result.exit_code == 0, result.output
        assert "Mom birthday" in result.output
        assert "birthdays" in result.output
        assert "Sprint review" not in result.output
        assert "1 event(s)" in result.output

    def test_explicit_calendars_as_json(self, invoke):
        with _patch_client(_calendar_handler(_EVENTS)):
            result = invoke(
                "events", "2025", "--token", "tok", "--calendar", "team", "--json"
            )

        assert result.exit_code == 0, result.output
        [line] = result.output.strip().splitlines()
        event = json.loads(line)
        assert event["id"] == "team:2"
        assert event["category"] == "work"
        assert event["start_time"] == "15:00"

    def test_unauthorized_exits_2(self, invoke):
        with _patch_client(_calendar_handler(_EVENTS, status=401)):
            result = invoke("events", "2025", "--token", "expired")

        assert result.exit_code == 2
        assert "UNAUTHORIZED" in result.output

    def test_api_error_exits_1(self, invoke):
        with _patch_client(_calendar_handler(_EVENTS, status=500)):
            result = invoke("events", "2025", "--token", "tok", "--calendar", "primary")

        assert result.exit_code == 1
        assert "Calendar API error: 500" in result.output

    def test_year_out_of_range(self, invoke):
        result = invoke("events", "10000", "--token", "tok")
        assert result.exit_code == 2
