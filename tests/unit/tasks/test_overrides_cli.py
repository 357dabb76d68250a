from __future__ import annotations

import json

import httpx
import pytest
import respx
from typer.testing import CliRunner

from khural_admin.config.settings import get_settings
from khural_admin.tasks.cli import app

runner = CliRunner()


@pytest.fixture
def memory_env(clean_settings: None, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KHURAL_OVERRIDES_BACKEND", "memory")
    monkeypatch.setenv("KHURAL_API_BASE_URL", "http://api.test")
    monkeypatch.setenv("KHURAL_API_MAX_RETRIES", "0")
    get_settings.cache_clear()


def test_entities_lists_profiles() -> None:
    result = runner.invoke(app, ["entities"])
    assert result.exit_code == 0
    assert "deputies\t/persons\tkhural_deputies_overrides_v1" in result.stdout
    assert "committees\t/committees\tkhural_committees_overrides_v1 protected=10" in result.stdout


def test_show_prints_empty_record(memory_env: None) -> None:
    result = runner.invoke(app, ["show", "news"])
    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"created": [], "updatedById": {}, "deletedIds": []}


def test_show_unknown_entity_fails(memory_env: None) -> None:
    result = runner.invoke(app, ["show", "planets"])
    assert result.exit_code == 1


def test_reconcile_prints_display_rows(memory_env: None) -> None:
    with respx.mock:
        respx.get("http://api.test/persons").mock(
            return_value=httpx.Response(200, json={"data": [{"id": 1, "name": "A"}]})
        )
        result = runner.invoke(app, ["reconcile", "deputies"])
    assert result.exit_code == 0
    assert json.loads(result.stdout) == [{"id": "1", "name": "A", "isLocal": False}]


def test_reconcile_reports_unreachable_backend(memory_env: None) -> None:
    with respx.mock:
        respx.get("http://api.test/persons").mock(side_effect=httpx.ConnectError("refused"))
        result = runner.invoke(app, ["reconcile", "deputies"])
    assert result.exit_code == 1


def test_clear_requires_confirmation(memory_env: None) -> None:
    aborted = runner.invoke(app, ["clear", "news"], input="n\n")
    assert aborted.exit_code != 0

    done = runner.invoke(app, ["clear", "news", "--yes"])
    assert done.exit_code == 0
    assert "cleared news" in done.stdout
