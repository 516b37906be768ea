from __future__ import annotations

import json
import logging
from pathlib import Path

import httpx
import pytest
import yaml
from click.testing import CliRunner

from pageplus import main
from pageplus.main import cli
from pageplus.providers.factory import build_provider


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    config = {
        "pageplus": {
            "data_dir": str(tmp_path / "data"),
            "models": {"selected": "gemini-2.5-pro"},
            "cloud": {"quota_tokens": 1000},
        }
    }
    path = tmp_path / "pageplus.yaml"
    path.write_text(yaml.safe_dump(config), encoding="utf-8")
    return path


def test_tools_lists_catalog() -> None:
    result = CliRunner().invoke(cli, ["tools"])
    assert result.exit_code == 0
    assert "getPageImages" in result.output
    assert "fillForm" in result.output


def test_init_db_applies_migrations_once(config_file: Path, tmp_path: Path) -> None:
    runner = CliRunner()
    first = runner.invoke(cli, ["init-db", "--config", str(config_file)])
    second = runner.invoke(cli, ["init-db", "--config", str(config_file)])

    assert first.exit_code == 0
    assert "1 migration(s) applied" in first.output
    assert "0 migration(s) applied" in second.output
    assert (tmp_path / "data" / "pageplus.db").exists()


def test_quota_reports_estimate(config_file: Path, tmp_path: Path) -> None:
    notes = tmp_path / "notes.txt"
    notes.write_text("a" * 400, encoding="utf-8")

    result = CliRunner().invoke(cli, ["quota", str(notes), "--config", str(config_file)])

    assert result.exit_code == 0
    assert "/ 1000 tokens" in result.output


def test_on_device_model_rejected(tmp_path: Path) -> None:
    path = tmp_path / "nano.yaml"
    path.write_text(yaml.safe_dump({"pageplus": {"models": {"selected": "gemini-nano"}}}), encoding="utf-8")

    result = CliRunner().invoke(cli, ["quota", "--config", str(path)])

    assert result.exit_code != 0
    assert "on-device model" in result.output


def test_suggest_asks_the_relay(config_file: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    requests: list[dict[str, object]] = []
    answer = {"suggestions": [{"title": "Compare plans", "description": "Pricing", "prompt": "Compare the plans"}]}

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(json.loads(request.content))
        return httpx.Response(200, json={"text": json.dumps(answer)})

    def build_with_mock(*args: object, **kwargs: object) -> object:
        kwargs["http_client"] = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return build_provider(*args, **kwargs)

    monkeypatch.setattr(main, "build_provider", build_with_mock)
    page = tmp_path / "page.html"
    page.write_text("<main><h1>Pricing</h1><p>Three plans.</p></main>", encoding="utf-8")

    result = CliRunner().invoke(cli, ["suggest", str(page), "--url", "https://x.test", "--config", str(config_file)])

    assert result.exit_code == 0, result.output
    assert len(requests) == 1
    assert requests[0]["model"] == "gemini-2.5-flash-lite"
    assert "- Compare plans: Pricing" in result.output
    assert "Summarize" not in result.output
