from __future__ import annotations

from pathlib import Path

import pytest
import typer
from typer.testing import CliRunner

from turnkit import cli
from turnkit.application import Application

APP_SOURCE = """
from turnkit import Application, BusAdapter, MemoryStorage
from turnkit.activity import ActivityTypes
from turnkit.routing import RouteLane


def build():
    app = Application(adapter=BusAdapter(), storage=MemoryStorage(), start_typing_timer=False)

    @app.message("ping")
    async def ping(context, state):
        await context.send_activity("pong")

    async def fetch(context, state):
        return None

    app.add_route(lambda context: context.activity.name == "task/fetch", fetch, RouteLane.PRIORITY)
    return app


application = build()
plain = Application(storage=MemoryStorage())
not_an_app = 42
"""


@pytest.fixture
def app_module(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    name = f"cli_app_{tmp_path.name.replace('-', '_')}"
    (tmp_path / f"{name}.py").write_text(APP_SOURCE, encoding="utf-8")
    monkeypatch.syspath_prepend(str(tmp_path))
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: None)
    return name


def test_load_application_accepts_instances_and_factories(app_module: str) -> None:
    assert isinstance(cli.load_application(f"{app_module}:application"), Application)
    assert isinstance(cli.load_application(f"{app_module}:build"), Application)


@pytest.mark.parametrize("suffix", [":not_an_app", ":missing", ""])
def test_load_application_rejects_bad_targets(app_module: str, suffix: str) -> None:
    with pytest.raises(typer.BadParameter):
        cli.load_application(f"{app_module}{suffix}")


def test_routes_lists_lanes_in_dispatch_order(app_module: str) -> None:
    result = CliRunner().invoke(cli.app, ["routes", f"{app_module}:application"])

    assert result.exit_code == 0
    assert "priority" in result.output
    assert "build.<locals>.ping" in result.output
    assert result.output.index("priority") < result.output.index("build.<locals>.ping")
    assert "ai=off" in result.output


def test_chat_round_trip(app_module: str) -> None:
    result = CliRunner().invoke(cli.app, ["chat", f"{app_module}:application"], input="ping\n\n/exit\nping\n")

    assert result.exit_code == 0
    assert result.output.count("bot> pong") == 1


def test_chat_stops_at_end_of_input(app_module: str) -> None:
    result = CliRunner().invoke(cli.app, ["chat", f"{app_module}:application"], input="ping\n")

    assert result.exit_code == 0
    assert "bot> pong" in result.output


def test_chat_requires_bus_adapter(app_module: str) -> None:
    result = CliRunner().invoke(cli.app, ["chat", f"{app_module}:plain"])

    assert result.exit_code == 1


def test_chat_log_level_defaults_to_settings(app_module: str, monkeypatch: pytest.MonkeyPatch) -> None:
    levels: list[str | None] = []
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: levels.append(kwargs.get("level")))
    monkeypatch.setenv("TURNKIT_LOG_LEVEL", "DEBUG")

    CliRunner().invoke(cli.app, ["chat", f"{app_module}:application"], input="/exit\n")
    CliRunner().invoke(cli.app, ["chat", f"{app_module}:application", "--log-level", "ERROR"], input="/exit\n")

    assert levels == ["DEBUG", "ERROR"]


def test_routes_lists_registered_actions(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "cli_ai_app.py").write_text(
        "\n".join(
            [
                "from turnkit import Application",
                "from turnkit.ai import AIOptions, CompletionPlanner",
                "app = Application(ai=AIOptions(planner=CompletionPlanner(lambda text: 'hi')))",
                "app.ai.register_action('createWI', lambda context, state, entities: None)",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.syspath_prepend(str(tmp_path))

    result = CliRunner().invoke(cli.app, ["routes", "cli_ai_app:app"])

    assert result.exit_code == 0
    assert "ai=on" in result.output
    assert "createWI" in result.output
