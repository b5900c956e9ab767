"""Unit tests for the umlpipe-serve CLI commands."""

from __future__ import annotations

from collections.abc import Callable, Generator
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from umlpipe.bridge.codec import decode_request_path
from umlpipe.logging import configure_logging
from umlpipe_serve.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _reset_logging() -> Generator[None, None, None]:
    # Commands point loguru at the runner's stderr, which closes afterwards
    yield
    configure_logging(level="WARNING")


@pytest.fixture
def config_file(
    tmp_path: Path, fake_engine_command: Callable[..., list[str]]
) -> Path:
    """Config that launches the fake engine instead of java."""
    path = tmp_path / "umlpipe.yaml"
    path.write_text(
        yaml.dump(
            {
                "version": 1,
                "log_dir": None,
                "engine": {"command": fake_engine_command(), "render_timeout": 5},
                "bridge": {"port_range_start": 9100, "port_range_end": 9110},
            }
        )
    )
    return path


@pytest.mark.unit
@pytest.mark.serve
def test_help_lists_commands() -> None:
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    for command in ("serve", "render", "url", "fetch"):
        assert command in result.stdout


@pytest.mark.unit
@pytest.mark.serve
def test_url_uses_configured_range_start(config_file: Path, tmp_path: Path) -> None:
    source = "@startuml\nAlice -> Bob\n@enduml"
    diagram = tmp_path / "seq.puml"
    diagram.write_text(source)

    result = runner.invoke(app, ["--config", str(config_file), "url", str(diagram)])

    assert result.exit_code == 0
    rendered_url = result.stdout.strip()
    assert rendered_url.startswith("http://127.0.0.1:9100/svg/~h")
    assert decode_request_path(rendered_url) == source


@pytest.mark.unit
@pytest.mark.serve
def test_url_with_explicit_port(config_file: Path, tmp_path: Path) -> None:
    diagram = tmp_path / "seq.puml"
    diagram.write_text("@startuml\nA -> B\n@enduml")

    result = runner.invoke(
        app, ["--config", str(config_file), "url", str(diagram), "--port", "12345"]
    )

    assert result.exit_code == 0
    assert result.stdout.startswith("http://127.0.0.1:12345/svg/~h")


@pytest.mark.unit
@pytest.mark.serve
def test_render_writes_svg(config_file: Path, tmp_path: Path) -> None:
    diagram = tmp_path / "hello.puml"
    diagram.write_text("@startuml\nhello\n@enduml\n")

    result = runner.invoke(app, ["--config", str(config_file), "render", str(diagram)])

    assert result.exit_code == 0
    svg = (tmp_path / "hello.svg").read_text()
    assert "<text>hello</text>" in svg


@pytest.mark.unit
@pytest.mark.serve
def test_render_custom_output(config_file: Path, tmp_path: Path) -> None:
    diagram = tmp_path / "hello.puml"
    diagram.write_text("@startuml\nhello\n@enduml\n")
    output = tmp_path / "out" / "diagram.svg"
    output.parent.mkdir()

    result = runner.invoke(
        app, ["--config", str(config_file), "render", str(diagram), "-o", str(output)]
    )

    assert result.exit_code == 0
    assert output.exists()


@pytest.mark.unit
@pytest.mark.serve
def test_render_incomplete_source_fails(config_file: Path, tmp_path: Path) -> None:
    diagram = tmp_path / "partial.puml"
    diagram.write_text("@startuml\nA -> B\n")

    result = runner.invoke(app, ["--config", str(config_file), "render", str(diagram)])

    assert result.exit_code == 1
    assert not (tmp_path / "partial.svg").exists()


@pytest.mark.unit
@pytest.mark.serve
def test_render_syntax_error_writes_image_and_fails(
    config_file: Path, tmp_path: Path
) -> None:
    diagram = tmp_path / "broken.puml"
    diagram.write_text("@startuml\nERROR\n@enduml\n")

    result = runner.invoke(app, ["--config", str(config_file), "render", str(diagram)])

    assert result.exit_code == 1
    assert "Syntax Error?" in (tmp_path / "broken.svg").read_text()


@pytest.mark.unit
@pytest.mark.serve
def test_render_missing_engine_fails(tmp_path: Path) -> None:
    config_path = tmp_path / "umlpipe.yaml"
    config_path.write_text(
        yaml.dump({"log_dir": None, "engine": {"jar_path": str(tmp_path / "none.jar")}})
    )
    diagram = tmp_path / "hello.puml"
    diagram.write_text("@startuml\nhello\n@enduml\n")

    result = runner.invoke(app, ["--config", str(config_path), "render", str(diagram)])

    assert result.exit_code == 1
    assert not (tmp_path / "hello.svg").exists()


@pytest.mark.unit
@pytest.mark.serve
def test_bad_config_exits_with_usage_code(tmp_path: Path) -> None:
    config_path = tmp_path / "umlpipe.yaml"
    config_path.write_text("version: 99\n")
    diagram = tmp_path / "hello.puml"
    diagram.write_text("@startuml\nhello\n@enduml\n")

    result = runner.invoke(app, ["--config", str(config_path), "url", str(diagram)])

    assert result.exit_code == 2


@pytest.mark.unit
@pytest.mark.serve
def test_fetch_without_bridge_fails(config_file: Path, tmp_path: Path) -> None:
    from umlpipe.bridge.ports import LOOPBACK_HOST, bind_socket

    sock = bind_socket((LOOPBACK_HOST, 0))
    port = sock.getsockname()[1]
    sock.close()
    diagram = tmp_path / "hello.puml"
    diagram.write_text("@startuml\nhello\n@enduml\n")

    result = runner.invoke(
        app,
        ["--config", str(config_file), "fetch", str(diagram), "--port", str(port)],
    )

    assert result.exit_code == 1
    assert not (tmp_path / "hello.svg").exists()
