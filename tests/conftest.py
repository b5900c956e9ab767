"""Shared fixtures: a supervisor factory backed by the scripted fake engine."""

from __future__ import annotations

import sys
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from umlpipe.engine.supervisor import EngineSupervisor

FAKE_ENGINE = Path(__file__).parent / "fixtures" / "fake_engine.py"


@pytest.fixture
def fake_engine_command() -> Callable[..., list[str]]:
    """Build the argv that launches the fake engine with extra args."""

    def build(*args: str) -> list[str]:
        return [sys.executable, str(FAKE_ENGINE), *args]

    return build


@pytest.fixture
def make_supervisor(
    fake_engine_command: Callable[..., list[str]],
) -> Generator[Callable[..., EngineSupervisor], None, None]:
    """Create supervisors over the fake engine; all are stopped on teardown."""
    created: list[EngineSupervisor] = []

    def factory(*args: str, render_timeout: float = 5.0, **kwargs: Any) -> EngineSupervisor:
        supervisor = EngineSupervisor(
            fake_engine_command(*args),
            render_timeout=render_timeout,
            stop_timeout=2.0,
            **kwargs,
        )
        created.append(supervisor)
        return supervisor

    yield factory

    for supervisor in created:
        supervisor.stop()
