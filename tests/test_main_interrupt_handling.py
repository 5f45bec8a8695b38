from __future__ import annotations

import os

import pytest

import voxcord.__main__ as main_module
from voxcord.core.config.manager import CONFIG_ENV_VAR


class _InterruptedRunner:
    """Every run() is interrupted, like a Ctrl+C during startup and shutdown."""

    def __init__(self) -> None:
        self.runs = 0

    def __call__(self) -> _InterruptedRunner:
        return self

    def __enter__(self):
        return self

    def __exit__(self, _exc_type, _exc, _traceback):
        return False

    def get_loop(self):
        return object()

    def run(self, coro):
        self.runs += 1
        coro.close()
        raise KeyboardInterrupt


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch) -> _InterruptedRunner:
    fake_runner = _InterruptedRunner()

    async def _noop() -> None:
        return None

    monkeypatch.setattr(main_module.asyncio, "Runner", fake_runner)
    monkeypatch.setattr(main_module, "install_global_exception_hooks", lambda: None)
    monkeypatch.setattr(
        main_module,
        "register_asyncio_exception_handler",
        lambda _loop: None,
    )
    monkeypatch.setattr(main_module.voxcord.entrypoint, "main", _noop)
    monkeypatch.setattr(main_module.voxcord.entrypoint, "shutdown", _noop)
    return fake_runner


def test_main_suppresses_secondary_keyboard_interrupt(runner: _InterruptedRunner) -> None:
    main_module.main([])

    # One run for the bot, one for the shutdown after the first interrupt.
    assert runner.runs == 2


def test_config_flag_sets_config_path(
    runner: _InterruptedRunner,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv(CONFIG_ENV_VAR, "previous.yaml")

    main_module.main(["--config", "/srv/voxcord/config.yaml"])

    assert os.environ[CONFIG_ENV_VAR] == "/srv/voxcord/config.yaml"
    assert runner.runs == 2
