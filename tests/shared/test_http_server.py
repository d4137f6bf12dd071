"""Unit tests for shared FastAPI/uvicorn HTTP server helpers."""

from __future__ import annotations

from typing import Any

import pytest
from fastapi import FastAPI

from packages.guard_shared.http import create_app, run_app


def test_create_app_returns_fastapi_app() -> None:
    """create_app should return a FastAPI instance with configured metadata."""
    app = create_app(title="guard-test", version="1.2.3")

    assert isinstance(app, FastAPI)
    assert app.title == "guard-test"
    assert app.version == "1.2.3"


def test_run_app_forwards_arguments_to_uvicorn(monkeypatch: pytest.MonkeyPatch) -> None:
    """run_app should delegate execution to uvicorn.run with provided options."""
    app = create_app()
    called: dict[str, Any] = {}

    def _fake_run(target: Any, **kwargs: Any) -> None:
        called["target"] = target
        called["kwargs"] = kwargs

    monkeypatch.setattr("packages.guard_shared.http.server.uvicorn.run", _fake_run)

    run_app(app, host="0.0.0.0", port=9999, log_level="debug")

    assert called["target"] is app
    assert called["kwargs"] == {
        "host": "0.0.0.0",
        "port": 9999,
        "log_level": "debug",
        "log_config": None,
    }
