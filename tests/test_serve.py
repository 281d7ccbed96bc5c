import importlib
import logging

import psdash_api.main
from psdash.config import get_settings
from psdash_api import serve


def test_serve_configures_logging_and_runs_the_app(monkeypatch) -> None:
    calls = {}
    monkeypatch.setattr(serve.uvicorn, "run", lambda target, **kwargs: calls.update(target=target, **kwargs))
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.update(logging=kwargs))

    serve.main(["--port", "9001"])

    assert calls["target"] == "psdash_api.main:app"
    assert calls["port"] == 9001
    assert calls["host"] == "127.0.0.1"
    assert calls["logging"]["level"] == get_settings().log_level


def test_importing_the_api_leaves_logging_alone(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    importlib.reload(psdash_api.main)

    assert calls == []
