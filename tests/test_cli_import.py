"""The CLI's data commands must work on hosts without the web stack installed."""

from __future__ import annotations

import importlib
import sys
from typing import Iterator

import pytest


@pytest.fixture()
def without_web_stack(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    loaded = {name for name in sys.modules if name.partition(".")[0] == "clubsite"}
    for name in loaded:
        monkeypatch.delitem(sys.modules, name)
    # A None entry makes any import of the name fail with ImportError.
    monkeypatch.setitem(sys.modules, "fastapi", None)
    monkeypatch.setitem(sys.modules, "uvicorn", None)
    yield
    for name in [name for name in sys.modules if name.partition(".")[0] == "clubsite"]:
        if name not in loaded:
            del sys.modules[name]


@pytest.mark.parametrize("module", ["clubsite.config", "clubsite.models", "clubsite.store", "clubsite.passwords"])
def test_data_layer_imports_without_fastapi(without_web_stack: None, module: str) -> None:
    imported = importlib.import_module(module)

    assert imported.__name__ == module
    assert "clubsite.service" not in sys.modules


def test_app_factory_is_resolved_on_first_call(without_web_stack: None) -> None:
    package = importlib.import_module("clubsite")

    assert package.FlatFileStore.__module__ == "clubsite.store"
    with pytest.raises(ImportError):
        package.create_app()
