"""Backend for the club website: events, roster, achievements and live updates."""

from __future__ import annotations

from typing import Any

from .store import FlatFileStore, resolve_data_dir


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the HTTP application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "FlatFileStore",
    "resolve_data_dir",
    "create_app",
]
