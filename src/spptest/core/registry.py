"""Registry of curve ranking methods."""

from __future__ import annotations

import logging
from importlib import import_module
from importlib.metadata import EntryPoint, entry_points
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from spptest.stats.measures import RankingMethod

logger = logging.getLogger(__name__)

_METHODS: dict[str, Callable[..., "RankingMethod"]] = {}


class RegistryError(KeyError):
    """Raised when a ranking method cannot be resolved."""


def register_method(name: str, factory: Callable[..., "RankingMethod"]) -> None:
    key = name.strip().lower()
    if not key:
        raise RegistryError("Method name cannot be empty")
    _METHODS[key] = factory


def create_method(name: str, **params: Any) -> "RankingMethod":
    """Instantiate the ranking method registered under ``name``."""

    key = name.strip().lower()
    if key not in _METHODS:
        _load_entrypoint_methods()
    if key not in _METHODS:
        available = ", ".join(sorted(_METHODS)) or "none"
        raise RegistryError(f"Unknown method '{name}'. Available methods: {available}")
    return _METHODS[key](**params)


def available_methods() -> list[str]:
    _load_entrypoint_methods()
    return sorted(_METHODS)


def _load_entrypoint_methods() -> None:
    for ep in entry_points(group="spptest.measures"):
        _load_entrypoint(ep)


def _load_entrypoint(ep: EntryPoint) -> None:
    try:
        factory = ep.load()
    except Exception as exc:
        logger.warning("Skipping ranking method entry point %r: %s", ep.name, exc)
        return
    if callable(factory):
        register_method(ep.name, factory)


def clear_registry() -> None:
    _METHODS.clear()


def import_and_register(module_path: str, factory_name: str = "register") -> None:
    """Import a module and invoke its registration function."""

    module = import_module(module_path)
    factory = getattr(module, factory_name)
    factory()
