"""Resolve the configured pattern engine and parametric constructor."""

from __future__ import annotations

from dataclasses import dataclass
from importlib import import_module
from logging import getLogger
from typing import TYPE_CHECKING, cast

from shipdb.config import EngineConfig, InvalidReferenceError, get_engine_config
from shipdb.domain.ports.pattern_engine import ParametricConstructor, PatternEngine

if TYPE_CHECKING:
    from collections.abc import Callable

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EngineBundle:
    engine: PatternEngine
    parametric: ParametricConstructor | None = None


def resolve_reference(reference: str) -> object:
    """Import ``package.module:attribute`` (dots allowed in the attribute path)."""

    module_name, sep, attribute = reference.partition(":")
    if not sep or not module_name or not attribute:
        raise InvalidReferenceError(reference, "expected 'module:attribute'")
    try:
        target: object = import_module(module_name)
    except ImportError as exc:
        raise InvalidReferenceError(reference, str(exc)) from exc
    for part in attribute.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise InvalidReferenceError(reference, f"no attribute {part!r}") from exc
    return target


def load_engine(reference: str) -> PatternEngine:
    factory = resolve_reference(reference)
    if not callable(factory):
        raise InvalidReferenceError(reference, "engine factory is not callable")
    engine = cast("Callable[[], object]", factory)()
    if not isinstance(engine, PatternEngine):
        raise InvalidReferenceError(reference, "factory did not return a PatternEngine")
    return engine


def load_parametric(reference: str) -> ParametricConstructor:
    constructor = resolve_reference(reference)
    if not callable(constructor):
        raise InvalidReferenceError(reference, "parametric constructor is not callable")
    return cast("ParametricConstructor", constructor)


def load_engine_bundle(config: EngineConfig | None = None) -> EngineBundle:
    effective = config or get_engine_config()
    engine = load_engine(effective.pattern_engine)
    parametric = load_parametric(effective.parametric) if effective.parametric else None
    log.info(
        "Loaded pattern engine %s (parametric: %s)",
        effective.pattern_engine,
        effective.parametric or "none",
    )
    return EngineBundle(engine=engine, parametric=parametric)
