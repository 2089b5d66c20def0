from __future__ import annotations

from .catalog import CatalogStore
from .pattern_engine import (
    Classification,
    ParametricConstructor,
    Pattern,
    PatternEngine,
    RuleInfo,
)

__all__ = [
    "CatalogStore",
    "Classification",
    "ParametricConstructor",
    "Pattern",
    "PatternEngine",
    "RuleInfo",
]
