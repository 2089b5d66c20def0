"""Rule family tags and the predicates their rule strings must satisfy."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .errors import RuleFamilyMismatchError, UnknownRuleFamilyError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .ports.pattern_engine import PatternEngine, RuleInfo

type RulePredicate = Callable[[RuleInfo], bool]


@dataclass(frozen=True, slots=True)
class RuleFamily:
    name: str
    description: str
    predicate: RulePredicate

    def accepts(self, info: RuleInfo) -> bool:
        return self.predicate(info)


def _isotropic(kind: str) -> RulePredicate:
    def predicate(info: RuleInfo) -> bool:
        return info.kind == kind and info.symmetry == "D8"

    return predicate


RULE_FAMILIES: dict[str, RuleFamily] = {
    family.name: family
    for family in (
        RuleFamily("int", "isotropic non-totalistic rules without B0", _isotropic("map")),
        RuleFamily("intb0", "isotropic non-totalistic rules with B0", _isotropic("map_b0")),
    )
}


def get_rule_family(name: str) -> RuleFamily:
    try:
        return RULE_FAMILIES[name]
    except KeyError:
        raise UnknownRuleFamilyError(name) from None


def family_names() -> list[str]:
    return sorted(RULE_FAMILIES)


def validate_rule(family: str, rule: str, engine: PatternEngine) -> None:
    """Raise unless ``rule`` belongs to ``family``."""

    if not get_rule_family(family).accepts(engine.describe_rule(rule)):
        raise RuleFamilyMismatchError(family, rule)


def validate_rules(family: str, rules: Iterable[str], engine: PatternEngine) -> None:
    checked: set[str] = set()
    for rule in rules:
        if rule in checked:
            continue
        validate_rule(family, rule, engine)
        checked.add(rule)
