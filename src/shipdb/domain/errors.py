"""Domain error definitions."""

from __future__ import annotations


class ShipCatalogError(RuntimeError):
    """Base class for catalog maintenance failures."""


class InvalidCandidateError(ShipCatalogError):
    """Raised in strict mode when a candidate cannot be canonicalized."""

    def __init__(self, message: str, *, line: str | None = None) -> None:
        super().__init__(message)
        self.line = line


class RuleFamilyError(ShipCatalogError):
    """Raised for problems with a rule family tag."""


class UnknownRuleFamilyError(RuleFamilyError):
    def __init__(self, family: str) -> None:
        super().__init__(f"Invalid ship type: '{family}'")
        self.family = family


class RuleFamilyMismatchError(RuleFamilyError):
    def __init__(self, family: str, rule: str) -> None:
        super().__init__(f"Invalid rule for {family}: {rule}")
        self.family = family
        self.rule = rule


class PatternEngineBugError(ShipCatalogError):
    """A just-canonicalized ship no longer reproduces its own speed."""


class CatalogStoreError(ShipCatalogError):
    """Raised when a catalog file cannot be read or written."""


class CatalogFormatError(ValueError):
    """Raised when a catalog line cannot be parsed."""

    def __init__(self, message: str, *, line: str, line_number: int | None = None) -> None:
        location = f"line {line_number}: " if line_number is not None else ""
        super().__init__(f"{location}{message}: {line!r}")
        self.line = line
        self.line_number = line_number
