"""Diagnostics produced by the checker.

This module defines the hierarchy of diagnostics that can occur while
constructing, comparing and solving error-union types, along with the
SessionResult that aggregates them and provides formatting utilities.

Diagnostics are collected, never raised: the host decides whether to abort
the enclosing declaration or continue with `Erroneous` types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, ClassVar

from errunion.convert import (
    format_classifier,
    format_error_set,
    format_members,
    format_type,
)
from errunion.types import ErrorSet, literal_error_set

if TYPE_CHECKING:
    from errunion.checker.constraints import Constraint, SourceLocation
    from errunion.checker.solver import Solution
    from errunion.registry import Classifier
    from errunion.types import ErrorVar, Type, UnionType


class DiagnosticKind(StrEnum):
    MULTIPLE_VALUE_COMPONENTS = "MultipleValueComponents"
    MISPLACED_VALUE_COMPONENT = "MisplacedValueComponent"
    DUPLICATE_CLASSIFIER = "DuplicateClassifier"
    NON_DISJOINT_VARIABLES = "NonDisjointVariables"
    UNSATISFIABLE_CONSTRAINT = "UnsatisfiableConstraint"
    AMBIGUOUS_GENERIC_INSTANTIATION = "AmbiguousGenericInstantiation"
    UNKNOWN_CLASSIFIER = "UnknownClassifier"
    SUBTYPE_MISMATCH = "SubtypeMismatch"


@dataclass(frozen=True)
class Diagnostic:
    """Base class for checker diagnostics.

    All diagnostics include a location and human-readable message.
    """

    kind: ClassVar[DiagnosticKind]
    recoverable: ClassVar[bool] = True

    location: SourceLocation
    message: str

    @property
    def expected_classifiers(self) -> ErrorSet | None:
        return None

    @property
    def actual_classifiers(self) -> ErrorSet | None:
        return None

    def format(self) -> str:
        """Format the diagnostic for display."""
        return f"{self.location.describe()}: {self.message}"

    def as_dict(self) -> dict[str, object]:
        """Flatten into a diagnostics stream entry for a reporting layer."""
        expected = self.expected_classifiers
        actual = self.actual_classifiers
        return {
            "kind": str(self.kind),
            "location": self.location.describe(),
            "expected": None if expected is None else format_error_set(expected),
            "actual": None if actual is None else format_error_set(actual),
            "message": self.message,
        }


@dataclass(frozen=True)
class IllFormedError(Diagnostic):
    """A synthesized union violates the union grammar."""

    union: UnionType

    def format(self) -> str:
        return (
            f"{self.location.describe()}: Ill-formed union type\n"
            f"  Union:  {format_members(*self.union.members)}\n"
            f"  Reason: {self.message}"
        )


@dataclass(frozen=True)
class MultipleValueComponents(IllFormedError):
    kind = DiagnosticKind.MULTIPLE_VALUE_COMPONENTS

    values: tuple[Type, ...]


@dataclass(frozen=True)
class MisplacedValueComponent(IllFormedError):
    kind = DiagnosticKind.MISPLACED_VALUE_COMPONENT

    value: Type
    index: int


@dataclass(frozen=True)
class DuplicateClassifier(IllFormedError):
    kind = DiagnosticKind.DUPLICATE_CLASSIFIER

    classifier: Classifier

    @property
    def actual_classifiers(self) -> ErrorSet:
        return ErrorSet.of(self.classifier)


@dataclass(frozen=True)
class NonDisjointVariables(IllFormedError):
    """Two error variables of one union may hold the same classifier."""

    kind = DiagnosticKind.NON_DISJOINT_VARIABLES

    first: Type
    second: Type


@dataclass(frozen=True)
class UnsatisfiableConstraint(Diagnostic):
    """A solved variable exceeds one of its upper bounds.

    Reported at the first violated constraint in generation order.
    """

    kind = DiagnosticKind.UNSATISFIABLE_CONSTRAINT

    variable: ErrorVar
    expected: ErrorSet
    actual: ErrorSet
    constraint: Constraint | None = None

    @property
    def expected_classifiers(self) -> ErrorSet:
        return self.expected

    @property
    def actual_classifiers(self) -> ErrorSet:
        return self.actual

    def format(self) -> str:
        lines = [
            f"{self.location.describe()}: Unsatisfiable constraint",
            f"  Variable: {format_type(self.variable)}",
            f"  Bound:    {format_error_set(self.expected)}",
            f"  Computed: {format_error_set(self.actual)}",
        ]
        if self.constraint is not None and self.constraint.reason:
            lines.append(f"  Reason:   {self.constraint.reason}")
        return "\n".join(lines)


@dataclass(frozen=True)
class AmbiguousGenericInstantiation(Diagnostic):
    """Two sources contribute one classifier with irreconcilable arguments."""

    kind = DiagnosticKind.AMBIGUOUS_GENERIC_INSTANTIATION

    variable: ErrorVar
    classifier: Classifier
    first: tuple[Type, ...]
    second: tuple[Type, ...]
    constraint: Constraint | None = None

    @property
    def expected_classifiers(self) -> ErrorSet:
        return ErrorSet(((self.classifier, self.first),))

    @property
    def actual_classifiers(self) -> ErrorSet:
        return ErrorSet(((self.classifier, self.second),))

    def format(self) -> str:
        name = format_classifier(self.classifier)
        first = ", ".join(format_type(t) for t in self.first)
        second = ", ".join(format_type(t) for t in self.second)
        return (
            f"{self.location.describe()}: Ambiguous generic instantiation\n"
            f"  Variable: {format_type(self.variable)}\n"
            f"  First:    {name}[{first}]\n"
            f"  Second:   {name}[{second}]"
        )


@dataclass(frozen=True)
class UnknownClassifier(Diagnostic):
    """A constraint mentions a classifier the registry never issued."""

    kind = DiagnosticKind.UNKNOWN_CLASSIFIER
    recoverable = False

    classifier: Classifier


@dataclass(frozen=True)
class SubtypeMismatch(Diagnostic):
    """A required subtype relationship definitely does not hold."""

    kind = DiagnosticKind.SUBTYPE_MISMATCH

    sup: Type
    sub: Type

    @property
    def expected_classifiers(self) -> ErrorSet:
        return literal_error_set(self.sup)

    @property
    def actual_classifiers(self) -> ErrorSet:
        return literal_error_set(self.sub)

    def format(self) -> str:
        return (
            f"{self.location.describe()}: Type is not assignable\n"
            f"  Type:     {format_type(self.sub)}\n"
            f"  Expected: {format_type(self.sup)}\n"
            f"  Reason:   {self.message}"
        )


@dataclass
class SessionResult:
    """Result of concluding an inference session.

    Contains success status, every diagnostic collected during the session,
    the frozen solution, and the resolved types attached to expressions.
    """

    success: bool
    diagnostics: list[Diagnostic] = field(default_factory=list)
    solution: Solution | None = None
    types: dict[str, Type] = field(default_factory=dict)

    @property
    def errors(self) -> list[Diagnostic]:
        return self.diagnostics

    def format_errors(self) -> str:
        """Format all diagnostics for display.

        Returns:
            A multi-line string with all diagnostics formatted.

        """
        if self.success:
            return "Type check passed."

        lines = [f"Type check failed with {len(self.diagnostics)} error(s):\n"]
        for i, diagnostic in enumerate(self.diagnostics, 1):
            lines.append(f"[{i}] {diagnostic.format()}\n")

        return "\n".join(lines)

    def get_resolved_type(self, node_id: str) -> Type | None:
        """Get the resolved type attached to an expression, if any."""
        return self.types.get(node_id)
