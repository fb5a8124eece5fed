"""Classifier-set constraints.

Constraints express inclusions between the classifier sets of error
variables. They are generated while checking a scope and solved once the
scope is complete.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from errunion.convert import format_error_set, format_type
from errunion.types import EMPTY, ErrorSet

if TYPE_CHECKING:
    from errunion.types import ErrorVar


@dataclass(frozen=True)
class SourceLocation:
    """Location in host source where a check or constraint originated.

    Attributes:
        path: File, declaration or expression path supplied by the host
        line: 1-based line, when known
        column: 1-based column, when known

    """

    path: str
    line: int | None = None
    column: int | None = None

    def describe(self) -> str:
        """Human-readable description of the location."""
        if self.line is None:
            return self.path
        if self.column is None:
            return f"{self.path}:{self.line}"
        return f"{self.path}:{self.line}:{self.column}"

    def child(self, segment: str) -> SourceLocation:
        """Create a child location by appending a path segment."""
        return SourceLocation(f"{self.path}.{segment}", self.line, self.column)


UNKNOWN_LOCATION = SourceLocation("<unknown>")


@dataclass(frozen=True, kw_only=True)
class Constraint:
    """Base class for classifier-set constraints.

    All constraints have a source location for error reporting
    and a reason naming the type expressions that were compared.
    """

    location: SourceLocation = UNKNOWN_LOCATION
    reason: str = ""

    @property
    def target(self) -> ErrorVar | None:
        """The variable this constraint makes grow, if any."""
        return None

    @property
    def source(self) -> ErrorVar | None:
        """The variable whose growth re-triggers this constraint, if any."""
        return None

    def variables(self) -> tuple[ErrorVar, ...]:
        return tuple(v for v in (self.source, self.target) if v is not None)

    def error_sets(self) -> tuple[ErrorSet, ...]:
        """Fixed sets mentioned by the constraint."""
        return ()


@dataclass(frozen=True)
class Subset(Constraint):
    """`current(sub) \\ known ⊆ current(sup)`.

    Generated when a flexible variable flows into a union whose error part
    holds another flexible variable. `known` are the atoms the receiving
    union already lists explicitly.
    """

    sub: ErrorVar
    sup: ErrorVar
    known: ErrorSet = EMPTY

    @property
    def target(self) -> ErrorVar:
        return self.sup

    @property
    def source(self) -> ErrorVar:
        return self.sub

    def error_sets(self) -> tuple[ErrorSet, ...]:
        return (self.known,)


@dataclass(frozen=True)
class UnionSubset(Constraint):
    """`required ⊆ current(var) ∪ known`.

    The solver reads this as the lower bound `required \\ known ⊆ var` and
    adds exactly those atoms. Generated when known classifiers flow into a
    union with an unresolved variable.
    """

    var: ErrorVar
    known: ErrorSet
    required: ErrorSet

    @property
    def target(self) -> ErrorVar:
        return self.var

    def error_sets(self) -> tuple[ErrorSet, ...]:
        return (self.known, self.required)


@dataclass(frozen=True)
class UpperBound(Constraint):
    """`current(var) ⊆ bound`.

    Never drives growth; validated once the least fixed point is reached.
    """

    var: ErrorVar
    bound: ErrorSet

    def variables(self) -> tuple[ErrorVar, ...]:
        return (self.var,)

    def error_sets(self) -> tuple[ErrorSet, ...]:
        return (self.bound,)


def constraint_summary(constraint: Constraint) -> str:
    """Generate a one-line summary of a constraint for debugging."""
    match constraint:
        case Subset(sub=sub, sup=sup, known=known):
            if known:
                return (
                    f"{format_type(sub)} \\ {format_error_set(known)} "
                    f"<= {format_type(sup)}"
                )
            return f"{format_type(sub)} <= {format_type(sup)}"
        case UnionSubset(var=var, known=known, required=required):
            return (
                f"{format_error_set(required)} <= "
                f"{format_type(var)} + {format_error_set(known)}"
            )
        case UpperBound(var=var, bound=bound):
            return f"{format_type(var)} <= {format_error_set(bound)}"
    return str(constraint)
