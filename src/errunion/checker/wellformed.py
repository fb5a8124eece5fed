"""Well-formedness of union types.

A union may carry at most one value constituent, written first, and its error
constituents must be pairwise disjoint: no classifier twice, and no two
variables whose universes overlap. Rules are checked in that order and the
first violation is reported. The check never consults the solver.
"""

from __future__ import annotations

from itertools import chain, combinations
from typing import TYPE_CHECKING

from errunion.checker.constraints import UNKNOWN_LOCATION
from errunion.checker.errors import (
    DuplicateClassifier,
    IllFormedError,
    MisplacedValueComponent,
    MultipleValueComponents,
    NonDisjointVariables,
)
from errunion.convert import format_type
from errunion.types import (
    Alias,
    ErrorConst,
    ErrorTop,
    ErrorVar,
    Unbounded,
    UnionType,
    Universe,
    is_value,
    union,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from errunion.checker.constraints import SourceLocation
    from errunion.registry import Classifier
    from errunion.types import Type


def universe_of(member: Type) -> Universe:
    """Declared classifier universe of an error variable or `Error`."""
    match member:
        case ErrorVar(universe=universe):
            return universe
        case _:
            return Unbounded()


def universes_overlap(first: Universe, second: Universe) -> bool:
    """Whether two declared universes can share a classifier.

    An unbounded universe overlaps everything except an empty alias.
    """
    match (first, second):
        case (Alias(members=a), Alias(members=b)):
            return not a.isdisjoint(b)
        case (Alias(members=a), Unbounded()) | (Unbounded(), Alias(members=a)):
            return bool(a)
        case _:
            return True


def _value_violations(
    u: UnionType,
    location: SourceLocation,
) -> Iterator[IllFormedError]:
    values = [(i, m) for i, m in enumerate(u.members) if is_value(m)]
    if len(values) > 1:
        shown = ", ".join(format_type(m) for _, m in values)
        yield MultipleValueComponents(
            location=location,
            message=f"At most one value component is allowed, found {shown}",
            union=u,
            values=tuple(m for _, m in values),
        )
    elif values and values[0][0] != 0:
        index, value = values[0]
        yield MisplacedValueComponent(
            location=location,
            message=(
                f"Value component {format_type(value)} must come first, "
                f"found at position {index}"
            ),
            union=u,
            value=value,
            index=index,
        )


def _constant_violations(
    u: UnionType,
    location: SourceLocation,
) -> Iterator[IllFormedError]:
    seen: set[Classifier] = set()
    reported: set[Classifier] = set()
    for member in u.members:
        if not isinstance(member, ErrorConst):
            continue
        classifier = member.classifier
        if classifier in seen and classifier not in reported:
            reported.add(classifier)
            yield DuplicateClassifier(
                location=location,
                message=f"Classifier {classifier.qualified_name} appears twice",
                union=u,
                classifier=classifier,
            )
        seen.add(classifier)


def _variable_violations(
    u: UnionType,
    location: SourceLocation,
) -> Iterator[IllFormedError]:
    variables = [m for m in u.members if isinstance(m, ErrorVar | ErrorTop)]
    for first, second in combinations(variables, 2):
        if universes_overlap(universe_of(first), universe_of(second)):
            yield NonDisjointVariables(
                location=location,
                message=(
                    f"Error variables {format_type(first)} and "
                    f"{format_type(second)} may hold the same classifier"
                ),
                union=u,
                first=first,
                second=second,
            )


def check_all(
    u: UnionType,
    location: SourceLocation = UNKNOWN_LOCATION,
) -> list[IllFormedError]:
    """Every violation of the union grammar, in rule order."""
    u = union(*u.members)
    return [
        *_value_violations(u, location),
        *_constant_violations(u, location),
        *_variable_violations(u, location),
    ]


def check(
    u: UnionType,
    location: SourceLocation = UNKNOWN_LOCATION,
) -> IllFormedError | None:
    """Validate a candidate union.

    Args:
        u: The union, in written order. Build it with `union()` so that
            nested unions are flattened and type variables are split.
        location: Where the union was synthesized

    Returns:
        The first violation in rule order, or None if the union is
        well-formed.

    """
    u = union(*u.members)
    violations = chain(
        _value_violations(u, location),
        _constant_violations(u, location),
        _variable_violations(u, location),
    )
    return next(violations, None)


def is_well_formed(*members: Type) -> bool:
    """Whether the union of `members` is well-formed."""
    return check(union(*members)) is None
