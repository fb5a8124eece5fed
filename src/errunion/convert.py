"""Convert Python type hints to value types and render types as text.

Hosts that model their value types with Python classes can build them with
`from_hint`. `format_type` is used by every diagnostic, so it always prints
the canonical form.
"""

from __future__ import annotations

import types
from typing import TypeVar, Union, get_args, get_origin

from errunion.registry import Classifier
from errunion.types import (
    AnyType,
    Erroneous,
    ErrorConst,
    ErrorSet,
    ErrorTop,
    ErrorVar,
    NothingType,
    TCon,
    TVar,
    Type,
    UnionType,
    ValueProj,
    ValueTop,
    canonical,
    union,
)


def from_hint(hint: object) -> Type:
    """Convert a Python type hint to a value type.

    Handles:
    - Simple types (int, str, bool, etc.)
    - Generic types (list[int], dict[str, T], etc.)
    - TypeVars (converted to bare type variables)
    - None (converted to `Nothing`)

    Python unions are rejected: a value component is a single type.

    Examples:
        >>> from_hint(int)
        TCon(con=<class 'int'>, args=())
        >>> from_hint(list[int])
        TCon(con=<class 'list'>, args=(TCon(con=<class 'int'>, args=()),))

    """
    if isinstance(hint, TypeVar):
        return TVar(hint.__name__)

    if hint is None or hint is type(None):
        return NothingType()

    origin = get_origin(hint)

    if origin is None:
        if isinstance(hint, type):
            return TCon(hint)
        msg = f"Cannot convert hint: {hint!r}"
        raise TypeError(msg)

    if origin is Union or isinstance(hint, types.UnionType):
        msg = f"Python unions are not value types: {hint!r}"
        raise TypeError(msg)

    return TCon(origin, tuple(from_hint(arg) for arg in get_args(hint)))


def _format_args(args: tuple[Type, ...]) -> str:
    if not args:
        return ""
    return "[" + ", ".join(format_type(a) for a in args) + "]"


def format_classifier(classifier: Classifier) -> str:
    return classifier.qualified_name


def format_type(t: Type) -> str:  # noqa: PLR0911
    """Format a type for human-readable display."""
    match canonical(t):
        case AnyType():
            return "Any"
        case ValueTop():
            return "Value"
        case ErrorTop():
            return "Error"
        case NothingType():
            return "Nothing"
        case Erroneous():
            return "<error>"
        case TCon(args=args) as con:
            return f"{con.name}{_format_args(args)}"
        case TVar(name=name):
            return name
        case ValueProj(var=var, flexible=flexible):
            return f"{'?' if flexible else ''}{var}|_v"
        case ErrorConst(classifier=c, args=args):
            return f"{format_classifier(c)}{_format_args(args)}"
        case ErrorVar(name=name, flexible=flexible):
            return f"?{name}" if flexible else name
        case UnionType(members=members):
            return " | ".join(format_type(m) for m in members)
    return repr(t)


def format_error_set(error_set: ErrorSet) -> str:
    """Format a classifier set (or map) as `{A, B[int], E}`."""
    parts = [format_type(m) for m in error_set.as_members()]
    return "{" + ", ".join(parts) + "}"


def format_members(*members: Type) -> str:
    """Format members as a union, in written order, without normalizing."""
    return " | ".join(format_type(m) for m in union(*members).members)
