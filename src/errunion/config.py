"""Engine options.

Value types are opaque to the engine; the host supplies how they relate via
`Options.value_subtype`. The default follows Python's class hierarchy, which
is what `TCon` built from Python classes expects.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any

from errunion.types import TCon, Type

if TYPE_CHECKING:
    from errunion.checker.generics import FixingPolicy

type ValueSubtype = Callable[[TCon, TCon, Callable[[Type, Type], bool]], bool]
"""`(sup, sub, holds) -> bool`; `holds` compares type arguments."""


def default_value_subtype(
    sup: TCon,
    sub: TCon,
    holds: Callable[[Type, Type], bool],
) -> bool:
    """Decide `sup :> sub` for two value constructors.

    Constructors relate through `issubclass` (so bool <: int); string-named
    constructors only relate to themselves. Type arguments are invariant.
    """
    if sup.con != sub.con:
        try:
            related = issubclass(sub.con, sup.con)  # type: ignore[arg-type]
        except TypeError:
            related = False
        # Different constructors only relate without type args
        return related and not sup.args and not sub.args

    if len(sup.args) != len(sub.args):
        return False
    return all(
        holds(a_sup, a_sub) and holds(a_sub, a_sup)
        for a_sup, a_sub in zip(sup.args, sub.args, strict=True)
    )


@dataclass(frozen=True)
class Options:
    """Options for one inference session.

    Attributes:
        fixing_policy: How two contributions of one generic classifier to the
            same variable are merged: "strict", "soft", or a FixingPolicy.
        value_subtype: Subtyping callback for opaque value constructors.
        revalidate: Re-check pending comparisons once variables are solved.

    """

    fixing_policy: str | FixingPolicy = "strict"
    value_subtype: ValueSubtype = default_value_subtype
    revalidate: bool = True

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> Options:
        """Build options from a plain host configuration mapping.

        Raises:
            ValueError: If the mapping has keys that are not options.

        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(mapping) - known)
        if unknown:
            msg = f"Unknown option(s): {', '.join(unknown)}"
            raise ValueError(msg)
        return cls(**mapping)


DEFAULT_OPTIONS = Options()
