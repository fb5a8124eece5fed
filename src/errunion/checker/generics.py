"""Generic classifiers: variance, map subsumption and fixing policies.

When error types carry generic payloads, a classifier set becomes a map from
classifier to instantiation. Containment turns into subsumption: every
classifier on the right must appear on the left with an argument that relates
according to the parameter's declared variance.

Contributions of one classifier to the same variable from two sources must be
merged. Covariant parameters make that ambiguous, so the merge is a policy:

- StrictFixing (default): covariant contributions must agree exactly.
- SoftFixing: covariant contributions join, widening to `Value` when the two
  arguments are unrelated.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING

from errunion.registry import Classifier, Variance
from errunion.types import NOTHING, VALUE

if TYPE_CHECKING:
    from errunion.types import ErrorAtom, ErrorSet, Type

type Holds = Callable[[Type, Type], bool]
"""`holds(sup, sub)` decides `sup :> sub` for payload types."""


def variance_of(atom: ErrorAtom, index: int) -> Variance:
    """Declared variance of a classifier's parameter; invariant if undeclared."""
    if isinstance(atom, Classifier) and index < len(atom.variances):
        return atom.variances[index]
    return Variance.INVARIANT


def subsumes_args(
    atom: ErrorAtom,
    sup_args: tuple[Type, ...],
    sub_args: tuple[Type, ...],
    holds: Holds,
) -> bool:
    """Whether instantiation `sup_args` covers `sub_args`.

    An empty instantiation means "not instantiated" and matches any other.
    """
    if not sup_args or not sub_args or sup_args == sub_args:
        return True
    if len(sup_args) != len(sub_args):
        return False

    for i, (a_sup, a_sub) in enumerate(zip(sup_args, sub_args, strict=True)):
        match variance_of(atom, i):
            case Variance.COVARIANT:
                ok = holds(a_sup, a_sub)
            case Variance.CONTRAVARIANT:
                ok = holds(a_sub, a_sup)
            case Variance.INVARIANT:
                ok = holds(a_sup, a_sub) and holds(a_sub, a_sup)
        if not ok:
            return False
    return True


def subsumes(sup: ErrorSet, sub: ErrorSet, holds: Holds) -> bool:
    """Whether classifier map `sup` subsumes `sub`."""
    if sup.universal:
        return True
    if sub.universal:
        return False
    for atom, sub_args in sub.entries:
        sup_args = sup.get(atom)
        if sup_args is None or not subsumes_args(atom, sup_args, sub_args, holds):
            return False
    return True


class FixingPolicy(ABC):
    """Merges two instantiations of one classifier contributed to a variable."""

    name: str

    def merge(
        self,
        atom: ErrorAtom,
        current: tuple[Type, ...],
        incoming: tuple[Type, ...],
        holds: Holds,
    ) -> tuple[Type, ...] | None:
        """Merge two instantiations.

        Args:
            atom: The classifier both contributions name
            current: Instantiation already recorded for the variable
            incoming: Newly contributed instantiation
            holds: Payload subtyping

        Returns:
            The merged instantiation, or None if the two cannot be
            reconciled under this policy.

        """
        if current == incoming or not incoming:
            return current
        if not current:
            return incoming
        if len(current) != len(incoming):
            return None

        merged: list[Type] = []
        for i, (old, new) in enumerate(zip(current, incoming, strict=True)):
            match variance_of(atom, i):
                case Variance.COVARIANT:
                    arg = self.merge_covariant(old, new, holds)
                case Variance.CONTRAVARIANT:
                    arg = self.merge_contravariant(old, new, holds)
                case Variance.INVARIANT:
                    arg = old if old == new else None
            if arg is None:
                return None
            merged.append(arg)
        return tuple(merged)

    @abstractmethod
    def merge_covariant(self, old: Type, new: Type, holds: Holds) -> Type | None:
        """Merge two arguments of a covariant parameter."""

    @abstractmethod
    def merge_contravariant(self, old: Type, new: Type, holds: Holds) -> Type | None:
        """Merge two arguments of a contravariant parameter."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class StrictFixing(FixingPolicy):
    """The explicit instantiation is authoritative; covariant sources must agree."""

    name = "strict"

    def merge_covariant(self, old: Type, new: Type, holds: Holds) -> Type | None:
        return old if old == new else None

    def merge_contravariant(self, old: Type, new: Type, holds: Holds) -> Type | None:
        if holds(old, new):
            return new
        if holds(new, old):
            return old
        return None


class SoftFixing(FixingPolicy):
    """Covariant sources join; contravariant sources meet."""

    name = "soft"

    def merge_covariant(self, old: Type, new: Type, holds: Holds) -> Type | None:
        if holds(old, new):
            return old
        if holds(new, old):
            return new
        return VALUE

    def merge_contravariant(self, old: Type, new: Type, holds: Holds) -> Type | None:
        if holds(old, new):
            return new
        if holds(new, old):
            return old
        return NOTHING


POLICIES: dict[str, type[FixingPolicy]] = {
    StrictFixing.name: StrictFixing,
    SoftFixing.name: SoftFixing,
}


def resolve_policy(policy: str | FixingPolicy) -> FixingPolicy:
    """Turn a policy name or instance into a policy instance.

    Raises:
        ValueError: If the name is not a known policy.

    """
    if isinstance(policy, FixingPolicy):
        return policy
    try:
        return POLICIES[policy]()
    except KeyError:
        known = ", ".join(sorted(POLICIES))
        msg = f"Unknown fixing policy {policy!r} (expected one of: {known})"
        raise ValueError(msg) from None
