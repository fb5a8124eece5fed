"""Constraint generation from pending subtype comparisons.

When a comparison `sup :> sub` depends on flexible error variables, the
subtyping engine hands it here. The generator computes the residual of
`sub|_e` that `sup`'s known constants and rigid variables do not cover, and
records what the flexible variables must absorb:

1. Residual constants and rigid atoms become `UnionSubset(E, K, S)` on a
   flexible variable `E` of the supertype. `Error` in the subtype marks the
   set required of the first unbounded `E` as universal.
2. A residual flexible variable `U` becomes `Subset(U, E, K)`.
3. Without a flexible variable on the supertype side, a residual flexible
   variable `U` is bounded from above: `UpperBound(U, K)`.

Generic instantiations travel with the atoms; the solver merges them with the
configured fixing policy. The generator never mutates variable state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from errunion.checker.constraints import (
    UNKNOWN_LOCATION,
    Constraint,
    Subset,
    UnionSubset,
    UpperBound,
    constraint_summary,
)
from errunion.checker.subtyping import SubtypeEngine
from errunion.convert import format_type
from errunion.registry import Classifier
from errunion.types import Alias, ErrorSet, Unbounded, canonical

if TYPE_CHECKING:
    from errunion.checker.constraints import SourceLocation
    from errunion.types import ErrorAtom, ErrorVar, Type

logger = logging.getLogger(__name__)


def route(atom: ErrorAtom, targets: tuple[ErrorVar, ...]) -> ErrorVar:
    """Pick the flexible variable that receives `atom`.

    The variable whose alias universe contains the atom wins, then an
    unbounded variable, then the first one.
    """
    for target in targets:
        if isinstance(target.universe, Alias) and _inside(atom, target.universe):
            return target
    for target in targets:
        if isinstance(target.universe, Unbounded):
            return target
    return targets[0]


def _inside(atom: ErrorAtom, alias: Alias) -> bool:
    if isinstance(atom, Classifier):
        return atom in alias.members
    match atom.universe:
        case Alias(members=members):
            return members <= alias.members
        case _:
            return False


@dataclass
class ConstraintGenerator:
    """Turns pending comparisons into classifier-set constraints.

    Constraints are appended to `constraints` in generation order, which is
    also the order the solver seeds its worklist with and validates in.
    """

    engine: SubtypeEngine | None = None
    constraints: list[Constraint] = field(default_factory=list)

    def generate(
        self,
        sup: Type,
        sub: Type,
        location: SourceLocation = UNKNOWN_LOCATION,
    ) -> list[Constraint]:
        """Record the obligations under which `sup :> sub` holds.

        Args:
            sup: The expected type
            sub: The actual type
            location: Where the comparison was made

        Returns:
            The constraints generated for this comparison, in order. They
            are also appended to `self.constraints`.

        """
        engine = self._engine()
        sup_i = engine.interpret(sup)
        sub_i = engine.interpret(sub)
        known = sup_i.known
        targets = sup_i.flexible
        reason = f"{format_type(canonical(sub))} <: {format_type(canonical(sup))}"

        missing, _ = engine.residual(known, sub_i.known)
        generated: list[Constraint] = []

        # `Error` in the subtype goes to the first unbounded variable
        absorbs_all: ErrorVar | None = None
        if sub_i.known.universal and not known.universal:
            absorbs_all = next(
                (t for t in targets if isinstance(t.universe, Unbounded)),
                None,
            )

        routed: dict[ErrorVar, dict[ErrorAtom, tuple[Type, ...]]] = {}
        if targets:
            for atom, args in missing.entries:
                routed.setdefault(route(atom, targets), {})[atom] = args
        if absorbs_all is not None:
            routed.setdefault(absorbs_all, {})
        for target, required in routed.items():
            generated.append(
                UnionSubset(
                    var=target,
                    known=known,
                    required=ErrorSet.from_mapping(
                        required,
                        universal=target == absorbs_all,
                    ),
                    location=location,
                    reason=reason,
                ),
            )

        for var in sub_i.flexible:
            if var in targets:
                continue
            if targets:
                constraint: Constraint = Subset(
                    sub=var,
                    sup=route(var, targets),
                    known=known,
                    location=location,
                    reason=reason,
                )
            else:
                constraint = UpperBound(
                    var=var,
                    bound=known,
                    location=location,
                    reason=reason,
                )
            generated.append(constraint)

        for constraint in generated:
            logger.debug("generated %s", constraint_summary(constraint))
        self.constraints.extend(generated)
        return generated

    def _engine(self) -> SubtypeEngine:
        if self.engine is None:
            self.engine = SubtypeEngine(generator=self)
        return self.engine
