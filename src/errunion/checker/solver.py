"""Least fixed point solver for classifier-set constraints.

Every flexible variable starts with an empty set (or the set given in
`initial`) and only grows. A FIFO worklist seeded with all constraints in
generation order applies each constraint by adding the atoms its target is
missing; when a variable grows, every constraint reading from it is queued
again. Atoms come from the finite set mentioned by the constraints, so the
loop terminates.

Upper bounds never drive growth. Once the fixed point is reached they are
validated in generation order, together with the declared alias universe of
each variable, and the first violation is reported.
"""

from __future__ import annotations

import logging
from collections import defaultdict, deque
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from errunion.checker.constraints import Subset, UnionSubset, UpperBound
from errunion.checker.errors import (
    AmbiguousGenericInstantiation,
    UnknownClassifier,
    UnsatisfiableConstraint,
)
from errunion.checker.generics import resolve_policy
from errunion.checker.subtyping import SubtypeEngine
from errunion.config import DEFAULT_OPTIONS, Options
from errunion.convert import format_error_set, format_type
from errunion.registry import Classifier, ClassifierRegistry, get_registry
from errunion.types import (
    EMPTY,
    ERROR,
    Alias,
    ErrorSet,
    ErrorVar,
    UnionType,
    canonical,
    substitute,
)

if TYPE_CHECKING:
    from errunion.checker.constraints import Constraint
    from errunion.checker.errors import Diagnostic
    from errunion.types import ErrorAtom, Type

logger = logging.getLogger(__name__)

type GrowthObserver = Callable[[ErrorVar, ErrorSet], None]


class Solution(Mapping[ErrorVar, ErrorSet]):
    """Frozen result of solving: each flexible variable's classifier set."""

    def __init__(self, sets: Mapping[ErrorVar, ErrorSet] | None = None) -> None:
        self._sets: dict[ErrorVar, ErrorSet] = dict(sets) if sets else {}

    def __getitem__(self, var: ErrorVar) -> ErrorSet:
        return self._sets[var]

    def __iter__(self) -> Iterator[ErrorVar]:
        return iter(self._sets)

    def __len__(self) -> int:
        return len(self._sets)

    def __repr__(self) -> str:
        items = ", ".join(
            f"{format_type(var)}: {format_error_set(value)}"
            for var, value in self._sets.items()
        )
        return f"Solution({{{items}}})"

    def apply(self, t: Type) -> Type:
        """Replace solved variables in `t` by their classifiers.

        A variable whose set is universal becomes `Error`.

        Returns:
            The canonical form of the substituted type.

        """
        mapping: dict[Type, Type] = {
            var: ERROR if value.universal else UnionType(value.as_members())
            for var, value in self._sets.items()
        }
        return canonical(substitute(canonical(t), mapping))

    def extend(self, other: Mapping[ErrorVar, ErrorSet]) -> Solution:
        """Return a solution with entries of `other` added where missing."""
        return Solution({**other, **self._sets})


@dataclass
class SolverResult:
    """Result of constraint solving.

    Attributes:
        success: Whether the fixed point satisfies every constraint
        solution: The solved sets (empty on failure)
        errors: Diagnostics; at most one, since solving stops at the first
        steps: Number of worklist steps taken

    """

    success: bool
    solution: Solution = field(default_factory=Solution)
    errors: list[Diagnostic] = field(default_factory=list)
    steps: int = 0


class _Conflict(Exception):  # noqa: N818
    def __init__(self, diagnostic: Diagnostic) -> None:
        super().__init__(diagnostic.message)
        self.diagnostic = diagnostic


class Solver:
    """Worklist solver over one session's constraints.

    Args:
        options: Supplies the fixing policy and value subtyping
        registry: Classifiers outside it are reported as unknown
        engine: Used for payload comparisons and bound validation

    """

    def __init__(
        self,
        options: Options | None = None,
        registry: ClassifierRegistry | None = None,
        engine: SubtypeEngine | None = None,
    ) -> None:
        self.options = options or DEFAULT_OPTIONS
        self.registry = registry if registry is not None else get_registry()
        self.engine = engine or SubtypeEngine(self.options)
        self.policy = resolve_policy(self.options.fixing_policy)

    def solve(
        self,
        constraints: Iterable[Constraint],
        initial: Mapping[ErrorVar, ErrorSet] | None = None,
        *,
        on_grow: GrowthObserver | None = None,
    ) -> SolverResult:
        """Compute the least solution of `constraints`.

        Args:
            constraints: Constraints in generation order
            initial: Starting sets; variables not listed start empty
            on_grow: Called with the variable and its new set after every
                growth step

        Returns:
            SolverResult with the frozen solution, or the first violation.

        """
        constraints = list(constraints)

        unknown = self._find_unknown(constraints)
        if unknown is not None:
            logger.debug("aborting: %s", unknown.message)
            return SolverResult(success=False, errors=[unknown])

        state: dict[ErrorVar, dict[ErrorAtom, tuple[Type, ...]]] = {}
        universal: set[ErrorVar] = set()
        for var, value in (initial or {}).items():
            state[var] = value.to_dict()
            if value.universal:
                universal.add(var)
        for constraint in constraints:
            for var in constraint.variables():
                if var.flexible:
                    state.setdefault(var, {})

        dependents: defaultdict[ErrorVar, list[int]] = defaultdict(list)
        for index, constraint in enumerate(constraints):
            if constraint.source is not None and constraint.target is not None:
                dependents[constraint.source].append(index)

        queue = deque(range(len(constraints)))
        queued = set(queue)
        steps = 0

        while queue:
            index = queue.popleft()
            queued.discard(index)
            steps += 1
            constraint = constraints[index]
            target = constraint.target
            contribution = self._contribution(constraint, state, universal)
            if target is None or contribution is None:
                continue

            try:
                grew = self._grow(target, contribution, state, universal, constraint)
            except _Conflict as conflict:
                logger.debug("aborting after %d steps: %s", steps, conflict)
                return SolverResult(
                    success=False,
                    errors=[conflict.diagnostic],
                    steps=steps,
                )
            if not grew:
                continue

            if on_grow is not None:
                on_grow(target, _freeze(target, state, universal))
            for dependent in dependents[target]:
                if dependent not in queued:
                    queue.append(dependent)
                    queued.add(dependent)

        solution = Solution({var: _freeze(var, state, universal) for var in state})
        logger.debug("fixed point after %d steps: %r", steps, solution)

        violation = self._validate(constraints, solution)
        if violation is not None:
            logger.debug("validation failed: %s", violation.message)
            return SolverResult(success=False, errors=[violation], steps=steps)
        return SolverResult(success=True, solution=solution, steps=steps)

    def _contribution(
        self,
        constraint: Constraint,
        state: Mapping[ErrorVar, Mapping[ErrorAtom, tuple[Type, ...]]],
        universal: set[ErrorVar],
    ) -> tuple[dict[ErrorAtom, tuple[Type, ...]], bool] | None:
        """Atoms (and the `Error` flag) a constraint asks its target to hold."""
        match constraint:
            case Subset(sub=sub, known=known):
                if sub.flexible:
                    current = state.get(sub, {})
                    is_universal = sub in universal
                else:
                    current = {sub: ()}
                    is_universal = False
                added = {a: args for a, args in current.items() if a not in known}
                return added, is_universal and not known.universal
            case UnionSubset(known=known, required=required):
                added = {a: args for a, args in required.entries if a not in known}
                return added, required.universal and not known.universal
        return None

    def _grow(
        self,
        var: ErrorVar,
        contribution: tuple[dict[ErrorAtom, tuple[Type, ...]], bool],
        state: dict[ErrorVar, dict[ErrorAtom, tuple[Type, ...]]],
        universal: set[ErrorVar],
        constraint: Constraint,
    ) -> bool:
        atoms, is_universal = contribution
        current = state.setdefault(var, {})
        grew = False

        if is_universal and var not in universal:
            universal.add(var)
            grew = True

        for atom, args in atoms.items():
            old = current.get(atom)
            if old is None:
                current[atom] = args
                grew = True
                continue
            merged = self.policy.merge(atom, old, args, self.engine.holds)
            if merged is None:
                raise _Conflict(_ambiguous(var, atom, old, args, constraint))
            if merged != old:
                current[atom] = merged
                grew = True
        return grew

    def _validate(
        self,
        constraints: list[Constraint],
        solution: Solution,
    ) -> UnsatisfiableConstraint | None:
        seen: set[ErrorVar] = set()
        for constraint in constraints:
            if isinstance(constraint, UpperBound):
                var = constraint.var
                actual = solution.get(var, EMPTY) if var.flexible else ErrorSet.of(var)
                if not self.engine.covers(constraint.bound, actual):
                    return UnsatisfiableConstraint(
                        location=constraint.location,
                        message=(
                            f"{format_type(var)} may hold {format_error_set(actual)}, "
                            f"but at most {format_error_set(constraint.bound)} "
                            f"is allowed"
                        ),
                        variable=var,
                        expected=constraint.bound,
                        actual=actual,
                        constraint=constraint,
                    )

            for var in constraint.variables():
                if not var.flexible or var in seen:
                    continue
                seen.add(var)
                violation = _check_universe(var, solution.get(var, EMPTY), constraint)
                if violation is not None:
                    return violation
        return None

    def _find_unknown(self, constraints: list[Constraint]) -> UnknownClassifier | None:
        for constraint in constraints:
            atoms: list[ErrorAtom] = []
            for error_set in constraint.error_sets():
                atoms.extend(error_set)
            for var in constraint.variables():
                if isinstance(var.universe, Alias):
                    atoms.extend(var.universe.members)
            for atom in atoms:
                if isinstance(atom, Classifier) and atom not in self.registry:
                    return UnknownClassifier(
                        location=constraint.location,
                        message=f"Classifier {atom!r} was not issued by the registry",
                        classifier=atom,
                    )
        return None


def _freeze(
    var: ErrorVar,
    state: Mapping[ErrorVar, Mapping[ErrorAtom, tuple[Type, ...]]],
    universal: set[ErrorVar],
) -> ErrorSet:
    return ErrorSet.from_mapping(state.get(var, {}), universal=var in universal)


def _ambiguous(
    var: ErrorVar,
    atom: ErrorAtom,
    first: tuple[Type, ...],
    second: tuple[Type, ...],
    constraint: Constraint,
) -> Diagnostic:
    if not isinstance(atom, Classifier):
        msg = f"Generic instantiation on non-classifier atom {atom!r}"
        raise TypeError(msg)
    name = atom.qualified_name
    shown_first = ", ".join(format_type(t) for t in first)
    shown_second = ", ".join(format_type(t) for t in second)
    message = (
        f"{format_type(var)} receives {name}[{shown_first}] and "
        f"{name}[{shown_second}], which cannot be reconciled"
    )
    return AmbiguousGenericInstantiation(
        location=constraint.location,
        message=message,
        variable=var,
        classifier=atom,
        first=first,
        second=second,
        constraint=constraint,
    )


def _check_universe(
    var: ErrorVar,
    actual: ErrorSet,
    constraint: Constraint,
) -> UnsatisfiableConstraint | None:
    """A variable bounded by an alias may only hold that alias' classifiers."""
    if not isinstance(var.universe, Alias):
        return None
    allowed = var.universe.members

    def fits(atom: ErrorAtom) -> bool:
        if isinstance(atom, Classifier):
            return atom in allowed
        match atom.universe:
            case Alias(members=members):
                return members <= allowed
            case _:
                return False

    if not actual.universal and all(fits(atom) for atom in actual):
        return None
    expected = ErrorSet.of(*sorted(allowed))
    return UnsatisfiableConstraint(
        location=constraint.location,
        message=(
            f"{format_type(var)} may hold {format_error_set(actual)}, "
            f"outside its bound {var.universe.name}"
        ),
        variable=var,
        expected=expected,
        actual=actual,
        constraint=constraint,
    )


def solve(
    constraints: Iterable[Constraint],
    initial: Mapping[ErrorVar, ErrorSet] | None = None,
    options: Options | None = None,
) -> SolverResult:
    """Solve constraints with the process-wide registry."""
    return Solver(options).solve(constraints, initial)
