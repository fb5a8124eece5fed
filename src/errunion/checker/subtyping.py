"""Subtyping over value/error projections.

`sup :> sub` holds when both projections do:

    (A | B) :> C  iff  A|_v :> C|_v  and  [A|_e ∪ B] ⊇ [C|_e]

where `[T]` is the classifier set (or map, for generic classifiers) that an
error type denotes. Error comparison is set containment, not nominal
subtyping. When a flexible variable is still unresolved the answer is
`PENDING`; the attached generator records what must hold, and the session
re-checks once the solver has run.

This module also computes the narrowing facts used by flow analysis
(`exclude`, `restrict`), since they are classifier-set arithmetic.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING

from errunion.checker.constraints import UNKNOWN_LOCATION
from errunion.checker.generics import subsumes_args
from errunion.config import DEFAULT_OPTIONS, Options
from errunion.types import (
    ERRONEOUS,
    Alias,
    Erroneous,
    ErrorConst,
    ErrorSet,
    ErrorTop,
    ErrorVar,
    NothingType,
    TCon,
    Unbounded,
    UnionType,
    ValueProj,
    ValueTop,
    canonical,
    error_part,
    union,
    value_part,
)

if TYPE_CHECKING:
    from errunion.checker.constraints import SourceLocation
    from errunion.checker.generator import ConstraintGenerator
    from errunion.registry import Classifier
    from errunion.types import ErrorAtom, Type


class Verdict(Enum):
    """Outcome of a subtype comparison."""

    HOLDS = auto()
    FAILS = auto()
    PENDING = auto()


@dataclass(frozen=True)
class Interpretation:
    """The classifier set `[T|_e]` of a type under the current solution.

    Attributes:
        known: Constants, rigid variables and the contents of solved
            flexible variables
        flexible: Flexible variables that are not solved yet

    """

    known: ErrorSet
    flexible: tuple[ErrorVar, ...] = ()


@dataclass
class Substitution:
    """Maps flexible value projections to the value types they stand for.

    Bindings are made on first comparison and never revised, the way a
    unifier extends its substitution.
    """

    mapping: dict[str, Type] = field(default_factory=dict)

    def __contains__(self, var: str) -> bool:
        return var in self.mapping

    def extend(self, var: str, t: Type) -> None:
        """Bind a flexible value variable."""
        self.mapping[var] = t

    def apply(self, t: Type) -> Type:
        """Replace bound value variables, following chains."""
        match t:
            case ValueProj(var=var, flexible=True) if var in self.mapping:
                return self.apply(self.mapping[var])
            case UnionType(members=members):
                return union(*(self.apply(m) for m in members))
            case TCon(con=con, args=args) if args:
                return TCon(con, tuple(self.apply(a) for a in args))
            case ErrorConst(classifier=c, args=args) if args:
                return ErrorConst(c, tuple(self.apply(a) for a in args))
            case _:
                return t


class SubtypeEngine:
    """Decides subtyping between error-union types.

    Args:
        options: Session options; supplies value subtyping
        solution: Solved flexible variables, once available
        bindings: Value bindings the engine may extend; None disables
            binding and flexible projections compare by name
        generator: Receives pending comparisons; None means pending
            comparisons are only reported

    """

    def __init__(
        self,
        options: Options | None = None,
        *,
        solution: Mapping[ErrorVar, ErrorSet] | None = None,
        bindings: Substitution | None = None,
        generator: ConstraintGenerator | None = None,
    ) -> None:
        self.options = options or DEFAULT_OPTIONS
        self.solution = solution
        self.bindings = bindings
        self.generator = generator

    def check(
        self,
        sup: Type,
        sub: Type,
        location: SourceLocation = UNKNOWN_LOCATION,
    ) -> Verdict:
        """Compare `sup :> sub`.

        Returns:
            HOLDS or FAILS when the answer is known, PENDING when it depends
            on unresolved flexible variables (obligations have then been
            handed to the generator, if one is attached).

        """
        if _erroneous(sup) or _erroneous(sub):
            return Verdict.HOLDS
        if not self._check_value(value_part(sup), value_part(sub)):
            return Verdict.FAILS
        return self._check_errors(sup, sub, location)

    def is_subtype(self, sup: Type, sub: Type) -> bool:
        """Direct check: True only if the relation is known to hold."""
        return self.check(sup, sub) is Verdict.HOLDS

    def holds(self, sup: Type, sub: Type) -> bool:
        """Compare without side effects: no bindings, no obligations."""
        return self._detached().check(sup, sub) is Verdict.HOLDS

    def interpret(self, t: Type) -> Interpretation:
        """Flatten the error part of `t` into a classifier set."""
        mapping: dict[ErrorAtom, tuple[Type, ...]] = {}
        flexible: list[ErrorVar] = []
        universal = False

        for member in error_part(t):
            match member:
                case ErrorTop():
                    universal = True
                case ErrorConst(classifier=c, args=args):
                    mapping[c] = args
                case ErrorVar(flexible=True) if self._solved(member):
                    solved = self.solution[member]  # type: ignore[index]
                    universal = universal or solved.universal
                    for atom, args in solved.entries:
                        mapping.setdefault(atom, args)
                case ErrorVar(flexible=True):
                    flexible.append(member)
                case ErrorVar():
                    mapping[member] = ()

        return Interpretation(
            ErrorSet.from_mapping(mapping, universal=universal),
            tuple(flexible),
        )

    def residual(
        self,
        sup: ErrorSet,
        sub: ErrorSet,
    ) -> tuple[ErrorSet, ErrorSet]:
        """Split the part of `sub` that `sup` does not cover.

        Returns:
            (missing, mismatched): atoms absent from `sup`, and atoms present
            in `sup` with an instantiation that does not subsume the one in
            `sub`.

        """
        missing: dict[ErrorAtom, tuple[Type, ...]] = {}
        mismatched: dict[ErrorAtom, tuple[Type, ...]] = {}
        for atom, args in sub.entries:
            sup_args = sup.get(atom)
            if sup_args is not None:
                if not subsumes_args(atom, sup_args, args, self.holds):
                    mismatched[atom] = args
                continue
            if isinstance(atom, ErrorVar) and _alias_covered(atom, sup):
                continue
            missing[atom] = args
        return ErrorSet.from_mapping(missing), ErrorSet.from_mapping(mismatched)

    def covers(self, sup: ErrorSet, sub: ErrorSet) -> bool:
        """Whether `sup ⊇ sub` for fully known sets."""
        if sup.universal:
            return True
        if sub.universal:
            return False
        missing, mismatched = self.residual(sup, sub)
        return not missing and not mismatched

    def _check_errors(
        self,
        sup: Type,
        sub: Type,
        location: SourceLocation,
    ) -> Verdict:
        sup_i = self.interpret(sup)
        sub_i = self.interpret(sub)

        if sup_i.known.universal:
            return Verdict.HOLDS
        # `Error` can only be absorbed by an unbounded variable
        uncovered = sub_i.known.universal
        if uncovered and not any(_unbounded(v) for v in sup_i.flexible):
            return Verdict.FAILS

        missing, mismatched = self.residual(sup_i.known, sub_i.known)
        if mismatched:
            return Verdict.FAILS

        flowing = [v for v in sub_i.flexible if v not in sup_i.flexible]
        if not missing and not flowing and not uncovered:
            return Verdict.HOLDS
        # Known classifiers can only be absorbed by a variable
        if missing and not sup_i.flexible:
            return Verdict.FAILS

        if self.generator is not None:
            self.generator.generate(sup, sub, location)
        return Verdict.PENDING

    def _check_value(self, sup: Type, sub: Type) -> bool:  # noqa: PLR0911
        sup = self._follow(sup)
        sub = self._follow(sub)
        if sup == sub:
            return True

        match (sup, sub):
            case (Erroneous(), _) | (_, Erroneous()):
                return True
            # Binding comes before the lattice axioms: a pure error argument
            # binds `T|_v` to Nothing, an `Any` argument binds it to Value
            case (ValueProj(flexible=True) as var, _) if self._can_bind(var):
                self.bindings.extend(var.var, sub)  # type: ignore[union-attr]
                return True
            case (_, ValueProj(flexible=True) as var) if self._can_bind(var):
                self.bindings.extend(var.var, sup)  # type: ignore[union-attr]
                return True
            case (_, NothingType()) | (ValueTop(), _):
                return True
            case (NothingType(), _) | (_, ValueTop()):
                return False
            case (TCon(), TCon()):
                return self.options.value_subtype(sup, sub, self.holds)
        return False

    def _follow(self, t: Type) -> Type:
        if self.bindings is not None and isinstance(t, ValueProj) and t.flexible:
            return self.bindings.apply(t)
        return t

    def _can_bind(self, var: ValueProj) -> bool:
        return self.bindings is not None and var.var not in self.bindings

    def _solved(self, var: ErrorVar) -> bool:
        return self.solution is not None and var in self.solution

    def _detached(self) -> SubtypeEngine:
        return _ReadOnlyEngine(self)


class _ReadOnlyEngine(SubtypeEngine):
    """View of an engine that follows its bindings but never extends them."""

    def __init__(self, parent: SubtypeEngine) -> None:
        super().__init__(parent.options, solution=parent.solution)
        self._parent_bindings = parent.bindings

    def _follow(self, t: Type) -> Type:
        if self._parent_bindings is not None and isinstance(t, ValueProj):
            return self._parent_bindings.apply(t)
        return t

    def _detached(self) -> SubtypeEngine:
        return self


def _erroneous(t: Type) -> bool:
    return isinstance(t, Erroneous) or canonical(t) == ERRONEOUS


def _unbounded(var: ErrorVar) -> bool:
    return isinstance(var.universe, Unbounded)


def _alias_covered(var: ErrorVar, known: ErrorSet) -> bool:
    """A rigid alias-bounded variable is covered by its whole universe."""
    match var.universe:
        case Alias(members=members):
            return all(c in known for c in members)
        case _:
            return False


def is_subtype(sup: Type, sub: Type, options: Options | None = None) -> bool:
    """Check `sup :> sub` for types without flexible variables."""
    return SubtypeEngine(options).is_subtype(sup, sub)


def exclude(t: Type, classifiers: Iterable[Classifier]) -> Type:
    """Narrow `t` by removing classifiers from its error part.

    Constants naming a removed classifier are dropped, and so are variables
    whose whole alias universe is removed. Used on the branch where a check
    for those classifiers failed.

    Example:
        exclude(Int | Err1 | Err2, [Err1])  ->  Int | Err2

    """
    dropped = frozenset(classifiers)
    kept: list[Type] = []
    for member in union(t).members:
        match member:
            case ErrorConst(classifier=c) if c in dropped:
                continue
            case ErrorVar(universe=Alias(members=members)) if members <= dropped:
                continue
            case _:
                kept.append(member)
    return canonical(UnionType(tuple(kept)))


def restrict(t: Type, classifiers: Iterable[Classifier]) -> Type:
    """Narrow `t` to the given classifiers, dropping its value part.

    A classifier is kept if `t` lists it as a constant or some error
    variable (or `Error`) could carry it. Used on the branch where a check
    for those classifiers succeeded.
    """
    wanted = sorted(frozenset(classifiers))
    found: dict[Classifier, Type] = {}
    members = union(t).members
    if any(isinstance(m, Erroneous) for m in members):
        return ERRONEOUS

    for member in members:
        if isinstance(member, ErrorConst) and member.classifier in wanted:
            found.setdefault(member.classifier, member)

    for member in members:
        for c in wanted:
            if c in found:
                continue
            match member:
                case ErrorVar() if member.may_hold(c):
                    found[c] = ErrorConst(c)
                case ErrorTop():
                    found[c] = ErrorConst(c)

    return canonical(UnionType(tuple(found.values())))
