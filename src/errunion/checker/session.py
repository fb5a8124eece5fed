"""Inference sessions.

A session covers one scope the host type-checks as a unit, typically one
declaration. It owns the flexible variables introduced while checking that
scope, the constraints generated from pending comparisons, and the
diagnostics collected along the way. `solve()` concludes the session: the
constraints are solved once, pending comparisons are re-checked against the
frozen solution, and resolved types are attached to expressions.

Example:
    session = Session()
    ret = session.check_call(identity, [TypedExpr("arg", union(INT, err1))])
    session.annotate("call", ret)
    result = session.solve()
    result.get_resolved_type("call")   # Int | Err1

"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from itertools import count
from typing import TYPE_CHECKING

from errunion.checker.constraints import UNKNOWN_LOCATION
from errunion.checker.errors import SessionResult, SubtypeMismatch
from errunion.checker.generator import ConstraintGenerator
from errunion.checker.solver import Solution, Solver
from errunion.checker.subtyping import SubtypeEngine, Substitution, Verdict
from errunion.checker.wellformed import check as check_well_formed
from errunion.config import DEFAULT_OPTIONS, Options
from errunion.convert import format_type
from errunion.registry import get_registry
from errunion.types import (
    EMPTY,
    ERRONEOUS,
    NOTHING,
    UNBOUNDED,
    ErrorConst,
    ErrorVar,
    TCon,
    TVar,
    UnionType,
    ValueProj,
    canonical,
    free_error_vars,
    substitute,
    union,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from errunion.checker.constraints import Constraint, SourceLocation
    from errunion.checker.errors import Diagnostic, IllFormedError
    from errunion.registry import ClassifierRegistry
    from errunion.types import Type, Universe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TypedExpr:
    """An expression the host has already typed.

    Attributes:
        node_id: Host identifier used to attach the resolved type
        type: The expression's type
        location: Where the expression appears

    """

    node_id: str
    type: Type
    location: SourceLocation = UNKNOWN_LOCATION


@dataclass(frozen=True)
class Signature:
    """A function signature, possibly polymorphic.

    Type parameters are rigid inside `params` and `returns`; a call site
    instantiates them with fresh flexible variables.
    """

    name: str
    type_params: tuple[TVar | ErrorVar, ...]
    params: tuple[Type, ...]
    returns: Type


class SessionState(Enum):
    OPEN = auto()
    SOLVED = auto()
    CANCELLED = auto()


class Session:
    """One inference scope.

    Args:
        options: Engine options; defaults to strict fixing
        registry: Classifier registry; defaults to the process-wide one

    """

    def __init__(
        self,
        options: Options | None = None,
        registry: ClassifierRegistry | None = None,
    ) -> None:
        self.options = options or DEFAULT_OPTIONS
        self.registry = registry if registry is not None else get_registry()
        self.constraints: list[Constraint] = []
        self.diagnostics: list[Diagnostic] = []
        self.bindings = Substitution()
        self.generator = ConstraintGenerator(constraints=self.constraints)
        self.engine = SubtypeEngine(
            self.options,
            bindings=self.bindings,
            generator=self.generator,
        )
        self.generator.engine = self.engine
        self.solution: Solution | None = None
        self.state = SessionState.OPEN

        self._counter = count()
        self._variables: dict[ErrorVar, None] = {}
        self._poisoned: set[ErrorVar] = set()
        self._pending: list[tuple[Type, Type, SourceLocation]] = []
        self._types: dict[str, tuple[Type, SourceLocation]] = {}

    def fresh_error_var(
        self,
        base: str = "E",
        universe: Universe = UNBOUNDED,
    ) -> ErrorVar:
        """Introduce a flexible error variable owned by this session."""
        self._check_open()
        var = ErrorVar(f"{base}${next(self._counter)}", universe, flexible=True)
        self._variables[var] = None
        return var

    def fresh_value_var(self, base: str = "T") -> TVar:
        """Introduce a flexible type variable owned by this session."""
        self._check_open()
        var = TVar(f"{base}${next(self._counter)}", flexible=True)
        self._variables[var.error] = None
        return var

    def union(
        self,
        *members: Type,
        location: SourceLocation = UNKNOWN_LOCATION,
    ) -> Type:
        """Synthesize a union, reporting it if ill-formed.

        Returns:
            The canonical union, or `Erroneous` if it violates the union
            grammar (the violation is collected as a diagnostic).

        """
        candidate = union(*members)
        violation = check_well_formed(candidate, location)
        if violation is not None:
            logger.debug("ill-formed union: %s", violation.message)
            self.diagnostics.append(violation)
            return ERRONEOUS
        return canonical(candidate)

    def require(
        self,
        sup: Type,
        sub: Type,
        location: SourceLocation = UNKNOWN_LOCATION,
    ) -> Verdict:
        """Require `sup :> sub`.

        A definite failure is reported immediately; a pending comparison is
        remembered and re-checked by `solve()`.
        """
        self._check_open()
        verdict = self.engine.check(sup, sub, location)
        match verdict:
            case Verdict.FAILS:
                self.diagnostics.append(_mismatch(sup, sub, location))
            case Verdict.PENDING:
                self._pending.append((sup, sub, location))
        return verdict

    def check_assignment(self, target: Type, expr: TypedExpr) -> Verdict:
        """Check that `expr` may be stored in a slot of type `target`."""
        return self.require(target, expr.type, expr.location)

    def check_return(self, declared: Type, expr: TypedExpr) -> Verdict:
        """Check a returned expression against the declared return type."""
        return self.require(declared, expr.type, expr.location)

    def instantiate(
        self,
        signature: Signature,
        location: SourceLocation = UNKNOWN_LOCATION,
    ) -> tuple[tuple[Type, ...], Type]:
        """Replace a signature's type parameters with fresh flexible variables.

        Substituted types are checked like synthesized unions: an ill-formed
        one is reported and replaced by `Erroneous`.

        Returns:
            (params, returns) of the instantiated signature.

        """
        mapping: dict[Type, Type] = {}
        for param in signature.type_params:
            match param:
                case TVar(name=name):
                    fresh = self.fresh_value_var(name)
                    mapping[param] = fresh
                    mapping[param.value] = fresh.value
                    mapping[param.error] = fresh.error
                case ErrorVar(name=name, universe=universe):
                    mapping[param] = self.fresh_error_var(name, universe)

        params = tuple(
            self._checked(substitute(p, mapping), location) for p in signature.params
        )
        return params, self._checked(substitute(signature.returns, mapping), location)

    def check_call(
        self,
        signature: Signature,
        args: Sequence[TypedExpr],
        location: SourceLocation = UNKNOWN_LOCATION,
    ) -> Type:
        """Check a call site and return its (unresolved) result type.

        Raises:
            ValueError: If the number of arguments does not match.

        """
        if len(args) != len(signature.params):
            msg = (
                f"{signature.name} takes {len(signature.params)} argument(s), "
                f"got {len(args)}"
            )
            raise ValueError(msg)

        params, returns = self.instantiate(signature, location)
        for param, arg in zip(params, args, strict=True):
            self.require(param, arg.type, arg.location)
        logger.debug("call %s at %s", signature.name, location.describe())
        return returns

    def annotate(self, expr: TypedExpr | str, t: Type | None = None) -> None:
        """Attach a type to an expression for resolution at `solve()`."""
        if isinstance(expr, str):
            if t is None:
                msg = "A type is required when annotating by node id"
                raise ValueError(msg)
            self._types[expr] = (t, UNKNOWN_LOCATION)
        else:
            self._types[expr.node_id] = (expr.type if t is None else t, expr.location)

    def solve(self) -> SessionResult:
        """Solve the session's constraints and freeze the result.

        Raises:
            RuntimeError: If the session was already solved or cancelled.

        """
        self._check_open()
        solver = Solver(
            self.options,
            self.registry,
            engine=SubtypeEngine(self.options, bindings=self.bindings),
        )
        result = solver.solve(self.constraints)
        self.state = SessionState.SOLVED

        if result.success:
            empty = {var: EMPTY for var in self._variables}
            self.solution = result.solution.extend(empty)
            if self.options.revalidate:
                self._revalidate(self.solution)
        else:
            self.diagnostics.extend(result.errors)
            self.solution = Solution()
            # Partially grown sets are discarded
            self._poisoned.update(self._variables)
            for constraint in self.constraints:
                self._poisoned.update(v for v in constraint.variables() if v.flexible)

        types: dict[str, Type] = {}
        for node_id, (t, location) in self._types.items():
            resolved, violation = self._resolve(t, location)
            if violation is not None:
                self.diagnostics.append(violation)
                resolved = ERRONEOUS
            types[node_id] = resolved
        logger.debug(
            "session solved: %d constraint(s), %d diagnostic(s)",
            len(self.constraints),
            len(self.diagnostics),
        )
        return SessionResult(
            success=not self.diagnostics,
            diagnostics=list(self.diagnostics),
            solution=self.solution,
            types=types,
        )

    def resolve(self, t: Type) -> Type:
        """Canonical form of `t` with everything known so far substituted.

        After `solve()` the result is closed: value projections that were
        never bound become `Nothing`. A result that breaks the union grammar
        resolves to `Erroneous`.
        """
        resolved, violation = self._resolve(t)
        return resolved if violation is None else ERRONEOUS

    def cancel(self) -> None:
        """Abandon the session, discarding constraints and solver state."""
        if self.state is SessionState.SOLVED:
            msg = "Cannot cancel a solved session"
            raise RuntimeError(msg)
        self.state = SessionState.CANCELLED
        self.constraints.clear()
        self._pending.clear()
        self._types.clear()
        self.bindings.mapping.clear()
        logger.debug("session cancelled")

    def _resolve(
        self,
        t: Type,
        location: SourceLocation = UNKNOWN_LOCATION,
    ) -> tuple[Type, IllFormedError | None]:
        resolved = self.bindings.apply(canonical(t))
        if any(var in self._poisoned for var in free_error_vars(resolved)):
            return ERRONEOUS, None
        if self.solution is None:
            resolved = canonical(resolved)
        else:
            resolved = canonical(_ground(self.solution.apply(resolved)))
        return resolved, _violation(resolved, location)

    def _checked(self, t: Type, location: SourceLocation) -> Type:
        violation = _violation(t, location)
        if violation is None:
            return t
        logger.debug("ill-formed substitution: %s", violation.message)
        self.diagnostics.append(violation)
        return ERRONEOUS

    def _revalidate(self, solution: Solution) -> None:
        # Read-only: the frozen session gains no value bindings
        engine = SubtypeEngine(self.options, solution=solution, bindings=self.bindings)
        for sup, sub, location in self._pending:
            if not engine.holds(sup, sub):
                self.diagnostics.append(_mismatch(sup, sub, location, solution))

    def _check_open(self) -> None:
        if self.state is not SessionState.OPEN:
            msg = f"Session is {self.state.name.lower()}"
            raise RuntimeError(msg)


def _violation(t: Type, location: SourceLocation) -> IllFormedError | None:
    if isinstance(t, UnionType):
        return check_well_formed(t, location)
    return None


def _ground(t: Type) -> Type:
    """Replace value projections that were never bound with `Nothing`."""
    match t:
        case ValueProj(flexible=True):
            return NOTHING
        case UnionType(members=members):
            return union(*(_ground(m) for m in members))
        case TCon(con=con, args=args) if args:
            return TCon(con, tuple(_ground(a) for a in args))
        case ErrorConst(classifier=c, args=args) if args:
            return ErrorConst(c, tuple(_ground(a) for a in args))
        case _:
            return t


def _mismatch(
    sup: Type,
    sub: Type,
    location: SourceLocation,
    solution: Solution | None = None,
) -> SubtypeMismatch:
    if solution is not None:
        sup = solution.apply(sup)
        sub = solution.apply(sub)
    return SubtypeMismatch(
        location=location,
        message=f"{format_type(sub)} is not a subtype of {format_type(sup)}",
        sup=sup,
        sub=sub,
    )
