"""Property-based tests for the error-union engine.

Tests algebraic properties using Hypothesis:
- Well-formedness checking is deterministic
- Subtyping is reflexive and transitive
- The solver finds the least solution, independent of constraint order
- Solving from a solution is a fixed point
- Variable sets only grow while solving
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from errunion import intern
from errunion.checker.constraints import Constraint, Subset, UnionSubset
from errunion.checker.solver import Solver
from errunion.checker.subtyping import is_subtype
from errunion.checker.wellformed import check, is_well_formed
from errunion.types import (
    EMPTY,
    Alias,
    ErrorConst,
    ErrorSet,
    ErrorVar,
    TCon,
    Type,
    union,
)

CLASSIFIERS = [intern(f"P{i}", ("property",)) for i in range(5)]
RIGID = ErrorVar("R", Alias("RA", frozenset(CLASSIFIERS[:2])))
FLEXIBLE = [ErrorVar(f"F{i}", flexible=True) for i in range(4)]
VALUES = [TCon(int), TCon(bool), TCon(object), None]

classifier = st.sampled_from(CLASSIFIERS)
flexible_var = st.sampled_from(FLEXIBLE)


@st.composite
def any_union(draw: st.DrawFn) -> Type:
    """Arbitrary, possibly ill-formed unions."""
    pool: list[Type] = [
        TCon(int),
        TCon(str),
        ErrorVar("A"),
        ErrorVar("B", Alias("B", frozenset(CLASSIFIERS[:1]))),
        *(ErrorConst(c) for c in CLASSIFIERS),
    ]
    members = draw(st.lists(st.sampled_from(pool), max_size=6))
    return union(*members)


@st.composite
def well_formed_type(draw: st.DrawFn) -> Type:
    """Well-formed unions without flexible variables."""
    value = draw(st.sampled_from(VALUES))
    constants = draw(st.lists(classifier, unique=True, max_size=4))
    members: list[Type] = [] if value is None else [value]
    members.extend(ErrorConst(c) for c in constants)
    if draw(st.booleans()):
        members.append(RIGID)
    return union(*members)


@st.composite
def constraint_list(draw: st.DrawFn) -> list[Constraint]:
    """Lower bounds and flows between flexible variables."""
    lowers = st.builds(
        lambda var, atoms: UnionSubset(
            var=var,
            known=EMPTY,
            required=ErrorSet.of(*atoms),
        ),
        flexible_var,
        st.lists(classifier, unique=True, min_size=1, max_size=3),
    )
    flows = st.builds(
        lambda sub, sup, known: Subset(sub=sub, sup=sup, known=ErrorSet.of(*known)),
        flexible_var,
        flexible_var,
        st.lists(classifier, unique=True, max_size=2),
    )
    return draw(st.lists(st.one_of(lowers, flows), max_size=10))


def naive_fixed_point(constraints: list[Constraint]) -> dict[ErrorVar, frozenset]:
    """Apply every constraint until nothing changes."""
    sets: dict[ErrorVar, set] = {}
    for constraint in constraints:
        for var in constraint.variables():
            sets.setdefault(var, set())

    changed = True
    while changed:
        changed = False
        for constraint in constraints:
            match constraint:
                case UnionSubset(var=var, known=known, required=required):
                    added = set(required) - set(known)
                case Subset(sub=sub, sup=var, known=known):
                    added = sets[sub] - set(known)
                case _:
                    continue
            if not added <= sets[var]:
                sets[var] |= added
                changed = True
    return {var: frozenset(atoms) for var, atoms in sets.items()}


class TestWellFormedness:
    """Properties of the well-formedness checker."""

    @given(any_union())
    @settings(max_examples=200)
    def test_check_is_deterministic(self, u: Type) -> None:
        assert check(u) == check(u)

    @given(well_formed_type())
    @settings(max_examples=100)
    def test_generated_types_are_well_formed(self, t: Type) -> None:
        assert is_well_formed(t)


class TestSubtyping:
    """Properties of the subtyping relation."""

    @given(well_formed_type())
    @settings(max_examples=200)
    def test_reflexive(self, t: Type) -> None:
        assert is_subtype(t, t)

    @given(well_formed_type(), well_formed_type(), well_formed_type())
    @settings(max_examples=300)
    def test_transitive(self, a: Type, b: Type, c: Type) -> None:
        if is_subtype(a, b) and is_subtype(b, c):
            assert is_subtype(a, c)


class TestSolver:
    """Properties of the least fixed point solver."""

    @given(constraint_list())
    @settings(max_examples=200)
    def test_least_solution(self, constraints: list[Constraint]) -> None:
        result = Solver().solve(constraints)
        assert result.success
        expected = naive_fixed_point(constraints)
        solved = {var: value.atoms() for var, value in result.solution.items()}
        assert solved == expected

    @given(constraint_list())
    @settings(max_examples=100)
    def test_order_independent(self, constraints: list[Constraint]) -> None:
        forward = Solver().solve(constraints)
        backward = Solver().solve(list(reversed(constraints)))
        assert forward.solution == backward.solution

    @given(constraint_list())
    @settings(max_examples=100)
    def test_idempotent(self, constraints: list[Constraint]) -> None:
        first = Solver().solve(constraints)
        again = Solver().solve(constraints, initial=first.solution)
        assert again.solution == first.solution

    @given(constraint_list())
    @settings(max_examples=100)
    def test_growth_is_monotone(self, constraints: list[Constraint]) -> None:
        seen: dict[ErrorVar, ErrorSet] = {}

        def observe(var: ErrorVar, value: ErrorSet) -> None:
            previous = seen.get(var, EMPTY)
            assert previous.atoms() < value.atoms()
            seen[var] = value

        Solver().solve(constraints, on_grow=observe)
