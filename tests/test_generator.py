"""Tests for constraint generation."""

from errunion import intern
from errunion.checker.constraints import (
    SourceLocation,
    Subset,
    UnionSubset,
    UpperBound,
    constraint_summary,
)
from errunion.checker.generator import ConstraintGenerator, route
from errunion.checker.subtyping import SubtypeEngine, Verdict
from errunion.convert import format_type
from errunion.registry import Variance
from errunion.types import (
    EMPTY,
    ERROR,
    Alias,
    ErrorConst,
    ErrorSet,
    ErrorVar,
    TCon,
    union,
)

ERR1 = intern("Err1", ("test_generator",))
ERR2 = intern("Err2", ("test_generator",))
ERR3 = intern("Err3", ("test_generator",))
MY_ERR = intern("MyErr", ("test_generator",), (Variance.COVARIANT,))
INT = TCon("Int")
E1, E2, E3 = ErrorConst(ERR1), ErrorConst(ERR2), ErrorConst(ERR3)

IO = ErrorVar("IO", Alias("IO", frozenset({ERR1})), flexible=True)
NET = ErrorVar("NET", Alias("Net", frozenset({ERR2})), flexible=True)
ANY_ERR = ErrorVar("E", flexible=True)
U = ErrorVar("U", flexible=True)


def make_engine() -> tuple[SubtypeEngine, ConstraintGenerator]:
    generator = ConstraintGenerator()
    engine = SubtypeEngine(generator=generator)
    generator.engine = engine
    return engine, generator


class TestRouting:
    """Tests for picking the receiving variable."""

    def test_alias_containing_atom_wins(self) -> None:
        assert route(ERR2, (IO, NET, ANY_ERR)) == NET

    def test_unbounded_variable_next(self) -> None:
        assert route(ERR3, (IO, ANY_ERR, NET)) == ANY_ERR

    def test_first_variable_last(self) -> None:
        assert route(ERR3, (IO, NET)) == IO

    def test_variables_route_by_universe(self) -> None:
        rigid = ErrorVar("R", Alias("IO", frozenset({ERR1})))
        assert route(rigid, (NET, IO)) == IO


class TestGenerate:
    """Tests for the constraints produced by pending comparisons."""

    def test_constants_split_across_alias_variables(self) -> None:
        engine, generator = make_engine()
        verdict = engine.check(union(INT, IO, NET), union(INT, E1, E2))

        assert verdict is Verdict.PENDING
        produced = [
            (type(c), c.target, c.error_sets()[1]) for c in generator.constraints
        ]
        assert produced == [
            (UnionSubset, IO, ErrorSet.of(ERR1)),
            (UnionSubset, NET, ErrorSet.of(ERR2)),
        ]

    def test_flexible_variable_flows_into_flexible_variable(self) -> None:
        engine, generator = make_engine()
        engine.check(union(INT, E1, ANY_ERR), union(INT, U))

        [constraint] = generator.constraints
        assert isinstance(constraint, Subset)
        assert (constraint.sub, constraint.sup) == (U, ANY_ERR)
        assert constraint.known == ErrorSet.of(ERR1)

    def test_flexible_variable_into_fixed_union_is_bounded(self) -> None:
        engine, generator = make_engine()
        verdict = engine.check(union(INT, E1, E2), union(INT, U))

        assert verdict is Verdict.PENDING
        [constraint] = generator.constraints
        assert isinstance(constraint, UpperBound)
        assert constraint.var == U
        assert constraint.bound == ErrorSet.of(ERR1, ERR2)

    def test_mixed_residual(self) -> None:
        engine, generator = make_engine()
        engine.check(union(INT, ANY_ERR), union(INT, E3, U))

        kinds = [type(c) for c in generator.constraints]
        assert kinds == [UnionSubset, Subset]

    def test_covered_atoms_are_not_required(self) -> None:
        engine, generator = make_engine()
        engine.check(union(INT, E1, ANY_ERR), union(INT, E1, E2))

        [constraint] = generator.constraints
        assert isinstance(constraint, UnionSubset)
        assert constraint.known == ErrorSet.of(ERR1)
        assert constraint.required == ErrorSet.of(ERR2)

    def test_error_goes_to_unbounded_variable(self) -> None:
        engine, generator = make_engine()
        verdict = engine.check(union(INT, IO, ANY_ERR), union(INT, E1, ERROR))

        assert verdict is Verdict.PENDING
        produced = [(c.target, c.error_sets()[1]) for c in generator.constraints]
        assert produced == [
            (IO, ErrorSet.of(ERR1)),
            (ANY_ERR, ErrorSet(universal=True)),
        ]

    def test_error_into_bounded_variables_fails(self) -> None:
        engine, generator = make_engine()
        assert engine.check(union(INT, IO), union(INT, ERROR)) is Verdict.FAILS
        assert generator.constraints == []

    def test_payload_travels_with_atom(self) -> None:
        engine, generator = make_engine()
        engine.check(union(INT, ANY_ERR), ErrorConst(MY_ERR, (INT,)))

        [constraint] = generator.constraints
        assert isinstance(constraint, UnionSubset)
        assert constraint.required == ErrorSet.from_mapping({MY_ERR: (INT,)})

    def test_generate_returns_and_appends(self) -> None:
        engine, generator = make_engine()
        first = generator.generate(union(INT, ANY_ERR), union(INT, E1))
        second = generator.generate(union(INT, ANY_ERR), union(INT, E2))
        assert generator.constraints == [*first, *second]

    def test_default_engine(self) -> None:
        generator = ConstraintGenerator()
        [constraint] = generator.generate(ANY_ERR, E1)
        assert isinstance(constraint, UnionSubset)
        assert constraint.known == EMPTY


class TestProvenance:
    """Constraints remember where and why they were generated."""

    def test_location_and_reason(self) -> None:
        engine, generator = make_engine()
        location = SourceLocation("main.py", 12)
        sup = union(INT, ANY_ERR)
        sub = union(INT, E1)
        engine.check(sup, sub, location)

        [constraint] = generator.constraints
        assert constraint.location == location
        assert constraint.reason == f"{format_type(sub)} <: {format_type(sup)}"

    def test_summary(self) -> None:
        constraint = UpperBound(var=U, bound=ErrorSet.of(ERR1))
        assert constraint_summary(constraint) == (
            f"?U <= {{{ERR1.qualified_name}}}"
        )
