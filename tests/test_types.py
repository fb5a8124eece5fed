"""Tests for the type model."""

import pytest

import errunion
import errunion.checker
from errunion import intern
from errunion.types import (
    ANY,
    EMPTY,
    ERRONEOUS,
    ERROR,
    NOTHING,
    VALUE,
    Alias,
    ErrorConst,
    ErrorSet,
    ErrorVar,
    TCon,
    TVar,
    UnionType,
    ValueProj,
    canonical,
    error_part,
    free_error_vars,
    literal_error_set,
    substitute,
    union,
    value_part,
)

ERR1 = intern("Err1", ("test_types",))
ERR2 = intern("Err2", ("test_types",))
INT = TCon("Int")


class TestUnion:
    """Tests for building unions in written order."""

    def test_flattens_nested_unions(self) -> None:
        inner = union(ErrorConst(ERR1), ErrorConst(ERR2))
        assert union(INT, inner).members == (INT, ErrorConst(ERR1), ErrorConst(ERR2))

    def test_drops_nothing(self) -> None:
        assert union(NOTHING, INT, NOTHING).members == (INT,)

    def test_splits_type_variables(self) -> None:
        t = TVar("T")
        assert union(t, ErrorConst(ERR1)).members == (
            ValueProj("T"),
            ErrorVar("T|_e"),
            ErrorConst(ERR1),
        )

    def test_splits_any(self) -> None:
        assert union(ANY).members == (VALUE, ERROR)

    def test_keeps_written_order(self) -> None:
        members = union(ErrorConst(ERR2), INT).members
        assert members == (ErrorConst(ERR2), INT)


class TestCanonical:
    """Tests for canonical form."""

    def test_sorts_value_first_then_classifiers_by_id(self) -> None:
        t = union(ErrorConst(ERR2), ErrorVar("E"), INT, ErrorConst(ERR1))
        assert canonical(t) == UnionType(
            (INT, ErrorConst(ERR1), ErrorConst(ERR2), ErrorVar("E")),
        )

    def test_removes_duplicates(self) -> None:
        t = union(INT, ErrorConst(ERR1), ErrorConst(ERR1))
        assert canonical(t) == UnionType((INT, ErrorConst(ERR1)))

    def test_collapses_trivial_unions(self) -> None:
        assert canonical(union(INT)) == INT
        assert canonical(union()) == NOTHING

    def test_erroneous_poisons_union(self) -> None:
        assert canonical(union(INT, ERRONEOUS, ErrorConst(ERR1))) == ERRONEOUS

    def test_order_independent(self) -> None:
        a = union(INT, ErrorConst(ERR1), ErrorConst(ERR2))
        b = union(ErrorConst(ERR2), INT, ErrorConst(ERR1))
        assert canonical(a) == canonical(b)


class TestProjections:
    """Tests for value and error projections."""

    def test_value_part(self) -> None:
        assert value_part(union(INT, ErrorConst(ERR1))) == INT
        assert value_part(ErrorConst(ERR1)) == NOTHING
        assert value_part(ANY) == VALUE
        assert value_part(TVar("T")) == ValueProj("T")

    def test_error_part(self) -> None:
        assert error_part(union(INT, ErrorConst(ERR1))) == (ErrorConst(ERR1),)
        assert error_part(INT) == ()
        assert error_part(ANY) == (ERROR,)
        assert error_part(TVar("T")) == (ErrorVar("T|_e"),)


class TestErrorVar:
    """Tests for error variable universes."""

    def test_unbounded_may_hold_anything(self) -> None:
        assert ErrorVar("E").may_hold(ERR1)

    def test_alias_limits_universe(self) -> None:
        e = ErrorVar("E", Alias("IO", frozenset({ERR1})))
        assert e.may_hold(ERR1)
        assert not e.may_hold(ERR2)


class TestErrorSet:
    """Tests for classifier sets and maps."""

    def test_entries_sorted(self) -> None:
        assert ErrorSet.of(ERR2, ERR1) == ErrorSet.of(ERR1, ERR2)
        assert list(ErrorSet.of(ERR2, ERR1)) == [ERR1, ERR2]

    def test_variables_sort_after_classifiers(self) -> None:
        e = ErrorVar("E")
        assert list(ErrorSet.of(e, ERR1)) == [ERR1, e]

    def test_union_and_without(self) -> None:
        s = ErrorSet.of(ERR1).union(ErrorSet.of(ERR2))
        assert s == ErrorSet.of(ERR1, ERR2)
        assert s.without([ERR1]) == ErrorSet.of(ERR2)

    def test_union_prefers_own_instantiation(self) -> None:
        mine = ErrorSet.from_mapping({ERR1: (INT,)})
        theirs = ErrorSet.from_mapping({ERR1: (TCon("String"),)})
        assert mine.union(theirs).get(ERR1) == (INT,)

    def test_truthiness(self) -> None:
        assert not EMPTY
        assert ErrorSet(universal=True)
        assert ErrorSet.of(ERR1)

    def test_as_members(self) -> None:
        e = ErrorVar("E")
        s = ErrorSet.of(ERR1, e)
        assert s.as_members() == (ErrorConst(ERR1), e)
        assert ErrorSet(universal=True).as_members() == (ERROR,)

    def test_literal_error_set(self) -> None:
        e = ErrorVar("E")
        t = union(INT, ErrorConst(ERR1, (INT,)), e)
        assert literal_error_set(t) == ErrorSet.from_mapping({ERR1: (INT,), e: ()})


class TestSubstitute:
    """Tests for substitution and free variables."""

    def test_substitute_inside_union_and_args(self) -> None:
        e = ErrorVar("E")
        t = union(TCon("List", (ValueProj("T"),)), e)
        result = substitute(t, {ValueProj("T"): INT, e: ErrorConst(ERR1)})
        assert result == union(TCon("List", (INT,)), ErrorConst(ERR1))

    def test_free_error_vars_in_first_seen_order(self) -> None:
        e1 = ErrorVar("E1")
        e2 = ErrorVar("E2")
        t = union(INT, e2, ErrorConst(ERR1, (union(e1, e2),)))
        assert free_error_vars(t) == (e2, e1)

    def test_free_error_vars_of_type_variable(self) -> None:
        assert free_error_vars(TVar("T")) == (ErrorVar("T|_e"),)


class TestPublicApi:
    """Tests for the package exports."""

    @pytest.mark.parametrize("module", [errunion, errunion.checker])
    def test_exports_resolve_once(self, module: object) -> None:
        exported = module.__all__  # type: ignore[attr-defined]
        assert len(exported) == len(set(exported))
        assert all(hasattr(module, name) for name in exported)
