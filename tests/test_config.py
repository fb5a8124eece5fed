"""Tests for engine options."""

import pytest

from errunion.checker.generics import SoftFixing
from errunion.checker.session import Session
from errunion.checker.subtyping import SubtypeEngine, is_subtype
from errunion.config import DEFAULT_OPTIONS, Options, default_value_subtype
from errunion.types import TCon

holds = SubtypeEngine().holds


class TestDefaultValueSubtype:
    """Tests for the default value subtyping callback."""

    def test_python_class_hierarchy(self) -> None:
        assert default_value_subtype(TCon(int), TCon(bool), holds)
        assert not default_value_subtype(TCon(bool), TCon(int), holds)

    def test_named_constructors_relate_only_to_themselves(self) -> None:
        assert default_value_subtype(TCon("Int"), TCon("Int"), holds)
        assert not default_value_subtype(TCon("Int"), TCon("Nat"), holds)

    def test_arguments_are_invariant(self) -> None:
        ints = TCon(list, (TCon(int),))
        bools = TCon(list, (TCon(bool),))
        assert default_value_subtype(ints, ints, holds)
        assert not default_value_subtype(ints, bools, holds)

    def test_different_constructors_with_arguments(self) -> None:
        assert not default_value_subtype(
            TCon(object, ()),
            TCon(list, (TCon(int),)),
            holds,
        )


class TestOptions:
    """Tests for building and using options."""

    def test_defaults(self) -> None:
        assert DEFAULT_OPTIONS.fixing_policy == "strict"
        assert DEFAULT_OPTIONS.revalidate

    def test_from_mapping(self) -> None:
        options = Options.from_mapping({"fixing_policy": "soft", "revalidate": False})
        assert options == Options(fixing_policy="soft", revalidate=False)

    def test_from_mapping_rejects_unknown_keys(self) -> None:
        with pytest.raises(ValueError, match="Unknown option"):
            Options.from_mapping({"fixing": "soft"})

    def test_custom_value_subtype(self) -> None:
        related = {("Num", "Int"), ("Num", "Num"), ("Int", "Int")}

        def nominal(sup: TCon, sub: TCon, holds: object) -> bool:
            return (sup.name, sub.name) in related

        options = Options(value_subtype=nominal)
        assert is_subtype(TCon("Num"), TCon("Int"), options)
        assert not is_subtype(TCon("Int"), TCon("Num"), options)

    def test_policy_instance_accepted(self) -> None:
        policy = SoftFixing()
        session = Session(Options(fixing_policy=policy))
        assert session.options.fixing_policy is policy

    def test_unknown_policy_rejected_when_solving(self) -> None:
        session = Session(Options(fixing_policy="lenient"))
        with pytest.raises(ValueError, match="Unknown fixing policy"):
            session.solve()
