"""Type model for error unions.

Types fall into two orthogonal kinds. Value types describe ordinary data;
error types describe which classifiers a computation may fail with. A union
pairs at most one value constituent with a disjoint combination of error
constants and error variables:

    Int | NotFound | E

Every type has a value projection (`T|_v`) and an error projection (`T|_e`),
and subtyping is defined over those two projections independently.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field

from errunion.registry import Classifier


@dataclass(frozen=True)
class AnyType:
    """Top of the lattice: `Value | Error`."""


@dataclass(frozen=True)
class ValueTop:
    """Supertype of every value type."""


@dataclass(frozen=True)
class ErrorTop:
    """Supertype of every error type: the set of all classifiers."""


@dataclass(frozen=True)
class NothingType:
    """Bottom of the lattice. Carries no value and no classifier."""


@dataclass(frozen=True)
class Erroneous:
    """Marker for a type that failed to check.

    Compatible with everything in both directions so that one reported
    failure does not cascade into dependent checks.
    """


ANY = AnyType()
VALUE = ValueTop()
ERROR = ErrorTop()
NOTHING = NothingType()
ERRONEOUS = Erroneous()


@dataclass(frozen=True)
class TCon:
    """An opaque value type constructor with optional type arguments.

    Examples:
        int        -> TCon(int)
        list[int]  -> TCon(list, (TCon(int),))
        "Int"      -> TCon("Int")

    """

    con: type | str
    args: tuple[Type, ...] = ()

    @property
    def name(self) -> str:
        return self.con if isinstance(self.con, str) else self.con.__name__


@dataclass(frozen=True)
class TVar:
    """A bare generic type variable, not yet split into its projections."""

    name: str
    flexible: bool = False

    @property
    def value(self) -> ValueProj:
        return ValueProj(self.name, self.flexible)

    @property
    def error(self) -> ErrorVar:
        return ErrorVar(f"{self.name}|_e", UNBOUNDED, self.flexible)


@dataclass(frozen=True)
class ValueProj:
    """The value projection `T|_v` of a type variable.

    Flexible projections belong to an inference session and get bound to a
    concrete value type on first comparison.
    """

    var: str
    flexible: bool = False


@dataclass(frozen=True)
class Unbounded:
    """Universe of a variable bounded only by `Error`."""


UNBOUNDED = Unbounded()


@dataclass(frozen=True)
class Alias:
    """A named, finite set of classifiers usable as a variable's bound."""

    name: str
    members: frozenset[Classifier] = frozenset()

    def __repr__(self) -> str:
        return f"Alias({self.name})"


type Universe = Unbounded | Alias


@dataclass(frozen=True)
class ErrorConst:
    """An error constant: a classifier with an optional fixed instantiation."""

    classifier: Classifier
    args: tuple[Type, ...] = ()


@dataclass(frozen=True)
class ErrorVar:
    """An error variable bounded by `Error` or by an alias.

    Rigid variables are type parameters seen from inside their declaration.
    Flexible ones are introduced by an inference session and solved for.
    """

    name: str
    universe: Universe = UNBOUNDED
    flexible: bool = False

    def may_hold(self, classifier: Classifier) -> bool:
        match self.universe:
            case Alias(members=members):
                return classifier in members
            case _:
                return True


@dataclass(frozen=True)
class UnionType:
    """A union in written order.

    Use `union()` to build one (it flattens and splits type variables) and
    `canonical()` for the normalized form used in comparisons and output.
    """

    members: tuple[Type, ...]


type Type = (
    AnyType
    | ValueTop
    | ErrorTop
    | NothingType
    | Erroneous
    | TCon
    | TVar
    | ValueProj
    | ErrorConst
    | ErrorVar
    | UnionType
)
"""Union of every type representation."""

type ErrorAtom = Classifier | ErrorVar
"""An element of a classifier set: a classifier or a symbolic variable."""


def is_value(t: Type) -> bool:
    """Whether `t` is a value constituent."""
    return isinstance(t, ValueTop | TCon | ValueProj)


def is_error(t: Type) -> bool:
    """Whether `t` is an error constituent."""
    return isinstance(t, ErrorTop | ErrorConst | ErrorVar)


def atom_key(atom: ErrorAtom) -> tuple[int, int, str]:
    """Canonical sort key: classifiers by id, then variables by name."""
    if isinstance(atom, Classifier):
        return (0, atom.id, "")
    return (1, 0, atom.name)


def member_key(t: Type) -> tuple[int, int, str]:
    """Canonical sort key for union members: value first, then errors."""
    match t:
        case ErrorConst(classifier=c):
            return (1, c.id, "")
        case ErrorVar(name=name):
            return (2, 0, name)
        case ErrorTop():
            return (3, 0, "")
        case _:
            return (0, 0, "")


def _flatten(members: Iterable[Type]) -> Iterator[Type]:
    for member in members:
        match member:
            case UnionType(members=inner):
                yield from _flatten(inner)
            case NothingType():
                continue
            case AnyType():
                yield VALUE
                yield ERROR
            case TVar() as var:
                # A bare variable enters a union only through its projections.
                yield var.value
                yield var.error
            case _:
                yield member


def union(*members: Type) -> UnionType:
    """Build a union in written order.

    Nested unions are flattened, `Nothing` is dropped, and bare type
    variables are split in place into `T|_v | T|_e`. The result is not
    validated; run the well-formedness checker on it.
    """
    return UnionType(tuple(_flatten(members)))


def canonical(t: Type) -> Type:
    """Return the canonical form of a type.

    Unions are flattened and sorted (value first, constants by classifier
    id, variables by name), duplicates are removed, and single-member or
    empty unions collapse. Any `Erroneous` member poisons the whole union.
    """
    match t:
        case UnionType(members=members):
            flat = list(_flatten(canonical(m) for m in members))
            if any(isinstance(m, Erroneous) for m in flat):
                return ERRONEOUS
            unique = list(dict.fromkeys(flat))
            unique.sort(key=member_key)
            if not unique:
                return NOTHING
            if len(unique) == 1:
                return unique[0]
            return UnionType(tuple(unique))
        case TCon(con=con, args=args) if args:
            return TCon(con, tuple(canonical(a) for a in args))
        case ErrorConst(classifier=c, args=args) if args:
            return ErrorConst(c, tuple(canonical(a) for a in args))
        case AnyType():
            return t
        case TVar():
            return UnionType((t.value, t.error))
        case _:
            return t


def value_part(t: Type) -> Type:
    """The value projection `T|_v`."""
    match t:
        case UnionType(members=members):
            for member in _flatten(members):
                if is_value(member) or isinstance(member, Erroneous):
                    return member
            return NOTHING
        case AnyType():
            return VALUE
        case TVar() as var:
            return var.value
        case Erroneous():
            return t
        case _ if is_value(t):
            return t
        case _:
            return NOTHING


def error_part(t: Type) -> tuple[Type, ...]:
    """The error constituents of `T|_e`, in written order."""
    match t:
        case UnionType(members=members):
            return tuple(m for m in _flatten(members) if is_error(m))
        case AnyType():
            return (ERROR,)
        case TVar() as var:
            return (var.error,)
        case _ if is_error(t):
            return (t,)
        case _:
            return ()


def substitute(t: Type, mapping: Mapping[Type, Type]) -> Type:
    """Replace every occurrence of a key of `mapping` inside `t`."""
    if t in mapping:
        return mapping[t]
    match t:
        case UnionType(members=members):
            return union(*(substitute(m, mapping) for m in members))
        case TCon(con=con, args=args) if args:
            return TCon(con, tuple(substitute(a, mapping) for a in args))
        case ErrorConst(classifier=c, args=args) if args:
            return ErrorConst(c, tuple(substitute(a, mapping) for a in args))
        case _:
            return t


def free_error_vars(t: Type) -> tuple[ErrorVar, ...]:
    """Error variables mentioned anywhere in `t`, in first-seen order."""
    found: dict[ErrorVar, None] = {}

    def visit(node: Type) -> None:
        match node:
            case ErrorVar():
                found.setdefault(node)
            case TVar() as var:
                found.setdefault(var.error)
            case UnionType(members=members):
                for member in members:
                    visit(member)
            case TCon(args=args) | ErrorConst(args=args):
                for arg in args:
                    visit(arg)

    visit(t)
    return tuple(found)


@dataclass(frozen=True)
class ErrorSet:
    """Classifier set interpretation of an error type.

    Maps each atom to its generic instantiation; a plain classifier set is a
    map whose instantiations are all empty. `universal` stands for `Error`,
    the set of all classifiers. Entries are kept sorted by `atom_key`, so
    equal sets compare equal.
    """

    entries: tuple[tuple[ErrorAtom, tuple[Type, ...]], ...] = ()
    universal: bool = False
    _index: dict[ErrorAtom, tuple[Type, ...]] = field(
        init=False,
        repr=False,
        compare=False,
        hash=False,
    )

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.entries, key=lambda item: atom_key(item[0])))
        object.__setattr__(self, "entries", ordered)
        object.__setattr__(self, "_index", dict(ordered))

    @classmethod
    def of(cls, *atoms: ErrorAtom) -> ErrorSet:
        """Build a set of atoms without instantiations."""
        return cls(tuple((atom, ()) for atom in dict.fromkeys(atoms)))

    @classmethod
    def from_mapping(
        cls,
        mapping: Mapping[ErrorAtom, tuple[Type, ...]],
        *,
        universal: bool = False,
    ) -> ErrorSet:
        return cls(tuple(mapping.items()), universal)

    def atoms(self) -> frozenset[ErrorAtom]:
        return frozenset(self._index)

    def classifiers(self) -> frozenset[Classifier]:
        return frozenset(a for a in self._index if isinstance(a, Classifier))

    def get(self, atom: ErrorAtom) -> tuple[Type, ...] | None:
        return self._index.get(atom)

    def to_dict(self) -> dict[ErrorAtom, tuple[Type, ...]]:
        return dict(self._index)

    def union(self, other: ErrorSet) -> ErrorSet:
        """Combine two sets; entries of `self` win on shared atoms."""
        merged = {**other.to_dict(), **self._index}
        return ErrorSet.from_mapping(
            merged,
            universal=self.universal or other.universal,
        )

    def without(self, atoms: Iterable[ErrorAtom]) -> ErrorSet:
        dropped = set(atoms)
        return ErrorSet(
            tuple(item for item in self.entries if item[0] not in dropped),
            self.universal,
        )

    def as_members(self) -> tuple[Type, ...]:
        """Turn the set back into union members."""
        members: list[Type] = []
        for atom, args in self.entries:
            if isinstance(atom, Classifier):
                members.append(ErrorConst(atom, args))
            else:
                members.append(atom)
        if self.universal:
            members.append(ERROR)
        return tuple(members)

    def __contains__(self, atom: object) -> bool:
        return atom in self._index

    def __iter__(self) -> Iterator[ErrorAtom]:
        return iter(self._index)

    def __len__(self) -> int:
        return len(self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries) or self.universal


EMPTY = ErrorSet()


def literal_error_set(t: Type) -> ErrorSet:
    """Collect the error constituents of `t` without resolving variables."""
    mapping: dict[ErrorAtom, tuple[Type, ...]] = {}
    universal = False
    for member in error_part(t):
        match member:
            case ErrorConst(classifier=c, args=args):
                mapping[c] = args
            case ErrorVar():
                mapping[member] = ()
            case ErrorTop():
                universal = True
    return ErrorSet.from_mapping(mapping, universal=universal)
