"""errunion - error-union types and classifier-set inference for Python 3.12+."""

from errunion.checker import (
    Session,
    SessionResult,
    Signature,
    TypedExpr,
    exclude,
    is_subtype,
    is_well_formed,
    restrict,
)
from errunion.config import Options
from errunion.convert import format_type, from_hint
from errunion.registry import (
    Classifier,
    ClassifierRegistry,
    Variance,
    get_registry,
    init_registry,
    intern,
)
from errunion.types import (
    ANY,
    ERRONEOUS,
    ERROR,
    NOTHING,
    UNBOUNDED,
    VALUE,
    Alias,
    ErrorConst,
    ErrorSet,
    ErrorVar,
    TCon,
    TVar,
    Type,
    UnionType,
    canonical,
    union,
)

__all__ = [
    "ANY",
    "ERRONEOUS",
    "ERROR",
    "NOTHING",
    "UNBOUNDED",
    "VALUE",
    "Alias",
    "Classifier",
    "ClassifierRegistry",
    "ErrorConst",
    "ErrorSet",
    "ErrorVar",
    "Options",
    "Session",
    "SessionResult",
    "Signature",
    "TCon",
    "TVar",
    "Type",
    "TypedExpr",
    "UnionType",
    "Variance",
    "canonical",
    "exclude",
    "format_type",
    "from_hint",
    "get_registry",
    "init_registry",
    "intern",
    "is_subtype",
    "is_well_formed",
    "restrict",
    "union",
]
