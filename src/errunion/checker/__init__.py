"""Constraint-based checking of error-union types.

Checking happens in two phases:
1. Comparisons that depend on unresolved flexible error variables generate
   classifier-set constraints
2. The solver computes their least solution, after which pending
   comparisons are re-checked

Example usage:
    from errunion import ErrorConst, TCon, intern, union
    from errunion.checker import Session

    not_found = ErrorConst(intern("NotFound"))
    session = Session()
    session.require(union(TCon("Int"), not_found), union(TCon("Int")))
    result = session.solve()
    if not result.success:
        print(result.format_errors())
"""

from errunion.checker.constraints import (
    Constraint,
    SourceLocation,
    Subset,
    UnionSubset,
    UpperBound,
    constraint_summary,
)
from errunion.checker.errors import (
    AmbiguousGenericInstantiation,
    Diagnostic,
    DiagnosticKind,
    DuplicateClassifier,
    IllFormedError,
    MisplacedValueComponent,
    MultipleValueComponents,
    NonDisjointVariables,
    SessionResult,
    SubtypeMismatch,
    UnknownClassifier,
    UnsatisfiableConstraint,
)
from errunion.checker.generator import ConstraintGenerator
from errunion.checker.generics import FixingPolicy, SoftFixing, StrictFixing
from errunion.checker.session import Session, Signature, TypedExpr
from errunion.checker.solver import Solution, Solver, SolverResult, solve
from errunion.checker.subtyping import (
    SubtypeEngine,
    Verdict,
    exclude,
    is_subtype,
    restrict,
)
from errunion.checker.wellformed import check, check_all, is_well_formed

__all__ = [
    "AmbiguousGenericInstantiation",
    "Constraint",
    "ConstraintGenerator",
    "Diagnostic",
    "DiagnosticKind",
    "DuplicateClassifier",
    "FixingPolicy",
    "IllFormedError",
    "MisplacedValueComponent",
    "MultipleValueComponents",
    "NonDisjointVariables",
    "Session",
    "SessionResult",
    "Signature",
    "SoftFixing",
    "Solution",
    "Solver",
    "SolverResult",
    "SourceLocation",
    "StrictFixing",
    "SubtypeEngine",
    "SubtypeMismatch",
    "Subset",
    "TypedExpr",
    "UnionSubset",
    "UnknownClassifier",
    "UnsatisfiableConstraint",
    "UpperBound",
    "Verdict",
    "check",
    "check_all",
    "constraint_summary",
    "exclude",
    "is_subtype",
    "is_well_formed",
    "restrict",
    "solve",
]
