"""Process-wide classifier registry.

Error classifiers are interned once per (scope path, local name) and handed
out as `Classifier` records carrying a stable integer id. After interning,
equality, hashing and ordering compare ids only, never names.

The registry is append-only. Reads go straight to a dict and never take the
lock; insertions are serialized so that concurrent sessions interning the same
name receive the same record.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)


class Variance(Enum):
    """Variance of a classifier's generic parameter.

    - COVARIANT (+): MyErr[bool] <: MyErr[int] because bool <: int
    - CONTRAVARIANT (-): the relation flips
    - INVARIANT (=): arguments must match exactly
    """

    COVARIANT = auto()
    CONTRAVARIANT = auto()
    INVARIANT = auto()


@dataclass(frozen=True, order=True)
class Classifier:
    """An interned error classifier.

    Attributes:
        id: Stable identifier issued by the registry
        scope: Declaring scope path, outermost first
        name: Local name inside the scope
        variances: Declared variance of each generic parameter

    """

    id: int
    scope: tuple[str, ...] = field(compare=False)
    name: str = field(compare=False)
    variances: tuple[Variance, ...] = field(default=(), compare=False)

    @property
    def qualified_name(self) -> str:
        return ".".join((*self.scope, self.name))

    @property
    def arity(self) -> int:
        return len(self.variances)

    def __repr__(self) -> str:
        return f"Classifier({self.qualified_name}#{self.id})"


class ClassifierRegistry:
    """Append-only intern table for classifiers."""

    def __init__(self) -> None:
        self._by_key: dict[tuple[tuple[str, ...], str], Classifier] = {}
        self._arena: list[Classifier] = []
        self._lock = threading.Lock()

    def intern(
        self,
        name: str,
        scope: Iterable[str] = (),
        variances: Iterable[Variance] = (),
    ) -> Classifier:
        """Return the classifier for (scope, name), creating it on first use.

        Args:
            name: Local name of the classifier
            scope: Declaring scope path
            variances: Variance of each generic parameter. Must agree with
                the first declaration when given again.

        Returns:
            The interned classifier

        Raises:
            ValueError: If the classifier was already declared with
                different generic parameters.

        """
        key = (tuple(scope), name)
        declared = tuple(variances)

        found = self._by_key.get(key)
        if found is None:
            with self._lock:
                found = self._by_key.get(key)
                if found is None:
                    found = Classifier(len(self._arena), key[0], name, declared)
                    self._arena.append(found)
                    self._by_key[key] = found
                    logger.debug("interned %r", found)
                    return found

        if declared and declared != found.variances:
            msg = (
                f"Classifier {found.qualified_name} already declared with "
                f"{len(found.variances)} parameter(s)"
            )
            raise ValueError(msg)
        return found

    def lookup(self, name: str, scope: Iterable[str] = ()) -> Classifier | None:
        """Find an interned classifier without creating it."""
        return self._by_key.get((tuple(scope), name))

    def get(self, classifier_id: int) -> Classifier:
        """Get a classifier by id.

        Raises:
            KeyError: If no classifier has this id.

        """
        if 0 <= classifier_id < len(self._arena):
            return self._arena[classifier_id]
        msg = f"No classifier with id {classifier_id}"
        raise KeyError(msg)

    def __contains__(self, item: object) -> bool:
        if not isinstance(item, Classifier):
            return False
        return 0 <= item.id < len(self._arena) and self._arena[item.id] is item

    def __len__(self) -> int:
        return len(self._arena)

    def __iter__(self) -> Iterator[Classifier]:
        return iter(tuple(self._arena))


_registry: ClassifierRegistry | None = None
_registry_lock = threading.Lock()


def init_registry() -> ClassifierRegistry:
    """Create the process-wide registry if it does not exist yet.

    Call once at startup; later calls return the same registry.
    """
    global _registry  # noqa: PLW0603
    with _registry_lock:
        if _registry is None:
            _registry = ClassifierRegistry()
            logger.debug("classifier registry initialized")
        return _registry


def get_registry() -> ClassifierRegistry:
    """Return the process-wide registry, initializing it on first use."""
    registry = _registry
    if registry is None:
        return init_registry()
    return registry


def intern(
    name: str,
    scope: Iterable[str] = (),
    variances: Iterable[Variance] = (),
) -> Classifier:
    """Intern a classifier in the process-wide registry."""
    return get_registry().intern(name, scope, variances)
