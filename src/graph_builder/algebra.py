"""
MORPHISM ALGEBRA: Caller-supplied composition capability

The engine treats payloads as opaque values. Everything it needs to know
about them comes from an algebra passed in by the caller:
- compose(f, g): payload of g ∘ f when f: A → B and g: B → C, or None
- identity(X): optional identity payload for an object
- key(f): hashable structural key, used for deduplication
- cost(f): cost of a payload, used by cost bounds

Composition must be associative, (f∘g)∘h == f∘(g∘h). The engine relies on
this when joining forward and backward partial compositions but never checks
it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Optional

from .errors import UndefinedComposition
from .store import Morphism, ObjectHandle


# ============================================================================
# ALGEBRA INTERFACE
# ============================================================================

class MorphismAlgebra(ABC):
    """
    Abstract algebra over morphism payloads.

    Subclasses must implement compose. The remaining operations have
    defaults: no identities, payloads are their own keys, zero cost.
    """

    @abstractmethod
    def compose(self, f: Any, g: Any) -> Optional[Any]:
        """
        Compose two payloads whose endpoints chain (f first, then g).

        Returns None when composition is undefined for this pair. Raising
        UndefinedComposition has the same effect.
        """
        pass

    def identity(self, obj: ObjectHandle) -> Optional[Any]:
        """Identity payload for obj, or None when the algebra has none"""
        return None

    def key(self, payload: Any) -> Hashable:
        """Structural key: payloads with equal keys are the same payload"""
        return payload

    def cost(self, payload: Any) -> float:
        """Cost of a payload, evaluated by cost bounds"""
        return 0.0


class FunctionAlgebra(MorphismAlgebra):
    """
    Algebra assembled from plain callables.

    Args:
        compose: (f, g) -> payload or None
        identity: obj -> payload or None
        key: payload -> hashable key
        cost: payload -> float
    """

    def __init__(
        self,
        compose: Callable[[Any, Any], Optional[Any]],
        identity: Optional[Callable[[ObjectHandle], Optional[Any]]] = None,
        key: Optional[Callable[[Any], Hashable]] = None,
        cost: Optional[Callable[[Any], float]] = None
    ):
        self._compose = compose
        self._identity = identity
        self._key = key
        self._cost = cost

    def compose(self, f: Any, g: Any) -> Optional[Any]:
        return self._compose(f, g)

    def identity(self, obj: ObjectHandle) -> Optional[Any]:
        if self._identity is None:
            return None
        return self._identity(obj)

    def key(self, payload: Any) -> Hashable:
        if self._key is None:
            return payload
        return self._key(payload)

    def cost(self, payload: Any) -> float:
        if self._cost is None:
            return 0.0
        return self._cost(payload)


# ============================================================================
# COMPOSITION RECORD
# ============================================================================

@dataclass(frozen=True)
class Composition:
    """
    Record of left: A → B and right: B → C composed into A → C.

    Only defined when left.target is right.source.
    """
    left: Morphism
    right: Morphism
    composed: Morphism

    def __post_init__(self):
        if not self.left.chains_with(self.right):
            raise ValueError(
                f"Cannot compose {self.left!r} with {self.right!r}: endpoints do not chain"
            )
        if self.composed.source is not self.left.source or self.composed.target is not self.right.target:
            raise ValueError(f"Composed morphism {self.composed!r} has wrong endpoints")


def compose_morphisms(algebra: MorphismAlgebra, left: Morphism, right: Morphism) -> Optional[Composition]:
    """
    Compose two chaining morphisms with the algebra.

    Returns None when the endpoints do not chain or the algebra leaves the
    composition undefined. The composed morphism is derived.
    """
    if not left.chains_with(right):
        return None

    try:
        payload = algebra.compose(left.payload, right.payload)
    except UndefinedComposition:
        return None
    if payload is None:
        return None

    composed = Morphism(
        left.source,
        right.target,
        payload,
        derived=True,
        depth=left.depth + right.depth
    )
    return Composition(left=left, right=right, composed=composed)


# ============================================================================
# FILTERS & FACTORIES
# ============================================================================

def accept_all(candidate: Morphism, meta: Any) -> bool:
    """Filter that accepts every candidate"""
    return True


def create_simple_algebra(
    compose: Callable[[Any, Any], Optional[Any]],
    identity_payload: Optional[Any] = None,
    key: Optional[Callable[[Any], Hashable]] = None,
    cost: Optional[Callable[[Any], float]] = None
) -> FunctionAlgebra:
    """
    Helper to create an algebra whose identity is the same payload everywhere.

    Args:
        compose: Composition of two payloads
        identity_payload: Identity payload for every object, None for no identities
        key: Structural key of a payload
        cost: Cost of a payload

    Returns:
        FunctionAlgebra ready to pass to the search engine
    """
    identity = None
    if identity_payload is not None:
        def identity(obj: ObjectHandle) -> Any:
            return identity_payload

    return FunctionAlgebra(compose=compose, identity=identity, key=key, cost=cost)
