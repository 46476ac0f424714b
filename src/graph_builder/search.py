"""
CLOSURE SEARCH ENGINE: Bounded composition search with post-filtering

For every f: A → B and g: B → C there is a morphism A → C, but the store only
keeps neighbour morphisms. This module computes longer compositions on demand:
- Partial compositions grow from the query ends one layer per step
- Every composed path from a query end passes the caller's filter before it
  may be expanded or returned
- Partials are deduplicated by (open object, payload key), which keeps the
  search finite on cycles and redundant parallel structure
- Accepted compositions can be persisted into the store ("edge composition")
  so later queries start from denser neighbourhoods

find_path grows a forward frontier out of the source and a backward frontier
into the target and joins partials that meet at a shared object. A join is
recomposed from the source one direct morphism at a time, so every prefix
is filtered just as the forward-only search filters it.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, List, Optional, Set, Tuple, Union

from .algebra import MorphismAlgebra, compose_morphisms
from .config import SearchSettings
from .errors import Cancelled, InvalidObject
from .store import CompositionGraphStore, Direction, Morphism, ObjectHandle

logger = logging.getLogger(__name__)


# ============================================================================
# QUERY PARAMETERS
# ============================================================================

@dataclass(frozen=True)
class SearchBound:
    """
    Limit that terminates a query.

    Attributes:
        max_steps: Maximum number of direct morphisms composed into a result
        max_cost: Ceiling on algebra.cost(payload) of any partial composition
    """
    max_steps: Optional[int] = None
    max_cost: Optional[float] = None

    def __post_init__(self):
        if self.max_steps is None and self.max_cost is None:
            raise ValueError("SearchBound needs max_steps or max_cost")
        if self.max_steps is not None and self.max_steps < 0:
            raise ValueError(f"max_steps must not be negative, got {self.max_steps}")

    def allows_depth(self, depth: int) -> bool:
        return self.max_steps is None or depth <= self.max_steps

    def allows(self, depth: int, cost: float) -> bool:
        return self.allows_depth(depth) and (self.max_cost is None or cost <= self.max_cost)

    @classmethod
    def coerce(cls, bound: Union[None, int, 'SearchBound'], settings: SearchSettings) -> 'SearchBound':
        """Accept a SearchBound, a step count, or None for the configured default"""
        if bound is None:
            return cls(max_steps=settings.max_steps)
        if isinstance(bound, SearchBound):
            return bound
        if isinstance(bound, bool) or not isinstance(bound, int):
            raise TypeError(f"bound must be an int or SearchBound, got {type(bound).__name__}")
        return cls(max_steps=bound)


@dataclass(frozen=True)
class SearchMetadata:
    """
    Metadata handed to the filter with every candidate.

    Attributes:
        depth: Number of direct morphisms composed into the candidate
        cost: algebra.cost of the candidate payload
        direction: OUTGOING for compositions starting at the query object,
            INCOMING for those ending at it (expand with INCOMING or BOTH)
    """
    depth: int
    cost: float
    direction: Direction


MorphismFilter = Callable[[Morphism, SearchMetadata], bool]


@dataclass
class SearchStats:
    """Counters collected while a query runs"""
    steps: int = 0
    composed: int = 0
    accepted: int = 0
    rejected: int = 0
    undefined: int = 0
    duplicates: int = 0
    over_bound: int = 0
    persisted: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "steps": self.steps,
            "composed": self.composed,
            "accepted": self.accepted,
            "rejected": self.rejected,
            "undefined": self.undefined,
            "duplicates": self.duplicates,
            "over_bound": self.over_bound,
            "persisted": self.persisted,
        }


class CancellationToken:
    """
    Cooperative cancellation flag shared between a query and its caller.

    The engine checks it once per expansion step and once per batch of
    joins. Safe to cancel from any thread.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled()


class _CandidateLimit(Exception):
    """Raised internally when a query composed max_candidates candidates"""


# ============================================================================
# FRONTIER
# ============================================================================

class _Frontier:
    """
    Partial compositions anchored at one end of a query.

    An OUTGOING frontier holds anchor → X partials and grows at X; an
    INCOMING frontier holds X → anchor partials and grows at X. Every
    partial keeps the direct morphisms it was composed from, in path order.
    """

    def __init__(self, anchor: ObjectHandle, direction: Direction):
        self.anchor = anchor
        self.direction = direction
        self.layer: List[Morphism] = []
        self.seen: Set[Tuple[int, Hashable]] = set()
        self.by_object: Dict[int, List[Morphism]] = {}
        self.chains: Dict[int, Tuple[Morphism, ...]] = {}

    def open_end(self, morphism: Morphism) -> ObjectHandle:
        if self.direction is Direction.OUTGOING:
            return morphism.target
        return morphism.source

    def visit_key(self, morphism: Morphism, key: Hashable) -> Tuple[int, Hashable]:
        return self.open_end(morphism).id, key

    def record(
        self,
        morphism: Morphism,
        visit_key: Tuple[int, Hashable],
        chain: Tuple[Morphism, ...]
    ) -> None:
        self.seen.add(visit_key)
        self.by_object.setdefault(self.open_end(morphism).id, []).append(morphism)
        # Recorded partials stay referenced from by_object, so their ids are stable
        self.chains[id(morphism)] = chain

    def chain(self, morphism: Morphism) -> Tuple[Morphism, ...]:
        return self.chains[id(morphism)]

    def extend(self, partial: Morphism, edge: Morphism) -> Tuple[Morphism, ...]:
        """Direct morphisms of partial grown by edge at its open end"""
        if self.direction is Direction.OUTGOING:
            return self.chain(partial) + (edge,)
        return (edge,) + self.chain(partial)

    def __bool__(self) -> bool:
        return bool(self.layer)


# ============================================================================
# ENGINE
# ============================================================================

class ClosureSearchEngine:
    """
    Bounded search over compositions of stored morphisms.

    The engine deduplicates candidates with algebra.key while persisting
    relies on the key the store was created with. Both must agree on which
    payloads are equal, so create the store with ``key=algebra.key`` when
    the algebra has a custom key.

    In bidirectional mode partials grown backward from the target are not
    passed to the filter, since they do not start at the source. Once one
    meets a forward partial, the joined path is recomposed one direct
    morphism at a time and every prefix goes through the filter, so both
    modes accept the same paths.

    Args:
        store: Graph holding objects and direct morphisms
        algebra: Composition, identity, key and cost of payloads
        settings: Defaults for bound, persistence and candidate limit
    """

    def __init__(
        self,
        store: CompositionGraphStore,
        algebra: MorphismAlgebra,
        settings: Optional[SearchSettings] = None
    ):
        self.store = store
        self.algebra = algebra
        self.settings = settings or SearchSettings()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_path(
        self,
        source: ObjectHandle,
        target: ObjectHandle,
        filter: MorphismFilter,
        bound: Union[None, int, SearchBound] = None,
        *,
        persist: Optional[bool] = None,
        cancel: Optional[CancellationToken] = None,
        stats: Optional[SearchStats] = None
    ) -> Optional[Morphism]:
        """
        Find a morphism source → target.

        Returns the identity when source is target and the algebra has one,
        otherwise the first accepted composition reaching target, or None
        when the bound runs out first. A direct morphism source → target is
        returned as stored.

        Raises:
            InvalidObject: If source or target is not in the store
            Cancelled: If cancel was triggered during the search
        """
        self._require(source)
        self._require(target)
        bound = SearchBound.coerce(bound, self.settings)
        stats = stats if stats is not None else SearchStats()
        persist = self.settings.persist if persist is None else persist

        if source is target:
            payload = self.algebra.identity(source)
            if payload is not None:
                logger.debug("Identity morphism for %r", source)
                return Morphism(source, target, payload, derived=True, depth=0)

        logger.debug("find_path %r → %r with %r", source, target, bound)
        try:
            found = self._find(source, target, filter, bound, cancel, stats)
        except _CandidateLimit:
            logger.warning(
                "find_path %r → %r stopped after %d candidates",
                source, target, stats.composed
            )
            found = None

        if found is None:
            logger.debug("No morphism %r → %r (%s)", source, target, stats.to_dict())
            return None

        logger.debug("Found %r (%s)", found, stats.to_dict())
        if persist and found.derived:
            self._persist([found], stats)
        return found

    def expand(
        self,
        obj: ObjectHandle,
        filter: MorphismFilter,
        bound: Union[None, int, SearchBound] = None,
        *,
        direction: Direction = Direction.OUTGOING,
        persist: Optional[bool] = None,
        cancel: Optional[CancellationToken] = None,
        stats: Optional[SearchStats] = None
    ) -> List[Morphism]:
        """
        Collect every accepted derived morphism reachable from obj.

        With Direction.OUTGOING the results are obj → X, with INCOMING they
        are X → obj, and BOTH returns the two sets concatenated. Direct
        morphisms are never part of the result.

        Raises:
            InvalidObject: If obj is not in the store
            Cancelled: If cancel was triggered; nothing is persisted then
        """
        self._require(obj)
        bound = SearchBound.coerce(bound, self.settings)
        stats = stats if stats is not None else SearchStats()
        persist = self.settings.persist if persist is None else persist

        if direction is Direction.BOTH:
            directions = [Direction.OUTGOING, Direction.INCOMING]
        else:
            directions = [direction]

        accepted: List[Morphism] = []
        try:
            for current in directions:
                frontier = self._seed(obj, current, bound, stats)
                while frontier:
                    accepted.extend(self._grow(frontier, filter, bound, cancel, stats))
        except _CandidateLimit:
            logger.warning("expand %r stopped after %d candidates", obj, stats.composed)

        logger.info("Expanded %r: %d morphisms accepted", obj, len(accepted))
        if persist and accepted:
            self._persist(accepted, stats)
        return accepted

    # ------------------------------------------------------------------
    # Search internals
    # ------------------------------------------------------------------

    def _find(
        self,
        source: ObjectHandle,
        target: ObjectHandle,
        filter: MorphismFilter,
        bound: SearchBound,
        cancel: Optional[CancellationToken],
        stats: SearchStats
    ) -> Optional[Morphism]:
        forward = self._seed(source, Direction.OUTGOING, bound, stats)
        for morphism in forward.layer:
            if morphism.target is target:
                return morphism

        if not self.settings.bidirectional:
            while forward:
                for morphism in self._grow(forward, filter, bound, cancel, stats):
                    if morphism.target is target:
                        return morphism
            return None

        backward = self._seed(target, Direction.INCOMING, bound, stats, judged=False)
        verdicts: Dict[Tuple[int, Hashable], bool] = {}

        for morphism in forward.layer:
            found = self._join_forward(morphism, backward, filter, bound, cancel, stats, verdicts)
            if found is not None:
                return found

        while forward or backward:
            if forward and (not backward or len(forward.layer) <= len(backward.layer)):
                for morphism in self._grow(forward, filter, bound, cancel, stats):
                    if morphism.target is target:
                        return morphism
                    found = self._join_forward(
                        morphism, backward, filter, bound, cancel, stats, verdicts
                    )
                    if found is not None:
                        return found
            else:
                for morphism in self._grow(backward, None, bound, cancel, stats):
                    if morphism.source is source:
                        found = self._join(
                            None, backward.chain(morphism), filter, bound, stats, verdicts
                        )
                        if found is not None:
                            return found
                    found = self._join_backward(
                        morphism, forward, backward, filter, bound, cancel, stats, verdicts
                    )
                    if found is not None:
                        return found
        return None

    def _seed(
        self,
        anchor: ObjectHandle,
        direction: Direction,
        bound: SearchBound,
        stats: SearchStats,
        judged: bool = True
    ) -> _Frontier:
        """Start a frontier with the direct morphisms at anchor"""
        frontier = _Frontier(anchor, direction)
        for morphism in self._neighbours(anchor, direction):
            if not self._within(morphism, bound, judged):
                stats.over_bound += 1
                continue
            visit_key = frontier.visit_key(morphism, self.algebra.key(morphism.payload))
            if visit_key in frontier.seen:
                stats.duplicates += 1
                continue
            frontier.record(morphism, visit_key, (morphism,))
            frontier.layer.append(morphism)
        return frontier

    def _grow(
        self,
        frontier: _Frontier,
        filter: Optional[MorphismFilter],
        bound: SearchBound,
        cancel: Optional[CancellationToken],
        stats: SearchStats
    ) -> List[Morphism]:
        """
        Expand every partial of the current layer by one direct morphism.

        Returns the admitted candidates, which also become the next layer.
        Without a filter only the step bound and deduplication apply.
        """
        next_layer = []
        for partial in frontier.layer:
            if cancel is not None:
                cancel.raise_if_cancelled()
            stats.steps += 1
            if not bound.allows_depth(partial.depth + 1):
                continue

            for edge in self._neighbours(frontier.open_end(partial), frontier.direction):
                if frontier.direction is Direction.OUTGOING:
                    candidate = self._compose(partial, edge, stats)
                else:
                    candidate = self._compose(edge, partial, stats)
                if candidate is None:
                    continue
                chain = frontier.extend(partial, edge)
                if self._admit(candidate, chain, frontier, filter, bound, stats):
                    next_layer.append(candidate)

        frontier.layer = next_layer
        return next_layer

    def _admit(
        self,
        candidate: Morphism,
        chain: Tuple[Morphism, ...],
        frontier: _Frontier,
        filter: Optional[MorphismFilter],
        bound: SearchBound,
        stats: SearchStats
    ) -> bool:
        """Bound check, deduplication and filter, in that order"""
        if not self._within(candidate, bound, filter is not None):
            stats.over_bound += 1
            return False

        visit_key = frontier.visit_key(candidate, self.algebra.key(candidate.payload))
        if visit_key in frontier.seen:
            stats.duplicates += 1
            return False

        if filter is not None:
            meta = SearchMetadata(
                candidate.depth, self.algebra.cost(candidate.payload), frontier.direction
            )
            if not filter(candidate, meta):
                stats.rejected += 1
                return False
            stats.accepted += 1

        frontier.record(candidate, visit_key, chain)
        return True

    def _within(self, morphism: Morphism, bound: SearchBound, judged: bool) -> bool:
        # Cost bounds apply to paths from the source, not to backward partials
        if not judged:
            return bound.allows_depth(morphism.depth)
        return bound.allows(morphism.depth, self.algebra.cost(morphism.payload))

    def _join_forward(self, partial, backward, filter, bound, cancel, stats, verdicts):
        others = backward.by_object.get(partial.target.id, ())
        if others and cancel is not None:
            cancel.raise_if_cancelled()
        for other in others:
            found = self._join(partial, backward.chain(other), filter, bound, stats, verdicts)
            if found is not None:
                return found
        return None

    def _join_backward(self, partial, forward, backward, filter, bound, cancel, stats, verdicts):
        others = forward.by_object.get(partial.source.id, ())
        if others and cancel is not None:
            cancel.raise_if_cancelled()
        chain = backward.chain(partial)
        for other in others:
            found = self._join(other, chain, filter, bound, stats, verdicts)
            if found is not None:
                return found
        return None

    def _join(
        self,
        left: Optional[Morphism],
        chain: Tuple[Morphism, ...],
        filter: MorphismFilter,
        bound: SearchBound,
        stats: SearchStats,
        verdicts: Dict[Tuple[int, Hashable], bool]
    ) -> Optional[Morphism]:
        """
        Extend a forward partial through the direct morphisms of a backward
        partial meeting it.

        Each prefix is checked against the bound and the filter exactly as a
        forward search would check it, and the first rejected or undefined
        prefix drops the join. With left None the chain itself starts at the
        source. verdicts remembers the filter's answer per (object, key).
        """
        if left is None:
            current, chain = chain[0], chain[1:]
        else:
            current = left
        if not bound.allows_depth(current.depth + len(chain)):
            stats.over_bound += 1
            return None

        target = chain[-1].target
        for edge in chain:
            candidate = self._compose(current, edge, stats)
            if candidate is None:
                return None

            cost = self.algebra.cost(candidate.payload)
            if not bound.allows(candidate.depth, cost):
                stats.over_bound += 1
                return None

            visit_key = (candidate.target.id, self.algebra.key(candidate.payload))
            verdict = verdicts.get(visit_key)
            if verdict is None:
                verdict = filter(candidate, SearchMetadata(candidate.depth, cost, Direction.OUTGOING))
                verdicts[visit_key] = verdict
                if verdict:
                    stats.accepted += 1
                else:
                    stats.rejected += 1
            elif not verdict:
                stats.duplicates += 1
            if not verdict:
                return None

            # A backward partial may pass through the target before ending there
            if candidate.target is target:
                return candidate
            current = candidate
        return current

    def _compose(self, left: Morphism, right: Morphism, stats: SearchStats) -> Optional[Morphism]:
        if stats.composed >= self.settings.max_candidates:
            raise _CandidateLimit()
        stats.composed += 1

        composition = compose_morphisms(self.algebra, left, right)
        if composition is None:
            stats.undefined += 1
            return None
        return composition.composed

    def _neighbours(self, obj: ObjectHandle, direction: Direction) -> Tuple[Morphism, ...]:
        # An object removed by another writer mid-query has no neighbours left
        try:
            return tuple(self.store.neighbours(obj, direction))
        except InvalidObject:
            return ()

    def _persist(self, morphisms: List[Morphism], stats: SearchStats) -> None:
        persisted = 0
        for morphism in morphisms:
            if self.store.has_morphism(morphism.source, morphism.target, morphism.payload):
                continue
            try:
                self.store.add_morphism(morphism.source, morphism.target, morphism.payload)
            except InvalidObject as e:
                logger.debug(
                    "Endpoint of %r removed before persisting: %s", morphism, e.to_dict()
                )
                continue
            persisted += 1
        stats.persisted += persisted
        logger.info("Persisted %d of %d composed morphisms", persisted, len(morphisms))

    def _require(self, obj: ObjectHandle) -> None:
        if obj not in self.store:
            raise InvalidObject(f"Object {obj!r} is not in the store", details={"object": repr(obj)})


if __name__ == "__main__":
    print("Closure Search Engine")
    print("=" * 60)

    from .algebra import FunctionAlgebra

    store = CompositionGraphStore()
    a, b, c = store.add_object("A"), store.add_object("B"), store.add_object("C")
    store.add_morphism(a, b, "f")
    store.add_morphism(b, c, "g")

    engine = ClosureSearchEngine(store, FunctionAlgebra(compose=lambda x, y: x + "∘" + y))

    def short(candidate: Morphism, meta: SearchMetadata) -> bool:
        return len(candidate.payload.encode("utf-8")) <= 5

    found = engine.find_path(a, c, short, bound=2)
    print(f"A → C: {found.payload if found else None}")

    expanded = engine.expand(a, short, bound=3, persist=True)
    print(f"Expanded from A: {[m.payload for m in expanded]}")
    print(f"Direct morphisms after persisting: {store.morphism_count}")

    print("\n✓ Search module validated")
