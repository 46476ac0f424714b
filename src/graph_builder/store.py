"""
COMPOSITION GRAPH STORE: Objects and neighbour morphisms

The store is the only persisted state of the graph:
- Objects are opaque handles compared by identity
- Morphisms are immutable (source, target, payload) edges
- Only direct morphisms are kept; the store never composes
- Parallel edges are allowed, structural duplicates are not

All reads and writes go through a single-writer/multiple-reader lock so that
neighbour enumeration always observes a consistent snapshot.
"""

import itertools
import logging
import threading
from collections.abc import Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Hashable, Iterator, List, Optional, Tuple

from .errors import InvalidObject, NotFound

logger = logging.getLogger(__name__)

# (nodes, edges) where every edge is ((source_index, target_index), payload)
Graph = Tuple[List[Any], List[Tuple[Tuple[int, int], Any]]]


def _payload_key(payload: Any) -> Hashable:
    return payload


# ============================================================================
# OBJECTS & MORPHISMS
# ============================================================================

class ObjectHandle:
    """
    Node in the category graph.

    Two handles are the same object iff they are the same handle. The label
    is only used for display and export.
    """

    __slots__ = ("id", "label")

    def __init__(self, id: int, label: Any = None):
        self.id = id
        self.label = label

    def __repr__(self) -> str:
        if self.label is None:
            return f"ObjectHandle({self.id})"
        return f"ObjectHandle({self.id}, {self.label!r})"


@dataclass(frozen=True)
class Morphism:
    """
    Directed edge f: source → target carrying an opaque payload.

    Equality and hashing use (source, target, payload). A morphism is direct
    when it lives in the store and derived when it was produced by a search
    and not persisted. Depth counts the direct morphisms composed into it.
    """
    source: ObjectHandle
    target: ObjectHandle
    payload: Any
    derived: bool = field(default=False, compare=False)
    depth: int = field(default=1, compare=False)

    def is_direct(self) -> bool:
        return not self.derived

    def chains_with(self, other: 'Morphism') -> bool:
        """Check that self: A → B and other: B → C compose"""
        return self.target is other.source

    def __repr__(self) -> str:
        kind = "derived" if self.derived else "direct"
        return f"Morphism({self.source!r} → {self.target!r}, {self.payload!r}, {kind})"


class Direction(Enum):
    """Direction of neighbour enumeration"""
    OUTGOING = "outgoing"
    INCOMING = "incoming"
    BOTH = "both"


class NeighbourView(Sequence):
    """
    Finite, restartable sequence of the direct morphisms incident to an object.

    The view holds the snapshot taken when it was created. Later mutations of
    the store are not visible through it, and every iteration starts over.
    """

    __slots__ = ("obj", "direction", "_morphisms")

    def __init__(self, obj: ObjectHandle, direction: Direction, morphisms: Tuple[Morphism, ...]):
        self.obj = obj
        self.direction = direction
        self._morphisms = morphisms

    def __iter__(self) -> Iterator[Morphism]:
        return iter(self._morphisms)

    def __len__(self) -> int:
        return len(self._morphisms)

    def __getitem__(self, index):
        return self._morphisms[index]

    def __repr__(self) -> str:
        return f"NeighbourView({self.obj!r}, {self.direction.value}, {len(self)} morphisms)"


# ============================================================================
# READ/WRITE LOCK
# ============================================================================

class ReadWriteLock:
    """
    Single-writer/multiple-reader lock.

    Waiting writers block new readers so that a stream of queries cannot
    starve mutations. Not reentrant.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self):
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


# ============================================================================
# STORE
# ============================================================================

class CompositionGraphStore:
    """
    Holds objects and the direct morphisms between them.

    Args:
        key: Maps a payload to a hashable structural key. Two morphisms with
            the same endpoints and key are the same edge. Defaults to the
            payload itself.
    """

    def __init__(self, key: Optional[Callable[[Any], Hashable]] = None):
        self.key = key or _payload_key
        self._lock = ReadWriteLock()
        self._ids = itertools.count()
        self._objects: Dict[int, ObjectHandle] = {}
        self._outgoing: Dict[int, List[Morphism]] = {}
        self._incoming: Dict[int, List[Morphism]] = {}
        self._index: Dict[Tuple[int, int, Hashable], Morphism] = {}

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_object(self, label: Any = None) -> ObjectHandle:
        """Create and return a fresh object handle"""
        with self._lock.write():
            obj = ObjectHandle(next(self._ids), label)
            self._objects[obj.id] = obj
            self._outgoing[obj.id] = []
            self._incoming[obj.id] = []
        logger.debug("Added object %r", obj)
        return obj

    def add_morphism(self, source: ObjectHandle, target: ObjectHandle, payload: Any) -> Morphism:
        """
        Insert a direct morphism source → target.

        Inserting a structurally identical edge is a no-op that returns the
        morphism already stored.

        Raises:
            InvalidObject: If either endpoint is not in the store
        """
        with self._lock.write():
            self._require(source)
            self._require(target)

            edge_key = (source.id, target.id, self.key(payload))
            existing = self._index.get(edge_key)
            if existing is not None:
                return existing

            morphism = Morphism(source, target, payload)
            self._index[edge_key] = morphism
            self._outgoing[source.id].append(morphism)
            self._incoming[target.id].append(morphism)
        logger.debug("Added morphism %r", morphism)
        return morphism

    def remove_object(self, obj: ObjectHandle) -> None:
        """
        Remove an object together with every incident morphism.

        Raises:
            NotFound: If the handle is unknown or was already removed
        """
        with self._lock.write():
            if not isinstance(obj, ObjectHandle) or self._objects.get(obj.id) is not obj:
                raise NotFound(f"Object {obj!r} not found", details={"object": repr(obj)})

            incident = self._outgoing.pop(obj.id) + self._incoming.pop(obj.id)
            del self._objects[obj.id]

            for morphism in incident:
                self._index.pop(
                    (morphism.source.id, morphism.target.id, self.key(morphism.payload)),
                    None
                )
                if morphism.target is not obj:
                    self._incoming[morphism.target.id].remove(morphism)
                if morphism.source is not obj:
                    self._outgoing[morphism.source.id].remove(morphism)
        logger.debug("Removed object %r with %d incident morphisms", obj, len(incident))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def neighbours(self, obj: ObjectHandle, direction: Direction = Direction.OUTGOING) -> NeighbourView:
        """
        Direct morphisms incident to obj in the requested direction.

        With Direction.BOTH a self-loop is listed once.

        Raises:
            InvalidObject: If obj is not in the store
        """
        with self._lock.read():
            self._require(obj)
            if direction is Direction.OUTGOING:
                morphisms = tuple(self._outgoing[obj.id])
            elif direction is Direction.INCOMING:
                morphisms = tuple(self._incoming[obj.id])
            else:
                morphisms = tuple(self._outgoing[obj.id]) + tuple(
                    m for m in self._incoming[obj.id] if m.source is not obj
                )
        return NeighbourView(obj, direction, morphisms)

    def has_morphism(self, source: ObjectHandle, target: ObjectHandle, payload: Any) -> bool:
        with self._lock.read():
            return (source.id, target.id, self.key(payload)) in self._index

    def objects(self) -> List[ObjectHandle]:
        """Objects in creation order"""
        with self._lock.read():
            return list(self._objects.values())

    def morphisms(self) -> List[Morphism]:
        """All direct morphisms in insertion order"""
        with self._lock.read():
            return list(self._index.values())

    @property
    def morphism_count(self) -> int:
        with self._lock.read():
            return len(self._index)

    def __contains__(self, obj: object) -> bool:
        if not isinstance(obj, ObjectHandle):
            return False
        with self._lock.read():
            return self._objects.get(obj.id) is obj

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._objects)

    def _require(self, obj: ObjectHandle) -> None:
        """Raise InvalidObject unless obj is live; caller holds the lock"""
        if not isinstance(obj, ObjectHandle) or self._objects.get(obj.id) is not obj:
            raise InvalidObject(f"Object {obj!r} is not in the store", details={"object": repr(obj)})

    # ------------------------------------------------------------------
    # Tuple graph interop
    # ------------------------------------------------------------------

    def to_graph(self) -> Graph:
        """
        Export as (nodes, edges).

        Nodes are object labels in creation order; edges are
        ((source_index, target_index), payload).
        """
        with self._lock.read():
            objects = list(self._objects.values())
            position = {obj.id: i for i, obj in enumerate(objects)}
            edges = [
                ((position[m.source.id], position[m.target.id]), m.payload)
                for m in self._index.values()
            ]
        return [obj.label for obj in objects], edges

    @classmethod
    def from_graph(cls, graph: Graph, key: Optional[Callable[[Any], Hashable]] = None) -> 'CompositionGraphStore':
        """Build a store from (nodes, edges), labelling objects with the nodes"""
        nodes, edges = graph
        store = cls(key=key)
        handles = [store.add_object(node) for node in nodes]
        for (a, b), payload in edges:
            store.add_morphism(handles[a], handles[b], payload)
        return store
