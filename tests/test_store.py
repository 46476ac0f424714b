"""
TESTS FOR THE COMPOSITION GRAPH STORE

Validates:
1. Object creation and identity
2. Morphism insertion and duplicate handling
3. Neighbour enumeration and snapshots
4. Cascading removal
5. Tuple graph interop
6. Concurrent readers and writers
"""

import unittest
import threading
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

from graph_builder.store import (
    CompositionGraphStore, Direction, Morphism, ObjectHandle, NeighbourView
)
from graph_builder.errors import InvalidObject, NotFound


class TestObjects(unittest.TestCase):
    """Test object handles"""

    def setUp(self):
        self.store = CompositionGraphStore()

    def test_fresh_handles_are_distinct(self):
        """Test that every add_object call returns a new object"""
        a = self.store.add_object("X")
        b = self.store.add_object("X")

        self.assertIsNot(a, b)
        self.assertNotEqual(a, b)
        self.assertEqual(len(self.store), 2)

    def test_contains(self):
        """Test membership of live, foreign and removed handles"""
        a = self.store.add_object()
        foreign = CompositionGraphStore().add_object()

        self.assertIn(a, self.store)
        self.assertNotIn(foreign, self.store)
        self.assertNotIn("a", self.store)

        self.store.remove_object(a)
        self.assertNotIn(a, self.store)

    def test_objects_in_creation_order(self):
        handles = [self.store.add_object(i) for i in range(4)]
        self.assertEqual(self.store.objects(), handles)


class TestMorphisms(unittest.TestCase):
    """Test morphism insertion"""

    def setUp(self):
        self.store = CompositionGraphStore()
        self.a = self.store.add_object("A")
        self.b = self.store.add_object("B")

    def test_add_morphism(self):
        """Test that inserted morphisms are direct with depth 1"""
        f = self.store.add_morphism(self.a, self.b, "f")

        self.assertEqual(f, Morphism(self.a, self.b, "f"))
        self.assertTrue(f.is_direct())
        self.assertEqual(f.depth, 1)
        self.assertEqual(self.store.morphism_count, 1)

    def test_duplicate_is_noop(self):
        """Test that a structurally identical edge returns the stored one"""
        f = self.store.add_morphism(self.a, self.b, "f")
        again = self.store.add_morphism(self.a, self.b, "f")

        self.assertIs(again, f)
        self.assertEqual(self.store.morphism_count, 1)
        self.assertEqual(len(self.store.neighbours(self.a)), 1)

    def test_parallel_edges_allowed(self):
        """Test that different payloads between the same objects coexist"""
        self.store.add_morphism(self.a, self.b, "f")
        self.store.add_morphism(self.a, self.b, "g")

        payloads = [m.payload for m in self.store.neighbours(self.a)]
        self.assertEqual(payloads, ["f", "g"])

    def test_custom_key_deduplicates(self):
        """Test that the store key decides structural identity"""
        store = CompositionGraphStore(key=lambda payload: tuple(payload))
        a, b = store.add_object(), store.add_object()

        first = store.add_morphism(a, b, [1, 2])
        second = store.add_morphism(a, b, [1, 2])

        self.assertIs(first, second)
        self.assertTrue(store.has_morphism(a, b, [1, 2]))
        self.assertFalse(store.has_morphism(b, a, [1, 2]))

    def test_unknown_endpoint_rejected(self):
        """Test that edges to objects outside the store are rejected"""
        foreign = CompositionGraphStore().add_object()

        with self.assertRaises(InvalidObject):
            self.store.add_morphism(self.a, foreign, "f")
        with self.assertRaises(InvalidObject):
            self.store.add_morphism(foreign, self.a, "f")
        self.assertEqual(self.store.morphism_count, 0)


class TestNeighbours(unittest.TestCase):
    """Test neighbour enumeration"""

    def setUp(self):
        self.store = CompositionGraphStore()
        self.a = self.store.add_object("A")
        self.b = self.store.add_object("B")
        self.c = self.store.add_object("C")
        self.f = self.store.add_morphism(self.a, self.b, "f")
        self.g = self.store.add_morphism(self.b, self.c, "g")
        self.loop = self.store.add_morphism(self.b, self.b, "l")

    def test_directions(self):
        """Test outgoing, incoming and both"""
        self.assertEqual(list(self.store.neighbours(self.b, Direction.OUTGOING)), [self.g, self.loop])
        self.assertEqual(list(self.store.neighbours(self.b, Direction.INCOMING)), [self.f, self.loop])

        both = list(self.store.neighbours(self.b, Direction.BOTH))
        self.assertEqual(both, [self.g, self.loop, self.f])

    def test_default_direction_is_outgoing(self):
        self.assertEqual(list(self.store.neighbours(self.a)), [self.f])

    def test_view_is_restartable(self):
        """Test that a view can be iterated more than once"""
        view = self.store.neighbours(self.b)

        self.assertIsInstance(view, NeighbourView)
        self.assertEqual(list(view), list(view))
        self.assertEqual(len(view), 2)
        self.assertIs(view[0], self.g)

    def test_view_is_a_snapshot(self):
        """Test that later mutations do not leak into an existing view"""
        view = self.store.neighbours(self.a)
        self.store.add_morphism(self.a, self.c, "h")

        self.assertEqual(len(view), 1)
        self.assertEqual(len(self.store.neighbours(self.a)), 2)

    def test_unknown_object(self):
        foreign = CompositionGraphStore().add_object()
        with self.assertRaises(InvalidObject):
            self.store.neighbours(foreign)


class TestRemoval(unittest.TestCase):
    """Test cascading removal"""

    def setUp(self):
        self.store = CompositionGraphStore()
        self.a = self.store.add_object("A")
        self.b = self.store.add_object("B")
        self.c = self.store.add_object("C")
        self.store.add_morphism(self.a, self.b, "f")
        self.store.add_morphism(self.b, self.c, "g")
        self.store.add_morphism(self.b, self.b, "l")
        self.store.add_morphism(self.a, self.c, "h")

    def test_remove_cascades(self):
        """Test that incident morphisms disappear with the object"""
        self.store.remove_object(self.b)

        self.assertEqual(len(self.store), 2)
        self.assertEqual([m.payload for m in self.store.morphisms()], ["h"])
        self.assertEqual([m.payload for m in self.store.neighbours(self.a)], ["h"])
        self.assertEqual([m.payload for m in self.store.neighbours(self.c, Direction.INCOMING)], ["h"])

    def test_remove_twice_raises(self):
        """Test that removing an already removed object fails"""
        self.store.remove_object(self.c)

        with self.assertRaises(NotFound):
            self.store.remove_object(self.c)

    def test_remove_unknown_raises(self):
        foreign = CompositionGraphStore().add_object()
        with self.assertRaises(NotFound):
            self.store.remove_object(foreign)

    def test_removed_edge_can_be_added_again(self):
        """Test that the duplicate index forgets removed edges"""
        self.store.remove_object(self.c)
        c = self.store.add_object("C")

        self.store.add_morphism(self.b, c, "g")
        self.assertEqual(self.store.morphism_count, 3)


class TestGraphInterop(unittest.TestCase):
    """Test conversion from and to (nodes, edges)"""

    def test_round_trip(self):
        graph = (["A", "B", "C"], [((0, 1), "f"), ((1, 2), "g")])

        store = CompositionGraphStore.from_graph(graph)

        self.assertEqual([obj.label for obj in store.objects()], ["A", "B", "C"])
        self.assertEqual(store.to_graph(), graph)

    def test_export_after_removal_reindexes(self):
        store = CompositionGraphStore.from_graph((["A", "B", "C"], [((0, 2), "h"), ((0, 1), "f")]))
        store.remove_object(store.objects()[1])

        self.assertEqual(store.to_graph(), (["A", "C"], [((0, 1), "h")]))


class TestConcurrency(unittest.TestCase):
    """Test readers and writers sharing one store"""

    def test_concurrent_writers_and_readers(self):
        """Test that concurrent inserts are all kept and reads stay consistent"""
        store = CompositionGraphStore()
        hub = store.add_object("hub")
        spokes = [store.add_object(i) for i in range(8)]
        errors = []

        def writer(spoke: ObjectHandle):
            for n in range(50):
                store.add_morphism(hub, spoke, n)

        def reader():
            previous = 0
            for _ in range(100):
                view = store.neighbours(hub)
                if len(view) < previous:
                    errors.append(f"view shrank from {previous} to {len(view)}")
                previous = len(view)

                # Every writer inserts 0, 1, 2, ... in order, so a consistent
                # snapshot holds a gapless prefix of each writer's payloads
                per_spoke = {}
                for morphism in view:
                    if morphism.source is not hub:
                        errors.append(f"foreign source in {morphism!r}")
                    per_spoke.setdefault(morphism.target.id, []).append(morphism.payload)
                for spoke_id, payloads in per_spoke.items():
                    if payloads != list(range(len(payloads))):
                        errors.append(f"torn insert order for spoke {spoke_id}: {payloads}")

        threads = [threading.Thread(target=writer, args=(s,)) for s in spokes]
        threads += [threading.Thread(target=reader) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(store.morphism_count, 8 * 50)
        self.assertEqual(len(store.neighbours(hub)), 8 * 50)
        for spoke in spokes:
            incoming = store.neighbours(spoke, Direction.INCOMING)
            self.assertEqual([m.payload for m in incoming], list(range(50)))


if __name__ == '__main__':
    unittest.main()
