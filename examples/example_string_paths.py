#!/usr/bin/env python3
"""
Example: Composing string morphisms with a length filter

Objects A, B, C with f: A → B and g: B → C. Composition joins payloads with
"∘"; the filter only accepts payloads of a few bytes. Accepted compositions
are persisted so that the next query finds them as direct morphisms.
"""

import logging
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from graph_builder import (
    ClosureSearchEngine, CompositionGraphStore, FunctionAlgebra, SearchSettings, SearchStats
)


def main():
    logging.basicConfig(level=logging.INFO, format="%(name)s %(levelname)s %(message)s")

    store = CompositionGraphStore()
    a, b, c = store.add_object("A"), store.add_object("B"), store.add_object("C")
    store.add_morphism(a, b, "f")
    store.add_morphism(b, c, "g")

    engine = ClosureSearchEngine(
        store,
        FunctionAlgebra(compose=lambda x, y: x + "∘" + y),
        SearchSettings.from_env()
    )

    for limit in (5, 3):
        def short(candidate, meta, limit=limit):
            return len(candidate.payload.encode("utf-8")) <= limit

        stats = SearchStats()
        found = engine.find_path(a, c, short, bound=2, stats=stats)
        print(f"max {limit} bytes: {found.payload if found else 'not found'} {stats.to_dict()}")

    print("=" * 60)
    engine.expand(a, lambda candidate, meta: True, bound=2, persist=True)
    direct = engine.find_path(a, c, lambda candidate, meta: True, bound=1)
    print(f"After persisting, one step reaches C: {direct}")


if __name__ == "__main__":
    main()
