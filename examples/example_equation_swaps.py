#!/usr/bin/env python3
"""
Example: All solutions of x0 + x1 + ... + x(n-2) = x(n-1)

For example:

    a + b = c
    c - a = b
    c - b = a

Each solution is a node in a generated graph. An edge tells how to swap side
and sign of terms to get from one node to another. To get from one solution
to another, one only needs to move at most two terms.

The number of nodes from n terms and m right-side terms is bin(n, m).
The number of edges is the number of pairs between nodes, n * (n - 1) / 2.

Usage: example_equation_swaps.py [terms] [solution_terms]
"""

import sys
import os
from dataclasses import dataclass
from typing import Optional, Tuple

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from graph_builder import (
    ClosureSearchEngine, CompositionGraphStore, FunctionAlgebra, GenerateSettings,
    accept_all, bidir, generate
)


@dataclass(frozen=True)
class Equation:
    """Sides (True = right) and signs of the terms"""
    side: Tuple[bool, ...]
    positive: Tuple[bool, ...]

    def len_right(self) -> int:
        return sum(self.side)

    def unique_right(self) -> Optional[int]:
        """Index of the right-side term when it is the only one"""
        found = None
        for i, right in enumerate(self.side):
            if right:
                if found is not None:
                    return None
                found = i
        return found

    def signs(self) -> Tuple[str, str]:
        ind = self.unique_right()
        if ind is not None and not self.positive[ind]:
            return "-", "+"
        return "+", "-"

    def __str__(self) -> str:
        plus, minus = self.signs()
        left = [
            f"{plus if self.positive[i] else minus}x{i}"
            for i in range(len(self.side)) if not self.side[i]
        ]
        right = [
            f"{plus if self.positive[i] else minus}x{i}"
            for i in range(len(self.side)) if self.side[i]
        ]
        return f"{' '.join(left) or '0'} = {' '.join(right) or '0'}"


def main():
    n = int(sys.argv[1]) if len(sys.argv) > 1 else 3
    solution_terms = int(sys.argv[2]) if len(sys.argv) > 2 else 1

    # Put all terms except the last one on the right
    if solution_terms == 1 and n > 0:
        side = (True,) * (n - 1) + (False,)
    else:
        side = (True,) * n
    start = Equation(side=side, positive=(True,) * n)

    def swap(eq: Equation, ind: int):
        side = list(eq.side)
        positive = list(eq.positive)
        side[ind] = not side[ind]
        positive[ind] = not positive[ind]
        return Equation(tuple(side), tuple(positive)), (ind,)

    # Swaps commute, so only join them in increasing order
    def join(a, b):
        if a >= b:
            return None
        return tuple(sorted(a + b))

    generated = generate(
        ([start], []),
        n,
        swap,
        lambda eq: eq.len_right() == solution_terms,
        join,
        GenerateSettings(max_nodes=1000, max_edges=1000)
    )
    if not generated.is_success():
        print(f"Warning: {generated.error}")

    edges = bidir(generated.edges)
    for i, eq in enumerate(generated.nodes):
        print(f"{i}: {eq}")
    for edge in edges:
        print(edge)
    print(f"(nodes, edges): ({len(generated.nodes)}, {len(edges)})")

    # Search the solution graph: which swaps lead from the first to the last solution?
    if len(generated.nodes) > 1:
        store = CompositionGraphStore.from_graph((generated.nodes, edges))
        engine = ClosureSearchEngine(store, FunctionAlgebra(compose=join))
        objects = store.objects()
        found = engine.find_path(objects[0], objects[-1], accept_all, bound=2)
        print(f"\n{objects[0].label} ⟶ {objects[-1].label}: {found.payload if found else 'not found'}")


if __name__ == "__main__":
    main()
