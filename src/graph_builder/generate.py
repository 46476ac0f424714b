"""
GRAPH GENERATION: Post-filtering with edge composition

Generates a graph from a seed by repeatedly applying a step function, then
filters nodes afterwards. Edges through a filtered node are composed into
edges that skip it, so nodes which need several steps to reach each other
still end up connected.

Waiting with filtering until post-processing is what makes multi-step edges
possible: a node that fails the filter can still serve as an intermediate
state while the graph is generated.

Memory limits are not raised. Generation stops, post-processing still runs,
and the limit is reported in the result, since limits are usually hit by a
combinatorial explosion whose partial data is still useful.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, List, Optional, Set, Tuple, Union

from .config import GenerateSettings
from .errors import GenerateError, StepError
from .store import Graph

logger = logging.getLogger(__name__)

Edge = Tuple[Tuple[int, int], Any]

StepFunction = Callable[[Hashable, int], Optional[Tuple[Hashable, Any]]]
ComposeFunction = Callable[[Any, Any], Optional[Any]]


@dataclass
class Generated:
    """
    Result of generate().

    Nodes and edges are always present, also when generation stopped early.
    Error holds the first problem met: a GenerateError for memory limits or
    the first StepError raised by the step or compose function.
    """
    nodes: List[Hashable]
    edges: List[Edge]
    error: Optional[Union[GenerateError, StepError]] = None

    def is_success(self) -> bool:
        return self.error is None

    @property
    def graph(self) -> Graph:
        return self.nodes, self.edges


def generate(
    graph: Graph,
    n: int,
    step: StepFunction,
    keep: Callable[[Hashable], bool],
    compose: ComposeFunction,
    settings: Optional[GenerateSettings] = None
) -> Generated:
    """
    Generate a graph and post-filter its nodes.

    Args:
        graph: Seed (nodes, edges); nodes must be hashable
        n: Number of operations tried on every node, step(node, j) for j < n
        step: Returns (new_node, edge), None to skip the operation, or raises
            StepError to report a failure and continue
        keep: Post-filter; nodes for which it is false are removed
        compose: Joins an edge into a removed node with an edge out of it.
            Returns the new edge, None to skip silently, or raises StepError
            to report a failure and continue
        settings: Memory limits

    Returns:
        Generated with the filtered nodes, remapped edges and the first error
    """
    settings = settings or GenerateSettings()
    nodes = list(graph[0])
    edges = list(graph[1])
    error: Optional[Union[GenerateError, StepError]] = None

    index: Dict[Hashable, int] = {}
    for i, node in enumerate(nodes):
        index.setdefault(node, i)
    joined: Set[Tuple[int, int]] = {pair for pair, _ in edges}

    limit: Optional[GenerateError] = None
    i = 0
    while i < len(nodes) and limit is None:
        for j in range(n):
            try:
                produced = step(nodes[i], j)
            except StepError as e:
                error = error or e
                continue
            if produced is None:
                continue

            new_node, new_edge = produced
            target = index.get(new_node)
            if target is None:
                target = len(nodes)
                index[new_node] = target
                nodes.append(new_node)
            joined.add((i, target))
            edges.append(((i, target), new_edge))

            if len(nodes) >= settings.max_nodes:
                limit = GenerateError.MAX_NODES
                break
            if len(edges) >= settings.max_edges:
                limit = GenerateError.MAX_EDGES
                break
        i += 1

    if limit is not None:
        logger.warning("Generation stopped: %s (%d nodes, %d edges)", limit, len(nodes), len(edges))
        error = error or limit

    removed = {i for i, node in enumerate(nodes) if not keep(node)}
    logger.debug("Post-filter removes %d of %d nodes", len(removed), len(nodes))

    # Compose edges into removed nodes with the generated edges out of them.
    # Composed edges are appended and visited too, so chains of removed
    # nodes collapse into single edges.
    generated_count = len(edges)
    j = 0
    while j < len(edges):
        (a, b), edge_ab = edges[j]
        if b in removed:
            for k in range(generated_count):
                (c, d), edge_cd = edges[k]
                if c != b or (a, d) in joined:
                    continue
                try:
                    composed = compose(edge_ab, edge_cd)
                except StepError as e:
                    error = error or e
                    continue
                if composed is not None:
                    edges.append(((a, d), composed))
                    joined.add((a, d))
        j += 1

    remap: Dict[int, int] = {}
    kept_nodes = []
    for i, node in enumerate(nodes):
        if i not in removed:
            remap[i] = len(kept_nodes)
            kept_nodes.append(node)

    kept_edges = [
        ((remap[a], remap[b]), edge)
        for (a, b), edge in edges
        if a in remap and b in remap
    ]

    logger.debug("Generated %d nodes and %d edges", len(kept_nodes), len(kept_edges))
    return Generated(nodes=kept_nodes, edges=kept_edges, error=error)


def bidir(edges: List[Edge]) -> List[Edge]:
    """
    Keep only edges that are equal in both directions.

    Pairs are normalised to (min, max). A pair survives as one edge when it
    has exactly two edges with equal payloads; redundant edges and edges that
    only exist in one direction are removed. Assumes at most two edges per
    pair of nodes.

    Returns the surviving edges sorted by pair.
    """
    grouped: Dict[Tuple[int, int], List[Any]] = {}
    for (a, b), edge in edges:
        grouped.setdefault((min(a, b), max(a, b)), []).append(edge)

    result = []
    for pair in sorted(grouped):
        payloads = grouped[pair]
        if len(payloads) == 2 and payloads[0] == payloads[1]:
            result.append((pair, payloads[0]))
    return result
