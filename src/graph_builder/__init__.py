"""
graph-builder: Composition graphs for automated theorem proving

Objects are nodes, morphisms are typed edges that compose. Only neighbour
morphisms are stored; longer compositions are searched on demand, filtered
by the caller and optionally persisted back as edges.
"""

__version__ = "0.1.0"

from .errors import (
    GraphError,
    InvalidObject,
    NotFound,
    Cancelled,
    UndefinedComposition,
    StepError,
    GenerateError,
)

from .config import (
    SearchSettings,
    GenerateSettings,
)

from .store import (
    Graph,
    ObjectHandle,
    Morphism,
    Direction,
    NeighbourView,
    ReadWriteLock,
    CompositionGraphStore,
)

from .algebra import (
    MorphismAlgebra,
    FunctionAlgebra,
    Composition,
    compose_morphisms,
    accept_all,
    create_simple_algebra,
)

from .search import (
    SearchBound,
    SearchMetadata,
    SearchStats,
    CancellationToken,
    ClosureSearchEngine,
)

from .generate import (
    Generated,
    generate,
    bidir,
)

__all__ = [
    # Errors
    "GraphError",
    "InvalidObject",
    "NotFound",
    "Cancelled",
    "UndefinedComposition",
    "StepError",
    "GenerateError",

    # Config
    "SearchSettings",
    "GenerateSettings",

    # Store
    "Graph",
    "ObjectHandle",
    "Morphism",
    "Direction",
    "NeighbourView",
    "ReadWriteLock",
    "CompositionGraphStore",

    # Algebra
    "MorphismAlgebra",
    "FunctionAlgebra",
    "Composition",
    "compose_morphisms",
    "accept_all",
    "create_simple_algebra",

    # Search
    "SearchBound",
    "SearchMetadata",
    "SearchStats",
    "CancellationToken",
    "ClosureSearchEngine",

    # Generation
    "Generated",
    "generate",
    "bidir",
]
