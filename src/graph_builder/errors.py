"""
ERRORS: Exception hierarchy for the composition graph

Only malformed queries and explicit cancellation reach the caller:
- InvalidObject: unknown or removed handle referenced in a query or mutation
- NotFound: removal of an unknown object
- Cancelled: query aborted through a cancellation token

UndefinedComposition and StepError are raised by caller code and recovered
inside the library. Memory limits hit during generation are reported as a
GenerateError value, never raised.
"""

from typing import Any, Dict, Optional
from enum import Enum


class GraphError(Exception):
    """Base class for all graph-builder errors"""

    default_message = "Graph error"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class InvalidObject(GraphError):
    """Object handle is not present in the store"""

    default_message = "Object is not present in the store"


class NotFound(GraphError):
    """Removal of an unknown or already removed object"""

    default_message = "Object not found"


class Cancelled(GraphError):
    """Query aborted through its cancellation token"""

    default_message = "Query was cancelled"


class UndefinedComposition(GraphError):
    """
    Composition is undefined for a pair of payloads.

    An algebra may raise this instead of returning None. The search engine
    treats it as a dead branch and never lets it escape.
    """

    default_message = "Composition is undefined"


class StepError(GraphError):
    """
    Reported failure of a generation step or edge composer.

    Generation keeps going and reports the first such error in its result.
    """

    default_message = "Generation step failed"


class GenerateError(Enum):
    """Memory limit reached while generating a graph"""
    MAX_NODES = "max_nodes"
    MAX_EDGES = "max_edges"

    def __str__(self) -> str:
        if self is GenerateError.MAX_NODES:
            return "Reached limit maximum number of nodes"
        return "Reached limit maximum number of edges"
