"""
CONFIG: Settings for search and generation

Plain dataclasses validated on construction. SearchSettings can also be read
from GRAPH_BUILDER_* environment variables.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional


ENV_PREFIX = "GRAPH_BUILDER_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


@dataclass
class SearchSettings:
    """
    Settings for the closure search engine.

    Attributes:
        max_steps: Default composition depth when a query passes no bound
        max_candidates: Composed candidates allowed per query before the
            search stops as if its bound were exhausted
        persist: Persist accepted derived morphisms by default
        bidirectional: Grow a backward frontier from the target in find_path
    """
    max_steps: int = 8
    max_candidates: int = 10_000
    persist: bool = False
    bidirectional: bool = True

    def __post_init__(self):
        if self.max_steps < 1:
            raise ValueError(f"max_steps must be positive, got {self.max_steps}")
        if self.max_candidates < 1:
            raise ValueError(f"max_candidates must be positive, got {self.max_candidates}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'SearchSettings':
        """Build settings from GRAPH_BUILDER_* variables, defaults for the rest"""
        environ = os.environ if environ is None else environ
        kwargs = {}

        name = ENV_PREFIX + "MAX_STEPS"
        if name in environ:
            kwargs["max_steps"] = _parse_int(name, environ[name])

        name = ENV_PREFIX + "MAX_CANDIDATES"
        if name in environ:
            kwargs["max_candidates"] = _parse_int(name, environ[name])

        name = ENV_PREFIX + "PERSIST"
        if name in environ:
            kwargs["persist"] = _parse_bool(name, environ[name])

        name = ENV_PREFIX + "BIDIRECTIONAL"
        if name in environ:
            kwargs["bidirectional"] = _parse_bool(name, environ[name])

        return cls(**kwargs)


@dataclass
class GenerateSettings:
    """
    Memory limits for graph generation.

    Attributes:
        max_nodes: The maximum number of nodes before terminating
        max_edges: The maximum number of edges before terminating
    """
    max_nodes: int = 1000
    max_edges: int = 1000

    def __post_init__(self):
        if self.max_nodes < 1:
            raise ValueError(f"max_nodes must be positive, got {self.max_nodes}")
        if self.max_edges < 1:
            raise ValueError(f"max_edges must be positive, got {self.max_edges}")
