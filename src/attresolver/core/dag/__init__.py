"""Static dependency graph validation for resolver plugins."""

from attresolver.core.dag.graph import DependencyGraph
from attresolver.core.dag.models import GraphValidationError, NodeInfo

__all__ = [
    "DependencyGraph",
    "GraphValidationError",
    "NodeInfo",
]
