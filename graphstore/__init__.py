"""
Graph store module: Neo4j materialization and queries for analyzed
Terraform resources.

Public API:
    - get_neo4j_driver: Connect with retries
    - materialize_graph: Replace the stored snapshot
    - merge_graph: Incremental upsert
    - get_graph_statistics / get_resource_neighbors: Read-side queries
"""

from graphstore.endpoint_resolver import (
    ENDPOINT_RESOLVERS,
    InMemoryNodeCatalog,
    Neo4jNodeCatalog,
    NodeCatalog,
    resolve_endpoint,
)
from graphstore.neo4j_loader import (
    GraphEdge,
    GraphNode,
    ImportFailedError,
    MaterializationStats,
    build_graph_edges,
    build_graph_nodes,
    categorize_resource,
    get_neo4j_driver,
    materialize_graph,
    merge_graph,
    sanitize_relationship_type,
)
from graphstore.query import (
    get_graph_statistics,
    get_resource_count,
    get_resource_neighbors,
    resource_exists,
)

__all__ = [
    "ENDPOINT_RESOLVERS",
    "InMemoryNodeCatalog",
    "Neo4jNodeCatalog",
    "NodeCatalog",
    "resolve_endpoint",
    "GraphEdge",
    "GraphNode",
    "ImportFailedError",
    "MaterializationStats",
    "build_graph_edges",
    "build_graph_nodes",
    "categorize_resource",
    "get_neo4j_driver",
    "materialize_graph",
    "merge_graph",
    "sanitize_relationship_type",
    "get_graph_statistics",
    "get_resource_count",
    "get_resource_neighbors",
    "resource_exists",
]
