"""
Neo4j graph materializer for analyzed Terraform resources.

Turns validated resource and relationship descriptors into ``Resource``
nodes and typed edges. ``materialize_graph`` replaces the stored snapshot;
``merge_graph`` upserts into it. Each node and edge write is independent:
a failed write is logged and counted and never aborts the batch.
"""

import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from neo4j import Driver, GraphDatabase

from analysis.models import AnalysisResult, RelationshipDescriptor, ResourceDescriptor
from core.identifiers import UNKNOWN_PROVIDER, synthetic_resource_id
from extraction.parser import to_plain
from graphstore.config import (
    CATEGORY_KEYWORDS,
    DEFAULT_CATEGORY,
    DEFAULT_RELATIONSHIP_TYPE,
    DROP_DUPLICATE,
    DROP_UNRESOLVED_SOURCE,
    DROP_UNRESOLVED_TARGET,
    INDEXED_FIELDS,
    NEO4J_CONNECTION_RETRIES,
    NEO4J_CONNECTION_RETRY_DELAY,
    NEO4J_PASSWORD,
    NEO4J_URI,
    NEO4J_USERNAME,
    RESOURCE_LABEL,
)
from graphstore.endpoint_resolver import (
    InMemoryNodeCatalog,
    Neo4jNodeCatalog,
    NodeCatalog,
    resolve_endpoints,
)

logger = logging.getLogger(__name__)

_NON_ALNUM_RE = re.compile(r"[^A-Z0-9]+")


class ImportFailedError(RuntimeError):
    """The store could not be prepared; the import was aborted."""


@dataclass
class GraphNode:
    """A ``Resource`` node to be upserted into Neo4j."""

    stable_id: str
    terraform_id: str
    name: str
    type: str
    provider: str
    category: str
    properties_json: str = "{}"

    def to_params(self) -> Dict[str, Any]:
        return {
            "id": self.stable_id,
            "terraform_id": self.terraform_id,
            "name": self.name,
            "type": self.type,
            "provider": self.provider,
            "category": self.category,
            "properties_json": self.properties_json,
        }


@dataclass
class GraphEdge:
    """A typed relationship between two resolved ``Resource`` nodes."""

    source_id: str
    target_id: str
    relationship_type: str
    original_type: str
    description: str = ""
    confidence: float = 0.5


@dataclass
class MaterializationStats:
    """Statistics for one materialization run."""

    mode: str = "replace"
    nodes_cleared: int = 0
    nodes_prepared: int = 0
    nodes_deduped: int = 0
    nodes_written: int = 0
    nodes_failed: int = 0
    edges_prepared: int = 0
    edges_deduped: int = 0
    edges_written: int = 0
    edges_failed: int = 0
    indexes_created: int = 0
    index_failures: int = 0
    dropped_edges_by_reason: dict[str, int] = field(default_factory=dict)

    def add_dropped_edge_reason(self, reason: str, count: int = 1) -> None:
        self.dropped_edges_by_reason[reason] = (
            self.dropped_edges_by_reason.get(reason, 0) + count
        )

    def edge_write_success_rate(self) -> float:
        attempted = self.edges_written + self.edges_failed
        if attempted <= 0:
            return 1.0
        return self.edges_written / attempted

    def to_report(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "nodes_cleared": self.nodes_cleared,
            "nodes_prepared": self.nodes_prepared,
            "nodes_deduped": self.nodes_deduped,
            "nodes_written": self.nodes_written,
            "nodes_failed": self.nodes_failed,
            "edges_prepared": self.edges_prepared,
            "edges_deduped": self.edges_deduped,
            "edges_written": self.edges_written,
            "edges_failed": self.edges_failed,
            "edge_write_success_rate": round(self.edge_write_success_rate(), 6),
            "indexes_created": self.indexes_created,
            "index_failures": self.index_failures,
            "dropped_edges_by_reason": dict(
                sorted(self.dropped_edges_by_reason.items())
            ),
        }

    def __str__(self) -> str:
        return (
            f"MaterializationStats(mode={self.mode}, nodes={self.nodes_written}, "
            f"edges={self.edges_written}, failed={self.nodes_failed}/{self.edges_failed}, "
            f"dropped={sum(self.dropped_edges_by_reason.values())}, "
            f"edge_success={self.edge_write_success_rate():.2%})"
        )


# ---------------------------------------------------------------------------
# Node and edge preparation
# ---------------------------------------------------------------------------

def categorize_resource(resource_type: str) -> str:
    lowered = resource_type.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def sanitize_relationship_type(raw: Optional[str]) -> str:
    """Map a free-form relationship type to a safe Cypher relationship type."""
    if raw is None or not raw.strip():
        return DEFAULT_RELATIONSHIP_TYPE
    sanitized = _NON_ALNUM_RE.sub("_", raw.strip().upper()).strip("_")
    return sanitized or DEFAULT_RELATIONSHIP_TYPE


def serialize_properties(properties: Any, resource_id: str = "") -> str:
    try:
        return json.dumps(to_plain(properties or {}), sort_keys=True)
    except (TypeError, ValueError) as e:
        logger.warning("Could not serialize properties of %s: %s", resource_id or "?", e)
        return "{}"


def stable_node_id(resource: ResourceDescriptor) -> str:
    if resource.id.strip():
        return resource.id.strip()
    if resource.type and resource.name:
        return f"{resource.type}.{resource.name}"
    try:
        return synthetic_resource_id(resource.to_dict())
    except (TypeError, ValueError):
        return synthetic_resource_id({"type": resource.type, "name": resource.name})


def build_graph_node(resource: ResourceDescriptor) -> GraphNode:
    """Node for one descriptor; ``terraformId`` keeps the descriptor's own id."""
    stable_id = stable_node_id(resource)
    terraform_id = resource.id.strip() or stable_id
    name = resource.name or stable_id.rsplit(".", 1)[-1]
    return GraphNode(
        stable_id=stable_id,
        terraform_id=terraform_id,
        name=name,
        type=resource.type,
        provider=resource.provider.strip().lower() or UNKNOWN_PROVIDER,
        category=categorize_resource(resource.type),
        properties_json=serialize_properties(resource.properties, stable_id),
    )


def build_graph_nodes(
    resources: Iterable[ResourceDescriptor],
    stats: Optional[MaterializationStats] = None,
) -> List[GraphNode]:
    """Build nodes, collapsing repeated ids (the later descriptor wins)."""
    stats = stats or MaterializationStats()
    by_id: Dict[str, GraphNode] = {}
    prepared = 0
    for resource in resources:
        node = build_graph_node(resource)
        by_id[node.stable_id] = node
        prepared += 1
    stats.nodes_prepared += prepared
    stats.nodes_deduped += len(by_id)
    return list(by_id.values())


def build_graph_edges(
    relationships: Iterable[RelationshipDescriptor],
    catalog: NodeCatalog,
    stats: Optional[MaterializationStats] = None,
) -> List[GraphEdge]:
    """Resolve endpoints and de-duplicate on (source, target, type)."""
    stats = stats or MaterializationStats()
    relationships = list(relationships)
    stats.edges_prepared += len(relationships)
    resolved = resolve_endpoints(
        catalog,
        [ref for rel in relationships for ref in (rel.source, rel.target)],
    )

    edges: List[GraphEdge] = []
    seen: set[tuple[str, str, str]] = set()
    for rel in relationships:
        source_id = resolved.get(rel.source)
        if source_id is None:
            logger.warning("Skipping %s edge: unresolved source %r", rel.type, rel.source)
            stats.add_dropped_edge_reason(DROP_UNRESOLVED_SOURCE)
            continue
        target_id = resolved.get(rel.target)
        if target_id is None:
            logger.warning("Skipping %s edge: unresolved target %r", rel.type, rel.target)
            stats.add_dropped_edge_reason(DROP_UNRESOLVED_TARGET)
            continue
        rel_type = sanitize_relationship_type(rel.type)
        key = (source_id, target_id, rel_type)
        if key in seen:
            stats.add_dropped_edge_reason(DROP_DUPLICATE)
            continue
        seen.add(key)
        edges.append(
            GraphEdge(
                source_id=source_id,
                target_id=target_id,
                relationship_type=rel_type,
                original_type=rel.type,
                description=rel.description,
                confidence=rel.confidence,
            )
        )
    stats.edges_deduped += len(edges)
    return edges


# ---------------------------------------------------------------------------
# Store operations
# ---------------------------------------------------------------------------

def get_neo4j_driver() -> Driver:
    """Connect to Neo4j using configuration from docker-compose.yml.

    Raises:
        ConnectionError: If unable to connect after retries.
    """
    logger.info("Connecting to Neo4j at %s...", NEO4J_URI)

    for attempt in range(NEO4J_CONNECTION_RETRIES):
        try:
            driver = GraphDatabase.driver(
                NEO4J_URI,
                auth=(NEO4J_USERNAME, NEO4J_PASSWORD),
            )
            driver.verify_connectivity()
            logger.info("Connected to Neo4j at %s", NEO4J_URI)
            return driver
        except Exception as e:
            logger.warning(
                "Connection attempt %d/%d failed: %s",
                attempt + 1, NEO4J_CONNECTION_RETRIES, e,
            )
            if attempt < NEO4J_CONNECTION_RETRIES - 1:
                time.sleep(NEO4J_CONNECTION_RETRY_DELAY)
            else:
                raise ConnectionError(
                    f"Failed to connect to Neo4j at {NEO4J_URI} "
                    f"after {NEO4J_CONNECTION_RETRIES} attempts"
                ) from e

    raise ConnectionError("Unexpected error in connection logic")


def clear_resource_graph(driver: Driver) -> int:
    """Delete every ``Resource`` node and its relationships.

    Raises:
        ImportFailedError: If the delete fails.
    """
    try:
        with driver.session() as session:
            record = session.run(
                f"""
                MATCH (r:{RESOURCE_LABEL})
                DETACH DELETE r
                RETURN count(r) AS deleted_count
                """
            ).single()
    except Exception as e:
        raise ImportFailedError(f"Failed to clear existing resource graph: {e}") from e
    deleted = record["deleted_count"] if record is not None else 0
    logger.info("Deleted %d existing %s nodes", deleted, RESOURCE_LABEL)
    return deleted


def write_nodes(
    driver: Driver,
    nodes: List[GraphNode],
    stats: MaterializationStats,
) -> List[GraphNode]:
    """Upsert nodes one by one; returns the nodes that were written."""
    written: List[GraphNode] = []
    with driver.session() as session:
        for node in nodes:
            try:
                session.run(
                    f"""
                    MERGE (r:{RESOURCE_LABEL} {{id: $id}})
                    SET r.terraformId = $terraform_id,
                        r.name = $name,
                        r.type = $type,
                        r.provider = $provider,
                        r.category = $category,
                        r.propertiesJson = $properties_json,
                        r.createdAt = coalesce(r.createdAt, datetime()),
                        r.lastUpdated = datetime()
                    RETURN r.id AS id
                    """,
                    **node.to_params(),
                )
            except Exception as e:
                logger.error("Failed to write node %s: %s", node.stable_id, e)
                stats.nodes_failed += 1
                continue
            stats.nodes_written += 1
            written.append(node)
    logger.info("Wrote %d nodes (%d failed)", stats.nodes_written, stats.nodes_failed)
    return written


def write_edges(
    driver: Driver,
    edges: List[GraphEdge],
    stats: MaterializationStats,
) -> None:
    with driver.session() as session:
        for edge in edges:
            try:
                record = session.run(
                    f"""
                    MATCH (s:{RESOURCE_LABEL} {{id: $source_id}})
                    MATCH (t:{RESOURCE_LABEL} {{id: $target_id}})
                    MERGE (s)-[r:`{edge.relationship_type}`]->(t)
                    SET r.description = $description,
                        r.confidence = $confidence,
                        r.originalType = $original_type,
                        r.lastUpdated = datetime()
                    RETURN count(r) AS count
                    """,
                    source_id=edge.source_id,
                    target_id=edge.target_id,
                    description=edge.description,
                    confidence=edge.confidence,
                    original_type=edge.original_type,
                ).single()
            except Exception as e:
                logger.error(
                    "Failed to write %s edge %s -> %s: %s",
                    edge.relationship_type, edge.source_id, edge.target_id, e,
                )
                stats.edges_failed += 1
                continue
            if record is None or not record["count"]:
                logger.warning(
                    "Edge %s -> %s matched no nodes", edge.source_id, edge.target_id
                )
                stats.edges_failed += 1
                continue
            stats.edges_written += 1
    logger.info("Wrote %d edges (%d failed)", stats.edges_written, stats.edges_failed)


def ensure_indexes(driver: Driver, stats: MaterializationStats) -> None:
    """Create lookup indexes; a failure is only a warning."""
    with driver.session() as session:
        for field_name in INDEXED_FIELDS:
            idx_name = f"resource_{field_name.lower()}_idx"
            try:
                session.run(
                    f"""
                    CREATE INDEX {idx_name} IF NOT EXISTS
                    FOR (r:{RESOURCE_LABEL}) ON (r.{field_name})
                    """
                )
            except Exception as e:
                logger.warning("Could not create index %s: %s", idx_name, e)
                stats.index_failures += 1
                continue
            stats.indexes_created += 1
            logger.debug("Created index: %s", idx_name)


def materialize_graph(analysis: AnalysisResult, driver: Driver) -> MaterializationStats:
    """Replace the stored graph with the analyzed resources and relationships.

    Raises:
        ImportFailedError: If the existing graph cannot be cleared.
    """
    stats = MaterializationStats(mode="replace")
    stats.nodes_cleared = clear_resource_graph(driver)

    nodes = build_graph_nodes(analysis.resources, stats)
    written = write_nodes(driver, nodes, stats)

    catalog = InMemoryNodeCatalog(written)
    edges = build_graph_edges(analysis.relationships, catalog, stats)
    write_edges(driver, edges, stats)

    ensure_indexes(driver, stats)
    logger.info("Graph materialization complete: %s", stats)
    return stats


def merge_graph(analysis: AnalysisResult, driver: Driver) -> MaterializationStats:
    """Upsert analyzed resources into the stored graph without deleting."""
    stats = MaterializationStats(mode="incremental")

    nodes = build_graph_nodes(analysis.resources, stats)
    write_nodes(driver, nodes, stats)

    catalog = Neo4jNodeCatalog(driver)
    edges = build_graph_edges(analysis.relationships, catalog, stats)
    write_edges(driver, edges, stats)

    ensure_indexes(driver, stats)
    logger.info("Graph merge complete: %s", stats)
    return stats
