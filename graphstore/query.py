"""
Read-side queries over the materialized resource graph.
"""

import logging
from typing import Any, Optional

from neo4j import Driver, Query

from graphstore.config import RESOURCE_LABEL

logger = logging.getLogger(__name__)

DEFAULT_QUERY_TIMEOUT_S = 10.0
DEFAULT_NEIGHBOR_LIMIT = 200


def _grouped_counts(session, query: str, timeout: float) -> dict[str, int]:
    return {
        (rec["key"] if rec["key"] is not None else "unknown"): rec["count"]
        for rec in session.run(Query(query, timeout=timeout))
    }


def get_graph_statistics(
    driver: Driver,
    query_timeout_s: float = DEFAULT_QUERY_TIMEOUT_S,
) -> dict[str, Any]:
    """Node and relationship totals with per-category/provider/type breakdowns."""
    with driver.session() as session:
        node_record = session.run(
            Query(
                f"MATCH (r:{RESOURCE_LABEL}) RETURN count(r) AS count",
                timeout=query_timeout_s,
            )
        ).single()
        rel_record = session.run(
            Query(
                f"MATCH (:{RESOURCE_LABEL})-[rel]->(:{RESOURCE_LABEL}) RETURN count(rel) AS count",
                timeout=query_timeout_s,
            )
        ).single()
        by_category = _grouped_counts(
            session,
            f"""
            MATCH (r:{RESOURCE_LABEL})
            RETURN r.category AS key, count(r) AS count
            ORDER BY count DESC, key ASC
            """,
            query_timeout_s,
        )
        by_provider = _grouped_counts(
            session,
            f"""
            MATCH (r:{RESOURCE_LABEL})
            RETURN r.provider AS key, count(r) AS count
            ORDER BY count DESC, key ASC
            """,
            query_timeout_s,
        )
        by_type = _grouped_counts(
            session,
            f"""
            MATCH (:{RESOURCE_LABEL})-[rel]->(:{RESOURCE_LABEL})
            RETURN type(rel) AS key, count(rel) AS count
            ORDER BY count DESC, key ASC
            """,
            query_timeout_s,
        )

    return {
        "total_nodes": node_record["count"] if node_record else 0,
        "total_relationships": rel_record["count"] if rel_record else 0,
        "nodes_by_category": by_category,
        "nodes_by_provider": by_provider,
        "relationships_by_type": by_type,
    }


def get_resource_count(
    driver: Driver,
    query_timeout_s: float = DEFAULT_QUERY_TIMEOUT_S,
) -> int:
    with driver.session() as session:
        record = session.run(
            Query(
                f"MATCH (r:{RESOURCE_LABEL}) RETURN count(r) AS count",
                timeout=query_timeout_s,
            )
        ).single()
    return record["count"] if record else 0


def resource_exists(
    driver: Driver,
    resource_id: str,
    query_timeout_s: float = DEFAULT_QUERY_TIMEOUT_S,
) -> bool:
    with driver.session() as session:
        record = session.run(
            Query(
                f"MATCH (r:{RESOURCE_LABEL} {{id: $id}}) RETURN count(r) > 0 AS found",
                timeout=query_timeout_s,
            ),
            id=resource_id,
        ).single()
    return bool(record and record["found"])


def get_resource_neighbors(
    driver: Optional[Driver],
    resource_id: str,
    max_results: int = DEFAULT_NEIGHBOR_LIMIT,
    query_timeout_s: float = DEFAULT_QUERY_TIMEOUT_S,
) -> dict[str, list[dict[str, Any]]]:
    """Immediate (1-hop) neighbors of a resource.

    Returns:
        Dict with keys "inbound" and "outbound", each a list of neighbor dicts
        with "id", "type", "relationship" and "confidence" fields.
    """
    if max_results < 1:
        raise ValueError("max_results must be >= 1")
    if driver is None:
        raise ValueError("driver is required")

    inbound_query = f"""
    MATCH (src:{RESOURCE_LABEL})-[rel]->(r:{RESOURCE_LABEL} {{id: $id}})
    RETURN src.id AS id, src.type AS type, type(rel) AS relationship,
           rel.confidence AS confidence
    ORDER BY relationship ASC, id ASC
    LIMIT $limit
    """
    outbound_query = f"""
    MATCH (r:{RESOURCE_LABEL} {{id: $id}})-[rel]->(tgt:{RESOURCE_LABEL})
    RETURN tgt.id AS id, tgt.type AS type, type(rel) AS relationship,
           rel.confidence AS confidence
    ORDER BY relationship ASC, id ASC
    LIMIT $limit
    """

    def _rows(session, query: str) -> list[dict[str, Any]]:
        return [
            {
                "id": rec["id"],
                "type": rec["type"],
                "relationship": rec["relationship"],
                "confidence": rec["confidence"],
            }
            for rec in session.run(
                Query(query, timeout=query_timeout_s),
                id=resource_id,
                limit=max_results,
            )
        ]

    with driver.session() as session:
        inbound = _rows(session, inbound_query)
        outbound = _rows(session, outbound_query)

    logger.debug(
        "Neighbors of %s: %d inbound, %d outbound", resource_id, len(inbound), len(outbound)
    )
    return {"inbound": inbound, "outbound": outbound}
