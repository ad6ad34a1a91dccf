"""
Relationship endpoint resolution against a catalog of resource nodes.

A relationship descriptor names its endpoints loosely (a Terraform address,
a node id, or a module reference). Resolvers are tried in order and the
first hit wins; an endpoint nothing resolves causes the edge to be dropped.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from neo4j import Driver, Query

from graphstore.config import RESOURCE_LABEL

logger = logging.getLogger(__name__)

DEFAULT_QUERY_TIMEOUT_S = 10.0
MODULE_PREFIX = "module."


class NodeCatalog(Protocol):
    """Lookup surface over nodes an edge may attach to."""

    def find_by_terraform_id(self, terraform_id: str) -> Optional[str]:
        ...

    def find_by_id(self, node_id: str) -> Optional[str]:
        ...

    def find_by_type_and_name(self, resource_type: str, name: str) -> Optional[str]:
        ...

    def find_by_name_fragment(self, fragment: str) -> Optional[str]:
        ...


class InMemoryNodeCatalog:
    """Catalog over the nodes written in the current run (insertion order)."""

    def __init__(self, nodes: Iterable = ()):
        self._nodes: List = []
        for node in nodes:
            self.add(node)

    def add(self, node) -> None:
        self._nodes.append(node)

    def __len__(self) -> int:
        return len(self._nodes)

    def find_by_terraform_id(self, terraform_id: str) -> Optional[str]:
        for node in self._nodes:
            if node.terraform_id == terraform_id:
                return node.stable_id
        return None

    def find_by_id(self, node_id: str) -> Optional[str]:
        for node in self._nodes:
            if node.stable_id == node_id:
                return node.stable_id
        return None

    def find_by_type_and_name(self, resource_type: str, name: str) -> Optional[str]:
        for node in self._nodes:
            if node.type == resource_type and node.name == name:
                return node.stable_id
        return None

    def find_by_name_fragment(self, fragment: str) -> Optional[str]:
        for node in self._nodes:
            if fragment in node.type or fragment in node.name:
                return node.stable_id
        return None


class Neo4jNodeCatalog:
    """Catalog over every ``Resource`` node already in the store.

    Matches are deterministic: ``ORDER BY r.id`` with ``LIMIT 1``.
    """

    def __init__(self, driver: Driver, query_timeout_s: float = DEFAULT_QUERY_TIMEOUT_S):
        self.driver = driver
        self.query_timeout_s = query_timeout_s

    def _first_id(self, predicate: str, **params) -> Optional[str]:
        query = (
            f"MATCH (r:{RESOURCE_LABEL}) WHERE {predicate} "
            "RETURN r.id AS id ORDER BY r.id ASC LIMIT 1"
        )
        with self.driver.session() as session:
            record = session.run(Query(query, timeout=self.query_timeout_s), **params).single()
        if record is None:
            return None
        return record["id"]

    def find_by_terraform_id(self, terraform_id: str) -> Optional[str]:
        return self._first_id("r.terraformId = $value", value=terraform_id)

    def find_by_id(self, node_id: str) -> Optional[str]:
        return self._first_id("r.id = $value", value=node_id)

    def find_by_type_and_name(self, resource_type: str, name: str) -> Optional[str]:
        return self._first_id(
            "r.type = $type AND r.name = $name", type=resource_type, name=name
        )

    def find_by_name_fragment(self, fragment: str) -> Optional[str]:
        return self._first_id(
            "r.type CONTAINS $value OR r.name CONTAINS $value", value=fragment
        )


# ---------------------------------------------------------------------------
# Resolver chain
# ---------------------------------------------------------------------------

Resolver = Callable[[NodeCatalog, str], Optional[str]]


def _by_terraform_id(catalog: NodeCatalog, reference: str) -> Optional[str]:
    return catalog.find_by_terraform_id(reference)


def _by_id(catalog: NodeCatalog, reference: str) -> Optional[str]:
    return catalog.find_by_id(reference)


def _by_type_and_name(catalog: NodeCatalog, reference: str) -> Optional[str]:
    resource_type, sep, name = reference.partition(".")
    if not sep or not resource_type or not name:
        return None
    return catalog.find_by_type_and_name(resource_type, name)


def _by_module_name(catalog: NodeCatalog, reference: str) -> Optional[str]:
    if not reference.startswith(MODULE_PREFIX):
        return None
    module_name = reference[len(MODULE_PREFIX):].split(".", 1)[0]
    if not module_name:
        return None
    return catalog.find_by_name_fragment(module_name)


ENDPOINT_RESOLVERS: Tuple[Resolver, ...] = (
    _by_terraform_id,
    _by_id,
    _by_type_and_name,
    _by_module_name,
)


def resolve_endpoint(
    catalog: NodeCatalog,
    reference: str,
    resolvers: Tuple[Resolver, ...] = ENDPOINT_RESOLVERS,
) -> Optional[str]:
    """Node id for ``reference``, or ``None`` when no resolver matches."""
    reference = reference.strip()
    if not reference:
        return None
    for resolver in resolvers:
        node_id = resolver(catalog, reference)
        if node_id is not None:
            return node_id
    return None


def resolve_endpoints(
    catalog: NodeCatalog,
    references: Iterable[str],
) -> Dict[str, Optional[str]]:
    """Resolve many references, memoizing repeats."""
    resolved: Dict[str, Optional[str]] = {}
    for reference in references:
        if reference not in resolved:
            resolved[reference] = resolve_endpoint(catalog, reference)
    return resolved
