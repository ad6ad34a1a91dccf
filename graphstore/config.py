"""
Configuration constants for the Neo4j resource graph.

Connection settings are parsed from docker-compose.yml (with environment
overrides) so network configuration is never hardcoded.
"""

import logging

from core.startup_config import (
    resolve_neo4j_connection,
    resolve_strict_config_validation,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Infrastructure paths
# ---------------------------------------------------------------------------
DOCKER_COMPOSE_PATH: str = "infra_context/docker-compose.yml"

# ---------------------------------------------------------------------------
# Neo4j configuration (parsed from docker-compose.yml)
# ---------------------------------------------------------------------------
STRICT_CONFIG_VALIDATION: bool = resolve_strict_config_validation(default=False)

NEO4J_SETTINGS = resolve_neo4j_connection(
    DOCKER_COMPOSE_PATH,
    strict=STRICT_CONFIG_VALIDATION,
)
NEO4J_URI: str = NEO4J_SETTINGS.uri
NEO4J_USERNAME: str = NEO4J_SETTINGS.username
NEO4J_PASSWORD: str = NEO4J_SETTINGS.password
logger.debug("Neo4j config: uri=%s, username=%s (%s)", NEO4J_URI, NEO4J_USERNAME, NEO4J_SETTINGS.source)

NEO4J_CONNECTION_RETRIES: int = 3
NEO4J_CONNECTION_RETRY_DELAY: float = 2.0  # seconds

# ---------------------------------------------------------------------------
# Graph schema
# ---------------------------------------------------------------------------
RESOURCE_LABEL: str = "Resource"
DEFAULT_RELATIONSHIP_TYPE: str = "RELATED_TO"
INDEXED_FIELDS: tuple[str, ...] = (
    "id",
    "terraformId",
    "type",
    "provider",
    "category",
    "name",
)

# Ordered: the first category whose keyword occurs in the lower-cased
# resource type wins.
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("compute", ("instance", "vm", "compute", "lambda", "eks", "cluster")),
    ("storage", ("bucket", "disk", "volume", "efs", "storage")),
    ("database", ("db", "database", "sql", "rds")),
    ("network", ("vpc", "subnet", "gateway", "lb", "security_group", "route")),
    ("identity", ("iam", "role", "policy", "user")),
    ("application", ("helm", "kubernetes", "deployment", "service")),
)
DEFAULT_CATEGORY: str = "other"

# Edge drop reasons reported in MaterializationStats.
DROP_UNRESOLVED_SOURCE: str = "unresolved_source"
DROP_UNRESOLVED_TARGET: str = "unresolved_target"
DROP_DUPLICATE: str = "duplicate"
