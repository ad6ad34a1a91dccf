"""Core shared contracts and utilities."""

from core.identifiers import (
    COMPOSITE_SEPARATOR,
    make_data_source_id,
    make_module_id,
    make_resource_id,
    provider_prefix,
    split_composite_id,
    synthetic_resource_id,
)
from core.structured_logging import (
    configure_structured_logging,
    get_import_id,
    get_stage,
    get_stage_durations,
    set_import_id,
    stage_scope,
)
from core.startup_config import (
    ConfigValidationError,
    Neo4jConnectionSettings,
    load_docker_compose_config,
    resolve_neo4j_auth,
    resolve_neo4j_connection,
    resolve_service_port,
    resolve_strict_config_validation,
    validate_startup_config,
)
from core.run_artifacts import write_import_report, write_text_artifact

__all__ = [
    "COMPOSITE_SEPARATOR",
    "make_data_source_id",
    "make_module_id",
    "make_resource_id",
    "provider_prefix",
    "split_composite_id",
    "synthetic_resource_id",
    "configure_structured_logging",
    "get_import_id",
    "get_stage",
    "get_stage_durations",
    "set_import_id",
    "stage_scope",
    "ConfigValidationError",
    "Neo4jConnectionSettings",
    "load_docker_compose_config",
    "resolve_neo4j_auth",
    "resolve_neo4j_connection",
    "resolve_service_port",
    "resolve_strict_config_validation",
    "validate_startup_config",
    "write_import_report",
    "write_text_artifact",
]
