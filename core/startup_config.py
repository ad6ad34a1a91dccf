"""Startup configuration validation helpers.

Parses the docker-compose file that describes the Neo4j target, resolves
connection settings (with environment overrides) and validates numeric
environment knobs. Every helper has a strict mode that raises
``ConfigValidationError`` and a lenient mode that logs and falls back.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

NEO4J_SERVICE_NAME = "neo4j"
NEO4J_BOLT_PORT = 7687


class ConfigValidationError(RuntimeError):
    """Raised when strict startup validation fails."""


@dataclass(frozen=True)
class Neo4jConnectionSettings:
    uri: str
    username: str
    password: str
    source: str = "docker-compose"


def _fail(msg: str, strict: bool, fallback: str = "using defaults") -> None:
    """Raise in strict mode, otherwise log a warning and let caller fall back."""
    if strict:
        raise ConfigValidationError(msg)
    logger.warning("%s; %s", msg, fallback)


def env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def resolve_strict_config_validation(default: bool = False) -> bool:
    """Resolve strict validation mode from ``STRICT_CONFIG_VALIDATION`` env."""
    return env_flag("STRICT_CONFIG_VALIDATION", default=default)


def env_int(name: str, default: int, minimum: int | None = None, strict: bool = False) -> int:
    """Read an integer env var, enforcing an optional lower bound."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        _fail(f"{name} must be an integer, got {raw!r}", strict, f"using default {default}")
        return default
    if minimum is not None and value < minimum:
        _fail(f"{name} must be >= {minimum}, got {value}", strict, f"using default {default}")
        return default
    return value


def env_float(
    name: str,
    default: float,
    minimum: float | None = None,
    maximum: float | None = None,
    strict: bool = False,
) -> float:
    """Read a float env var, enforcing optional bounds."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError:
        _fail(f"{name} must be a number, got {raw!r}", strict, f"using default {default}")
        return default
    if (minimum is not None and value < minimum) or (maximum is not None and value > maximum):
        _fail(
            f"{name}={value} outside [{minimum}, {maximum}]",
            strict,
            f"using default {default}",
        )
        return default
    return value


def load_docker_compose_config(
    compose_path: str,
    strict: bool = False,
) -> dict[str, Any]:
    """Load and parse docker-compose config.

    In non-strict mode this returns an empty dict on parse/read failures.
    In strict mode this raises ``ConfigValidationError``.
    """
    try:
        with open(compose_path, "r", encoding="utf-8") as f:
            payload = yaml.safe_load(f)
    except FileNotFoundError as exc:
        if strict:
            raise ConfigValidationError(
                f"Docker compose file not found: {compose_path}"
            ) from exc
        logger.warning("Docker compose file not found: %s; continuing with defaults", compose_path)
        return {}
    except yaml.YAMLError as exc:
        if strict:
            raise ConfigValidationError(
                f"Failed to parse docker compose YAML at {compose_path}: {exc}"
            ) from exc
        logger.warning("Invalid docker compose YAML at %s: %s; continuing with defaults", compose_path, exc)
        return {}

    if payload is None:
        _fail(f"Docker compose file is empty: {compose_path}", strict, "continuing with defaults")
        return {}
    if not isinstance(payload, dict):
        _fail(
            f"Unexpected docker compose payload type: {type(payload).__name__}",
            strict,
            "continuing with defaults",
        )
        return {}
    return payload


def get_service_config(
    compose_data: dict[str, Any],
    service_name: str,
    strict: bool = False,
) -> dict[str, Any]:
    """Fetch a single service block from a compose payload."""
    services = compose_data.get("services")
    if not isinstance(services, dict):
        _fail("docker-compose missing 'services' section", strict)
        return {}
    service = services.get(service_name)
    if not isinstance(service, dict):
        _fail(f"docker-compose missing service '{service_name}'", strict)
        return {}
    return service


def _parse_port_mapping(mapping: Any) -> Optional[tuple[int, int]]:
    """Parse ``[ip:]host:container[/proto]`` into (host, container)."""
    text = str(mapping).strip().strip('"').strip("'")
    if not text:
        return None
    text = text.split("/", 1)[0]
    parts = text.split(":")
    try:
        if len(parts) == 1:
            port = int(parts[0])
            return port, port
        return int(parts[-2]), int(parts[-1])
    except ValueError:
        return None


def resolve_service_port(
    compose_data: dict[str, Any],
    service_name: str,
    container_port: int,
    default_port: int,
    strict: bool = False,
) -> int:
    """Resolve the mapped host port for ``service_name:container_port``."""
    service = get_service_config(compose_data, service_name, strict=strict)
    ports = service.get("ports", [])
    if not isinstance(ports, list):
        _fail(
            f"Service '{service_name}' has invalid 'ports' section",
            strict,
            f"using default {default_port}",
        )
        return default_port

    for mapping in ports:
        parsed = _parse_port_mapping(mapping)
        if parsed is not None and parsed[1] == container_port:
            return parsed[0]

    _fail(
        f"Service '{service_name}' has no mapping for container port {container_port}",
        strict,
        f"using default {default_port}",
    )
    return default_port


def _environment_entries(service: dict[str, Any], strict: bool) -> Optional[list[str]]:
    env_items = service.get("environment", [])
    if isinstance(env_items, list):
        return [str(item) for item in env_items]
    if isinstance(env_items, dict):
        return [f"{k}={v}" for k, v in env_items.items()]
    if env_items:
        _fail("neo4j.environment must be list or dict", strict, "using default auth")
        return None
    return []


def resolve_neo4j_auth(
    compose_data: dict[str, Any],
    default_username: str = "neo4j",
    default_password: str = "testpassword123",
    strict: bool = False,
) -> tuple[str, str]:
    """Resolve Neo4j auth from the compose ``NEO4J_AUTH`` setting."""
    defaults = (default_username, default_password)
    service = get_service_config(compose_data, NEO4J_SERVICE_NAME, strict=strict)
    entries = _environment_entries(service, strict)
    if entries is None:
        return defaults

    for entry in entries:
        if not entry.startswith("NEO4J_AUTH="):
            continue
        raw = entry.split("=", 1)[1]
        if "/" not in raw:
            _fail("NEO4J_AUTH must be '<username>/<password>'", strict, "using default auth")
            return defaults
        username, password = raw.split("/", 1)
        if not username or not password:
            _fail("NEO4J_AUTH contains empty username or password", strict, "using default auth")
            return defaults
        return username, password

    _fail("NEO4J_AUTH not found in neo4j service environment", strict, "using default auth")
    return defaults


def resolve_neo4j_connection(
    compose_path: str,
    strict: bool = False,
) -> Neo4jConnectionSettings:
    """Resolve Neo4j bolt URI and credentials.

    The compose file supplies the defaults; ``NEO4J_URI``, ``NEO4J_USERNAME``
    and ``NEO4J_PASSWORD`` override individual values when set.
    """
    compose = load_docker_compose_config(compose_path, strict=strict)
    if compose:
        port = resolve_service_port(
            compose_data=compose,
            service_name=NEO4J_SERVICE_NAME,
            container_port=NEO4J_BOLT_PORT,
            default_port=NEO4J_BOLT_PORT,
            strict=strict,
        )
        username, password = resolve_neo4j_auth(compose_data=compose, strict=strict)
    else:
        port = NEO4J_BOLT_PORT
        username, password = "neo4j", "testpassword123"

    uri = f"bolt://127.0.0.1:{port}"
    source = "docker-compose" if compose else "defaults"
    overrides = {
        "uri": os.getenv("NEO4J_URI", "").strip(),
        "username": os.getenv("NEO4J_USERNAME", "").strip(),
        "password": os.getenv("NEO4J_PASSWORD", ""),
    }
    if any(overrides.values()):
        source = "environment"
    return Neo4jConnectionSettings(
        uri=overrides["uri"] or uri,
        username=overrides["username"] or username,
        password=overrides["password"] or password,
        source=source,
    )


def validate_startup_config(
    compose_path: str,
    required_services: tuple[str, ...],
    strict: bool = False,
) -> dict[str, Any]:
    """Validate startup configuration and return a summary."""
    compose_data = load_docker_compose_config(compose_path, strict=strict)
    services = compose_data.get("services")
    if not isinstance(services, dict):
        services = {}

    missing = [service for service in required_services if service not in services]
    if missing and strict:
        raise ConfigValidationError(
            "Missing required services in docker-compose: " + ", ".join(missing)
        )
    if missing:
        logger.warning(
            "Missing services (%s) in docker-compose; defaults may be used",
            ", ".join(missing),
        )

    return {
        "compose_path": compose_path,
        "strict": strict,
        "required_services": list(required_services),
        "missing_services": missing,
    }
