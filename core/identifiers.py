"""Composite identifier contract shared by extraction, merging and graphstore.

A declared resource is named ``"{type}.{name}"``; data sources carry a
``data.`` prefix and modules a ``module.`` prefix.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

COMPOSITE_SEPARATOR = "."
DATA_PREFIX = "data"
MODULE_PREFIX = "module"
UNKNOWN_PROVIDER = "unknown"


def make_resource_id(resource_type: str, name: str) -> str:
    """Build the composite id of a resource.

    Raises:
        ValueError: If either part is empty.
    """
    if not resource_type or not name:
        raise ValueError(
            f"Composite id needs non-empty type and name (got {resource_type!r}, {name!r})"
        )
    return f"{resource_type}{COMPOSITE_SEPARATOR}{name}"


def make_data_source_id(data_type: str, name: str) -> str:
    return f"{DATA_PREFIX}{COMPOSITE_SEPARATOR}{make_resource_id(data_type, name)}"


def make_module_id(name: str) -> str:
    return f"{MODULE_PREFIX}{COMPOSITE_SEPARATOR}{name}"


def split_composite_id(composite_id: str) -> tuple[str, str]:
    """Split on the first separator into ``(type, name)``.

    Raises:
        ValueError: If the id has no separator or an empty half.
    """
    head, sep, tail = composite_id.partition(COMPOSITE_SEPARATOR)
    if not sep or not head or not tail:
        raise ValueError(f"Not a composite id: {composite_id!r}")
    return head, tail


def provider_prefix(resource_type: str) -> str:
    """Provider of a resource type: the lower-cased prefix before the first ``_``."""
    if "_" not in resource_type:
        return UNKNOWN_PROVIDER
    return resource_type.split("_", 1)[0].lower() or UNKNOWN_PROVIDER


def synthetic_resource_id(payload: dict[str, Any]) -> str:
    """Deterministic fallback id derived from a descriptor payload.

    MD5 is used for stable hashing only, not for security.
    """
    canonical = json.dumps(payload, sort_keys=True, default=str)
    digest = hashlib.md5(canonical.encode("utf-8")).hexdigest()[:12]
    return f"resource_{digest}"
