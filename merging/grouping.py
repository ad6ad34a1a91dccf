"""
Logical grouping of declared resources by provider and category.

Every resource lands in exactly one group. Group order is deterministic:
priority providers first, then the fixed category order, then a stable
reorder that floats network and security groups to the front.
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from core.identifiers import provider_prefix
from merging.config import (
    CATEGORY_DESCRIPTIONS,
    CATEGORY_ORDER,
    DEFAULT_CATEGORY_DESCRIPTION,
    LEADING_GROUP_KEYWORDS,
    MISC_GROUP_NAME,
    OTHER_CATEGORY,
    PRIORITY_PROVIDERS,
    PROVIDER_DISPLAY_NAMES,
    RESOURCE_CATEGORIES,
)
from merging.models import LogicalGroup, LogicalGroups

logger = logging.getLogger(__name__)


def categorize_resource_type(resource_type: str) -> str:
    """Category of a resource type, ``Other`` when no pattern matches."""
    for category, patterns in RESOURCE_CATEGORIES:
        for pattern in patterns:
            if resource_type == pattern or resource_type.startswith(pattern + "_"):
                return category
    return OTHER_CATEGORY


def provider_sort_key(provider: str) -> Tuple[int, str]:
    if provider in PRIORITY_PROVIDERS:
        return (PRIORITY_PROVIDERS.index(provider), "")
    return (len(PRIORITY_PROVIDERS), provider)


def group_name(provider: str, category: str) -> str:
    display = PROVIDER_DISPLAY_NAMES.get(provider, provider.capitalize())
    return f"{display} - {category.replace('_', ' ')}"


def group_description(provider: str, category: str, count: int) -> str:
    display = PROVIDER_DISPLAY_NAMES.get(provider, provider)
    description = CATEGORY_DESCRIPTIONS.get(category, DEFAULT_CATEGORY_DESCRIPTION)
    return f"{display} {description} ({count} resources)"


def _leading_rank(name: str) -> int:
    lowered = name.lower()
    for rank, keyword in enumerate(LEADING_GROUP_KEYWORDS):
        if keyword in lowered:
            return rank
    return len(LEADING_GROUP_KEYWORDS)


def group_resources(
    resource_types: Mapping[str, str],
    resource_ids: Optional[Sequence[str]] = None,
) -> LogicalGroups:
    """Partition resources into ordered logical groups.

    Args:
        resource_types: Resource id -> Terraform type, in declaration order.
        resource_ids: Full resource id list in declaration order. Ids absent
            from ``resource_types`` (or with an empty type) go to the
            trailing Miscellaneous group. Defaults to the mapping's keys.
    """
    ordered_ids = list(resource_ids) if resource_ids is not None else list(resource_types)
    position = {rid: index for index, rid in enumerate(ordered_ids)}

    buckets: Dict[str, Dict[str, List[str]]] = {}
    unknown: List[str] = []
    for rid in ordered_ids:
        rtype = resource_types.get(rid, "")
        if not rtype:
            unknown.append(rid)
            continue
        provider = provider_prefix(rtype)
        category = categorize_resource_type(rtype)
        buckets.setdefault(provider, {}).setdefault(category, []).append(rid)

    groups: List[LogicalGroup] = []
    by_name: Dict[str, LogicalGroup] = {}
    for provider in sorted(buckets, key=provider_sort_key):
        categories = buckets[provider]
        for category in CATEGORY_ORDER:
            members = categories.get(category)
            if not members:
                continue
            name = group_name(provider, category)
            existing = by_name.get(name)
            if existing is not None:
                existing.resource_ids.extend(members)
                existing.resource_ids.sort(key=position.__getitem__)
                existing.description = group_description(
                    existing.provider, existing.category, len(existing.resource_ids)
                )
                continue
            group = LogicalGroup(
                name=name,
                description=group_description(provider, category, len(members)),
                provider=provider,
                category=category,
                resource_ids=list(members),
            )
            by_name[name] = group
            groups.append(group)

    if unknown:
        groups.append(
            LogicalGroup(
                name=MISC_GROUP_NAME,
                description=(
                    "Miscellaneous resources that don't fit into other categories "
                    f"({len(unknown)} resources)"
                ),
                provider="",
                category=OTHER_CATEGORY,
                resource_ids=unknown,
            )
        )

    groups.sort(key=lambda group: _leading_rank(group.name))
    logger.debug(
        "Grouped %d resources into %d logical groups", len(ordered_ids), len(groups)
    )
    return LogicalGroups(groups=groups)
