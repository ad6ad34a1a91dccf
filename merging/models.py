"""
Data models for logical grouping and the assembled analysis document.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from extraction.models import DependencyMap


@dataclass
class LogicalGroup:
    """A named bucket of resources sharing a provider and a category."""

    name: str
    description: str
    provider: str
    category: str
    resource_ids: List[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.resource_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "provider": self.provider,
            "category": self.category,
            "resource_ids": list(self.resource_ids),
        }


@dataclass
class LogicalGroups:
    """Ordered partition of the declared resources into logical groups."""

    groups: List[LogicalGroup] = field(default_factory=list)

    def __iter__(self) -> Iterator[LogicalGroup]:
        return iter(self.groups)

    def __len__(self) -> int:
        return len(self.groups)

    def names(self) -> List[str]:
        return [group.name for group in self.groups]

    def get(self, name: str) -> Optional[LogicalGroup]:
        for group in self.groups:
            if group.name == name:
                return group
        return None

    def group_of(self, resource_id: str) -> Optional[LogicalGroup]:
        for group in self.groups:
            if resource_id in group.resource_ids:
                return group
        return None

    @property
    def total_resources(self) -> int:
        return sum(len(group) for group in self.groups)

    def providers(self) -> List[str]:
        seen: Dict[str, None] = {}
        for group in self.groups:
            if group.provider:
                seen.setdefault(group.provider, None)
        return list(seen)

    def to_dict(self) -> Dict[str, Any]:
        return {"groups": [group.to_dict() for group in self.groups]}


@dataclass
class ContextualizedDocument:
    """Overview, banner-wrapped files and per-resource annotations.

    ``annotated_files``, ``file_comments`` and ``file_hints`` are keyed by
    relative file path.
    """

    overview: str
    annotated_files: Dict[str, str]
    file_names_by_path: Dict[str, str]
    cross_reference_comments: Dict[str, List[str]]
    relationship_hints: Dict[str, List[str]]
    file_comments: Dict[str, List[str]]
    file_hints: Dict[str, List[str]]
    logical_groups: LogicalGroups
    dependency_map: DependencyMap
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class FormattedDocument:
    """Final merged text handed to the semantic analyzer."""

    text: str
    file_names: List[str]  # relative paths, document order
    total_resources: int
    providers: List[str]
    logical_groups: LogicalGroups
    dependency_map: DependencyMap
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def content_length(self) -> int:
        return len(self.text)

    @property
    def truncated(self) -> bool:
        return bool(self.metadata.get("truncated", False))

    @property
    def fallback_mode(self) -> bool:
        return bool(self.metadata.get("fallback_mode", False))

    def is_ready_for_analysis(self) -> bool:
        return bool(self.text.strip()) and bool(self.file_names)

    def summary(self) -> str:
        return (
            f"Merged {len(self.file_names)} files with {self.total_resources} resources "
            f"from providers: {', '.join(self.providers) or 'none'} "
            f"({self.content_length} characters, {len(self.logical_groups)} groups"
            f"{', truncated' if self.truncated else ''}"
            f"{', fallback' if self.fallback_mode else ''})"
        )
