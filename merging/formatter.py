"""
Final document assembly and size bounding.

The formatter lays the contextualized document out in a fixed section order
and, when the result exceeds ``max_length``, keeps whole sections from the
front and appends a truncation notice. The output never exceeds the bound.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from core.identifiers import UNKNOWN_PROVIDER
from merging.config import (
    MAIN_SEPARATOR,
    MAX_DOCUMENT_LENGTH,
    MIN_DOCUMENT_LENGTH,
    PRIMARY_FILE_NAME,
    SECTION_SEPARATOR,
    SUMMARY_MAX_MODULE_ENTRIES,
    SUMMARY_MAX_RESOURCES,
)
from merging.models import ContextualizedDocument, FormattedDocument

logger = logging.getLogger(__name__)

_EXCESS_BLANK_LINES = re.compile(r"\n{3,}")
_PATH_SEPARATORS = re.compile(r"[\\/]")

ANALYSIS_INSTRUCTIONS = """\
## Analysis Requirements

1. Identify every resource block and report its type, name, provider and key properties.
2. Identify relationships between resources using the cross-reference analysis above.
3. Prefer explicit references (resource.name.attribute) over inferred links.
4. Use the logical groups and relationship hints to find implicit relationships.
5. Assign each relationship a confidence between 0.0 and 1.0.

## Expected Relationship Types

- DEPENDS_ON: resource requires another resource to exist
- PROVIDES_STORAGE_FOR: storage resource used by a compute resource
- DEPLOYED_ON: workload deployed onto a cluster or instance
- PROTECTED_BY: resource guarded by a security group, policy or key
- MANAGES: resource manages the lifecycle of another
- ROUTES_TO: network or load balancer traffic routing
- MOUNTS: file system or volume mounted by a resource

## Output Format

Respond with a single JSON object:

{
  "resources": [
    {"id": "type.name", "type": "type", "name": "name", "provider": "provider", "properties": {}}
  ],
  "relationships": [
    {"source": "type.name", "target": "type.name", "type": "DEPENDS_ON", "description": "...", "confidence": 0.9}
  ]
}
"""


def clean_content(text: str) -> str:
    """Normalize newlines, strip trailing whitespace, collapse blank runs."""
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    stripped = "\n".join(line.rstrip() for line in normalized.split("\n"))
    return _EXCESS_BLANK_LINES.sub("\n\n", stripped)


def _path_parts(path: str) -> List[str]:
    return [part for part in _PATH_SEPARATORS.split(path) if part]


def order_file_names(paths: Iterable[str], primary: str = PRIMARY_FILE_NAME) -> List[str]:
    """Primary file first, the rest in lexicographic order.

    ``paths`` are relative paths. The primary file is the shallowest path
    whose base name is ``primary``; nested copies sort with the rest.
    """
    paths = list(paths)
    candidates = [p for p in paths if (_path_parts(p) or [""])[-1] == primary]
    if not candidates:
        return sorted(paths)
    first = min(candidates, key=lambda p: (len(_path_parts(p)), p))
    return [first] + sorted(p for p in paths if p != first)


def _lines(*parts: str) -> str:
    return "\n".join(parts) + "\n"


class DocumentFormatter:
    """Lay out a ``ContextualizedDocument`` as one bounded text."""

    def __init__(self, max_length: Optional[int] = None):
        max_length = MAX_DOCUMENT_LENGTH if max_length is None else max_length
        if max_length < MIN_DOCUMENT_LENGTH:
            raise ValueError(
                f"max_length must be at least {MIN_DOCUMENT_LENGTH}, got {max_length}"
            )
        self.max_length = max_length

    # ------------------------------------------------------------------
    # Sections
    # ------------------------------------------------------------------

    def _header_section(self, document: ContextualizedDocument) -> str:
        return _lines(
            MAIN_SEPARATOR,
            "# TERRAFORM INFRASTRUCTURE ANALYSIS",
            MAIN_SEPARATOR,
            "",
            document.overview,
        )

    def _organization_section(self, document: ContextualizedDocument) -> str:
        lines = [
            SECTION_SEPARATOR,
            "# LOGICAL RESOURCE ORGANIZATION",
            SECTION_SEPARATOR,
            "",
            "## Resource Groups by Category",
            "",
        ]
        for group in document.logical_groups:
            lines.append(f"### {group.name}")
            lines.append(f"**Description:** {group.description}")
            lines.append("**Resources:**")
            lines.extend(f"- {resource_id}" for resource_id in group.resource_ids)
            lines.append("")
        return _lines(*lines)

    def _dependency_section(self, document: ContextualizedDocument) -> str:
        dependency_map = document.dependency_map
        lines = [
            SECTION_SEPARATOR,
            "# DEPENDENCY ANALYSIS SUMMARY",
            SECTION_SEPARATOR,
            "",
            "## Key Resource Dependencies",
            "",
        ]
        ranked = sorted(
            dependency_map.resource_dependencies.items(),
            key=lambda item: len(dependency_map.all_dependencies_for(item[0])),
            reverse=True,
        )
        if ranked:
            for resource_id, deps in ranked[:SUMMARY_MAX_RESOURCES]:
                lines.append(f"- {resource_id} depends on: {', '.join(deps)}")
        else:
            lines.append("- No explicit resource dependencies detected")
        lines.extend(["", "## Module Dependencies", ""])
        module_items = list(dependency_map.module_references.items())
        if module_items:
            for resource_id, refs in module_items[:SUMMARY_MAX_MODULE_ENTRIES]:
                lines.append(f"- {resource_id} uses modules: {', '.join(refs)}")
        else:
            lines.append("- No module dependencies detected")
        lines.append("")
        return _lines(*lines)

    def _contents_header(self) -> str:
        return _lines(MAIN_SEPARATOR, "# TERRAFORM FILE CONTENTS", MAIN_SEPARATOR, "")

    def _file_section(self, document: ContextualizedDocument, path: str) -> str:
        lines = [SECTION_SEPARATOR, f"## FILE: {path}", SECTION_SEPARATOR, ""]
        comments = document.file_comments.get(path) or []
        if comments:
            lines.extend(["### Cross-Reference Analysis", "```"])
            lines.extend(comments)
            lines.extend(["```", ""])
        hints = document.file_hints.get(path) or []
        if hints:
            lines.extend(["### Relationship Analysis Hints", "```"])
            lines.extend(hints)
            lines.extend(["```", ""])
        lines.append("```hcl")
        lines.append(clean_content(document.annotated_files[path]).rstrip("\n"))
        lines.extend(["```", ""])
        return _lines(*lines)

    def _instructions_section(self) -> str:
        return _lines(
            MAIN_SEPARATOR,
            "# LLM ANALYSIS INSTRUCTIONS",
            MAIN_SEPARATOR,
            "",
            ANALYSIS_INSTRUCTIONS,
        )

    def build_sections(self, document: ContextualizedDocument) -> List[str]:
        sections = [
            self._header_section(document),
            self._organization_section(document),
            self._dependency_section(document),
            self._contents_header(),
        ]
        for path in order_file_names(document.annotated_files):
            sections.append(self._file_section(document, path))
        sections.append(self._instructions_section())
        return sections

    # ------------------------------------------------------------------
    # Size bounding
    # ------------------------------------------------------------------

    @staticmethod
    def truncation_notice(original_length: int, truncated_length: int) -> str:
        return _lines(
            "",
            SECTION_SEPARATOR,
            "# CONTENT TRUNCATED DUE TO LENGTH LIMITS",
            f"# Original length: {original_length} characters",
            f"# Truncated length: {truncated_length} characters",
            SECTION_SEPARATOR,
        )

    def bound(self, sections: List[str]) -> tuple[str, int, bool]:
        """Join sections, truncating at section boundaries when too long.

        Returns the text, the untruncated length and the truncation flag.
        """
        full = "".join(sections)
        if len(full) <= self.max_length:
            return full, len(full), False

        # The retained length never has more digits than max_length.
        reserve = len(self.truncation_notice(len(full), self.max_length))
        kept: List[str] = []
        kept_length = 0
        for section in sections:
            if kept_length + len(section) + reserve > self.max_length:
                break
            kept.append(section)
            kept_length += len(section)

        text = "".join(kept) + self.truncation_notice(len(full), kept_length)
        logger.warning(
            "Document truncated from %d to %d characters (%d of %d sections kept)",
            len(full), len(text), len(kept), len(sections),
        )
        return text, len(full), True

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def format(
        self,
        document: ContextualizedDocument,
        providers: Optional[Iterable[str]] = None,
    ) -> FormattedDocument:
        sections = self.build_sections(document)
        text, original_length, truncated = self.bound(sections)

        merged_providers: Dict[str, None] = {}
        for provider in list(document.logical_groups.providers()) + list(providers or ()):
            if provider and provider != UNKNOWN_PROVIDER:
                merged_providers.setdefault(provider, None)

        metadata: Dict[str, Any] = {
            "formatting_timestamp": datetime.now(timezone.utc).isoformat(),
            "original_length": original_length,
            "final_length": len(text),
            "truncated": truncated,
            "total_files": len(document.annotated_files),
            "total_resources": document.logical_groups.total_resources,
            "total_groups": len(document.logical_groups),
            "total_dependencies": document.dependency_map.total_dependencies,
            "fallback_mode": False,
        }
        return FormattedDocument(
            text=text,
            file_names=order_file_names(document.annotated_files),
            total_resources=document.logical_groups.total_resources,
            providers=list(merged_providers),
            logical_groups=document.logical_groups,
            dependency_map=document.dependency_map,
            metadata=metadata,
        )
