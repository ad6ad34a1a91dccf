"""
Context annotation: infrastructure overview, per-file banners, and
per-resource cross-reference comments and relationship hints.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence

from extraction.models import DependencyMap, SourceFile
from merging.config import (
    DEPENDENCY_HINT_THRESHOLD,
    FILE_BOUNDARY_SEPARATOR,
    FILE_SECTION_SEPARATOR,
    GROUP_EXPECTED_RELATIONSHIPS,
    OVERVIEW_DEPS_PER_RELATIONSHIP,
    OVERVIEW_GROUP_PREVIEW,
    OVERVIEW_MAX_RELATIONSHIPS,
    VARIABLE_COMMENT_THRESHOLD,
)
from merging.models import ContextualizedDocument, LogicalGroups

logger = logging.getLogger(__name__)

ANALYSIS_GUIDELINES = (
    "- Focus on explicit resource references (resource.name.attribute)",
    "- Identify module dependencies (module.name.output)",
    "- Map security group and network relationships",
    "- Track storage and compute resource connections",
    "- Note provider-specific relationship patterns",
)


def build_overview(groups: LogicalGroups, dependency_map: DependencyMap) -> str:
    lines = [
        "# TERRAFORM INFRASTRUCTURE OVERVIEW",
        FILE_BOUNDARY_SEPARATOR,
        "",
        "## Infrastructure Summary",
        f"- Total Resource Groups: {len(groups)}",
        f"- Total Resources: {groups.total_resources}",
        f"- Total Dependencies: {dependency_map.total_dependencies}",
        "",
        "## Resource Groups",
    ]
    for group in groups:
        lines.append(f"### {group.name}")
        lines.append(f"- {group.description}")
        preview = group.resource_ids[:OVERVIEW_GROUP_PREVIEW]
        lines.append(f"- Resources: {', '.join(preview)}")
        remaining = len(group.resource_ids) - len(preview)
        if remaining > 0:
            lines.append(f"  ... and {remaining} more")
        lines.append("")

    lines.append("## Key Infrastructure Relationships")
    relationships = list(dependency_map.resource_dependencies.items())
    for resource_id, deps in relationships[:OVERVIEW_MAX_RELATIONSHIPS]:
        shown = ", ".join(deps[:OVERVIEW_DEPS_PER_RELATIONSHIP])
        lines.append(f"- {resource_id} depends on: {shown}")
    lines.append("")

    lines.append("## Analysis Guidelines")
    lines.extend(ANALYSIS_GUIDELINES)
    lines.append("")
    return "\n".join(lines)


def wrap_file(source: SourceFile) -> str:
    """Wrap a file's content in the FILE / END FILE banner."""
    content = source.content if source.content.endswith("\n") else source.content + "\n"
    return "\n".join([
        f"# FILE: {source.name}",
        FILE_BOUNDARY_SEPARATOR,
        f"# Path: {source.path}",
        f"# Size: {source.size} characters",
        FILE_SECTION_SEPARATOR,
        "",
        content,
        FILE_SECTION_SEPARATOR,
        f"# END FILE: {source.name}",
        FILE_BOUNDARY_SEPARATOR,
        "",
    ])


def _resource_order(dependency_map: DependencyMap) -> List[str]:
    seen: Dict[str, None] = {}
    for table in dependency_map.categories().values():
        for resource_id in table:
            seen.setdefault(resource_id, None)
    return list(seen)


def build_cross_reference_comments(
    dependency_map: DependencyMap,
    resource_ids: Optional[Sequence[str]] = None,
) -> Dict[str, List[str]]:
    """Comment blocks per resource describing its recorded references."""
    comments: Dict[str, List[str]] = {}
    order = list(resource_ids) if resource_ids is not None else _resource_order(dependency_map)
    for resource_id in order:
        blocks: List[str] = []
        deps = dependency_map.resource_dependencies.get(resource_id, ())
        if deps:
            block = [f"# DEPENDENCIES: {resource_id} depends on {len(deps)} resources"]
            block.extend(f"#   -> {dep}" for dep in deps)
            blocks.append("\n".join(block))
        modules = dependency_map.module_references.get(resource_id, ())
        if modules:
            block = [f"# MODULE_REFS: {resource_id} references {len(modules)} module outputs"]
            block.extend(f"#   -> {ref}" for ref in modules)
            blocks.append("\n".join(block))
        variables = dependency_map.variable_usage.get(resource_id, ())
        if len(variables) > VARIABLE_COMMENT_THRESHOLD:
            blocks.append(
                f"# VARIABLES: {resource_id} uses {len(variables)} variables/locals"
            )
        if blocks:
            comments[resource_id] = blocks
    return comments


def _expected_relationships(name: str) -> Optional[str]:
    lowered = name.lower()
    for keyword, text in GROUP_EXPECTED_RELATIONSHIPS:
        if keyword in lowered:
            return text
    return None


def build_relationship_hints(
    groups: LogicalGroups,
    dependency_map: DependencyMap,
) -> Dict[str, List[str]]:
    """Hint blocks per resource nudging the analyzer toward likely links."""
    hints: Dict[str, List[str]] = {}

    for group in groups:
        if len(group.resource_ids) <= 1:
            continue
        block = [
            f"# GROUP_HINT: Resources in '{group.name}' are logically related",
            f"#   Resources: {', '.join(group.resource_ids[:OVERVIEW_GROUP_PREVIEW])}",
        ]
        expected = _expected_relationships(group.name)
        if expected:
            block.append(f"#   Expected relationships: {expected}")
        hints.setdefault(group.resource_ids[0], []).append("\n".join(block))

    for resource_id, deps in dependency_map.resource_dependencies.items():
        if len(deps) >= DEPENDENCY_HINT_THRESHOLD:
            hints.setdefault(resource_id, []).append("\n".join([
                f"# DEPENDENCY_HINT: {resource_id} has {len(deps)} dependencies"
                " - likely a central resource",
                "#   Consider relationships: DEPENDS_ON, PROVIDES_STORAGE_FOR,"
                " DEPLOYED_ON, PROTECTED_BY",
            ]))

    for resource_id, linked in dependency_map.implicit_dependencies.items():
        if linked:
            hints.setdefault(resource_id, []).append("\n".join([
                f"# IMPLICIT_HINT: {resource_id} may have implicit relationships"
                f" with {len(linked)} resources",
                "#   Check for: Security Group rules, Subnet associations, VPC relationships",
            ]))
    return hints


def resource_matches_file(resource_id: str, file_name: str) -> bool:
    """Fuzzy association of a resource with a file. Can multi-match."""
    lowered_file = file_name.lower()
    stem = lowered_file.replace(".tf", "")
    if stem and stem in resource_id.lower():
        return True
    return resource_id.split(".")[0].lower() in lowered_file


def associate_with_files(
    annotations: Dict[str, List[str]],
    file_names_by_path: Mapping[str, str],
) -> Dict[str, List[str]]:
    """Annotation blocks per file path, matched on each file's base name."""
    by_file: Dict[str, List[str]] = {path: [] for path in file_names_by_path}
    for resource_id, blocks in annotations.items():
        for path, name in file_names_by_path.items():
            if resource_matches_file(resource_id, name):
                by_file[path].extend(blocks)
    return by_file


def annotate(
    files: Sequence[SourceFile],
    groups: LogicalGroups,
    dependency_map: DependencyMap,
    resource_ids: Optional[Sequence[str]] = None,
) -> ContextualizedDocument:
    """Build the overview and annotate each file with banners and hints.

    Files are keyed by relative path; base names can repeat across
    directories (``main.tf`` and ``modules/vpc/main.tf``).
    """
    overview = build_overview(groups, dependency_map)
    annotated = {source.path: wrap_file(source) for source in files}
    names = {source.path: source.name for source in files}
    comments = build_cross_reference_comments(dependency_map, resource_ids)
    hints = build_relationship_hints(groups, dependency_map)

    document = ContextualizedDocument(
        overview=overview,
        annotated_files=annotated,
        file_names_by_path=names,
        cross_reference_comments=comments,
        relationship_hints=hints,
        file_comments=associate_with_files(comments, names),
        file_hints=associate_with_files(hints, names),
        logical_groups=groups,
        dependency_map=dependency_map,
        metadata={
            "total_files": len(annotated),
            "total_resources": groups.total_resources,
            "total_groups": len(groups),
            "total_dependencies": dependency_map.total_dependencies,
            "annotation_timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
    logger.info(
        "Annotated %d files (%d resources with comments, %d with hints)",
        len(annotated), len(comments), len(hints),
    )
    return document
