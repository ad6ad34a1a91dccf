"""
Two-pass reference resolution over scanned Terraform files.

Pass 1 builds a ``DeclarationRegistry`` for the whole batch. Pass 2
segments each file into resource blocks by brace depth and scans only
inside each block for references. Every match is checked against the
registry before it is recorded, so dependency targets are always
declared symbols. Unregistered matches are dropped, which trades recall
for precision.

The implicit-dependency heuristic is intentionally coarse: a block that
merely mentions ``subnet`` is linked to every declared subnet.
"""

import logging
from typing import Dict, List, Optional, Sequence

from core.identifiers import make_data_source_id, make_module_id, make_resource_id
from extraction.blocks import TextBlock, iter_blocks
from extraction.config import (
    DATA_REFERENCE_PATTERN,
    EXPLICIT_REFERENCE_PATTERN,
    IMPLICIT_DEPENDENCY_KEYWORDS,
    MODULE_REFERENCE_PATTERN,
    OUTPUT_REFERENCE_PATTERN,
    RESOURCE_BLOCK_PATTERN,
    VARIABLE_REFERENCE_PATTERN,
)
from extraction.models import (
    DeclarationRegistry,
    DependencyMap,
    FileStructure,
    SourceFile,
)
from extraction.scanner import scan_files

logger = logging.getLogger(__name__)


class _OrderedTable:
    """resource id -> ordered unique referenced ids."""

    def __init__(self) -> None:
        self._rows: Dict[str, Dict[str, None]] = {}

    def add(self, resource_id: str, target: str) -> None:
        self._rows.setdefault(resource_id, {}).setdefault(target, None)

    def as_lists(self) -> Dict[str, List[str]]:
        return {key: list(values) for key, values in self._rows.items()}


def segment_resource_blocks(content: str) -> List[TextBlock]:
    """Split ``content`` into resource blocks (label = (type, name))."""
    return list(iter_blocks(RESOURCE_BLOCK_PATTERN, content))


def _explicit_references(text: str, registry: DeclarationRegistry) -> List[str]:
    found = []
    for match in EXPLICIT_REFERENCE_PATTERN.finditer(text):
        candidate = make_resource_id(match.group(1), match.group(2))
        if registry.has_resource(candidate):
            found.append(candidate)
    return found


def _data_references(text: str, registry: DeclarationRegistry) -> List[str]:
    found = []
    for match in DATA_REFERENCE_PATTERN.finditer(text):
        candidate = make_data_source_id(match.group(1), match.group(2))
        if candidate in registry.data_sources:
            found.append(candidate)
    return found


def _module_references(text: str, registry: DeclarationRegistry) -> List[str]:
    return [
        make_module_id(match.group(1))
        for match in MODULE_REFERENCE_PATTERN.finditer(text)
        if match.group(1) in registry.modules
    ]


def _variable_references(text: str, registry: DeclarationRegistry) -> List[str]:
    found = []
    for match in VARIABLE_REFERENCE_PATTERN.finditer(text):
        prefix, name = match.group(1), match.group(2)
        declared = registry.variables if prefix == "var" else registry.locals
        if name in declared:
            found.append(f"{prefix}.{name}")
    return found


def _output_references(text: str, registry: DeclarationRegistry) -> List[str]:
    return [
        f"output.{match.group(1)}"
        for match in OUTPUT_REFERENCE_PATTERN.finditer(text)
        if match.group(1) in registry.outputs
    ]


def _implicit_dependencies(
    text: str,
    resource_id: str,
    registry: DeclarationRegistry,
) -> List[str]:
    lowered = text.lower()
    found = []
    for keyword, target_types in IMPLICIT_DEPENDENCY_KEYWORDS:
        if keyword not in lowered:
            continue
        for candidate in registry.resources_of_types(target_types):
            if candidate != resource_id:
                found.append(candidate)
    return found


def build_dependency_map(
    files: Sequence[SourceFile],
    registry: DeclarationRegistry,
) -> DependencyMap:
    """Pass 2: per-block reference scan against a finished registry."""
    resource_deps = _OrderedTable()
    module_refs = _OrderedTable()
    variable_usage = _OrderedTable()
    output_refs = _OrderedTable()
    implicit_deps = _OrderedTable()
    blocks_seen = 0

    for source in files:
        if not isinstance(source.content, str):
            continue
        for block in segment_resource_blocks(source.content):
            blocks_seen += 1
            resource_id = make_resource_id(*block.label)
            text = block.text
            for target in _explicit_references(text, registry):
                resource_deps.add(resource_id, target)
            for target in _data_references(text, registry):
                resource_deps.add(resource_id, target)
            for target in _module_references(text, registry):
                module_refs.add(resource_id, target)
            for target in _variable_references(text, registry):
                variable_usage.add(resource_id, target)
            for target in _output_references(text, registry):
                output_refs.add(resource_id, target)
            for target in _implicit_dependencies(text, resource_id, registry):
                implicit_deps.add(resource_id, target)

    dependency_map = DependencyMap.from_tables(
        resource_dependencies=resource_deps.as_lists(),
        module_references=module_refs.as_lists(),
        variable_usage=variable_usage.as_lists(),
        output_references=output_refs.as_lists(),
        implicit_dependencies=implicit_deps.as_lists(),
    )
    logger.debug("Scanned %d resource blocks for references", blocks_seen)
    return dependency_map


def resolve_dependencies(
    files: Sequence[SourceFile],
    structure: Optional[FileStructure] = None,
) -> tuple[DeclarationRegistry, DependencyMap]:
    """Run both passes for one import.

    Args:
        files: Ordered source files.
        structure: A scan of ``files``; scanned here when omitted.

    Returns:
        ``(registry, dependency_map)``; the registry is never reused across
        imports.
    """
    if structure is None:
        structure = scan_files(files)
    registry = DeclarationRegistry.from_declarations(structure.declarations)
    logger.info(
        "Registry built: %d resources, %d modules, %d variables, %d outputs, "
        "%d locals, %d data sources",
        len(registry.resources),
        len(registry.modules),
        len(registry.variables),
        len(registry.outputs),
        len(registry.locals),
        len(registry.data_sources),
    )
    dependency_map = build_dependency_map(files, registry)
    logger.info(
        "Dependency analysis complete: %d dependencies %s",
        dependency_map.total_dependencies,
        dependency_map.counts_by_category(),
    )
    return registry, dependency_map
