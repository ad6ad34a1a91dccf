"""
Extraction module: Terraform declaration scanning and reference resolution.

Public API:
    - load_source_files: Read .tf files from a directory or zip archive
    - scan_files: Lexical declaration scan into a FileStructure
    - resolve_dependencies: Two-pass registry + dependency map build
    - extract_dependencies: Scan and resolve in one call
    - parse_source_files: Structured block parsing (typed value model)
"""

from extraction.models import (
    Declaration,
    DeclarationRegistry,
    DependencyMap,
    FileStructure,
    SourceFile,
)
from extraction.scanner import scan_file, scan_files, scan_providers
from extraction.resolver import (
    build_dependency_map,
    resolve_dependencies,
    segment_resource_blocks,
)
from extraction.parser import (
    DeclarationSyntaxError,
    HclList,
    HclMap,
    HclPrimitive,
    HclReference,
    HclValue,
    LexicalBlockParser,
    ParsedBlock,
    ParseOutcome,
    SyntaxParser,
    from_plain,
    parse_source_files,
    to_plain,
)
from extraction.extractor import (
    ExtractionResult,
    ExtractionStats,
    discover_terraform_files,
    extract_dependencies,
    load_source_files,
)

__all__ = [
    "Declaration",
    "DeclarationRegistry",
    "DependencyMap",
    "FileStructure",
    "SourceFile",
    "scan_file",
    "scan_files",
    "scan_providers",
    "build_dependency_map",
    "resolve_dependencies",
    "segment_resource_blocks",
    "DeclarationSyntaxError",
    "HclList",
    "HclMap",
    "HclPrimitive",
    "HclReference",
    "HclValue",
    "LexicalBlockParser",
    "ParsedBlock",
    "ParseOutcome",
    "SyntaxParser",
    "from_plain",
    "parse_source_files",
    "to_plain",
    "ExtractionResult",
    "ExtractionStats",
    "discover_terraform_files",
    "extract_dependencies",
    "load_source_files",
]
