"""
Merging module: logical grouping, context annotation and bounded document
assembly for semantic analysis.

Public API:
    - group_resources: Partition resources into ordered logical groups
    - annotate: Overview, file banners, comments and hints
    - DocumentFormatter: Fixed-order layout with section-level truncation
    - merge_terraform_files: Whole pipeline with fallback
"""

from merging.models import (
    ContextualizedDocument,
    FormattedDocument,
    LogicalGroup,
    LogicalGroups,
)
from merging.grouping import categorize_resource_type, group_resources
from merging.annotator import (
    annotate,
    build_cross_reference_comments,
    build_overview,
    build_relationship_hints,
    resource_matches_file,
)
from merging.formatter import DocumentFormatter, clean_content, order_file_names
from merging.merger import merge_terraform_files, validate_merged_text

__all__ = [
    "ContextualizedDocument",
    "FormattedDocument",
    "LogicalGroup",
    "LogicalGroups",
    "categorize_resource_type",
    "group_resources",
    "annotate",
    "build_cross_reference_comments",
    "build_overview",
    "build_relationship_hints",
    "resource_matches_file",
    "DocumentFormatter",
    "clean_content",
    "order_file_names",
    "merge_terraform_files",
    "validate_merged_text",
]
