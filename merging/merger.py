"""
Merge pipeline: extraction -> grouping -> annotation -> formatting.

``merge_terraform_files`` is the single entry point used by the import CLI.
When the structured pipeline fails unexpectedly it degrades to a plain
concatenation of the inputs flagged with ``fallback_mode``.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from extraction.extractor import extract_dependencies
from extraction.models import DependencyMap, SourceFile
from merging.annotator import annotate
from merging.config import LARGE_DOCUMENT_WARNING, MAIN_SEPARATOR
from merging.formatter import DocumentFormatter, clean_content, order_file_names
from merging.grouping import group_resources
from merging.models import FormattedDocument, LogicalGroups

logger = logging.getLogger(__name__)


def build_fallback_document(
    files: Sequence[SourceFile],
    formatter: DocumentFormatter,
) -> FormattedDocument:
    """Plain concatenation of the files, still bounded by ``max_length``."""
    by_path = {source.path: source for source in files}
    ordered = order_file_names(by_path)
    sections = [f"{MAIN_SEPARATOR}\n# TERRAFORM FILES (FALLBACK MODE)\n{MAIN_SEPARATOR}\n\n"]
    for path in ordered:
        source = by_path[path]
        sections.append(
            f"# FILE: {source.name}\n# Path: {source.path}\n\n"
            f"{clean_content(source.content).rstrip()}\n\n"
        )
    text, original_length, truncated = formatter.bound(sections)
    return FormattedDocument(
        text=text,
        file_names=ordered,
        total_resources=0,
        providers=[],
        logical_groups=LogicalGroups(),
        dependency_map=DependencyMap(),
        metadata={
            "formatting_timestamp": datetime.now(timezone.utc).isoformat(),
            "original_length": original_length,
            "final_length": len(text),
            "truncated": truncated,
            "total_files": len(by_path),
            "total_resources": 0,
            "total_groups": 0,
            "total_dependencies": 0,
            "fallback_mode": True,
        },
    )


def merge_terraform_files(
    files: Sequence[SourceFile],
    max_length: Optional[int] = None,
) -> FormattedDocument:
    """Build the bounded analysis document for a batch of files.

    Raises:
        ValueError: If ``files`` is empty or ``max_length`` is below the minimum.
    """
    if not files:
        raise ValueError("No Terraform files provided for merging")
    formatter = DocumentFormatter(max_length)

    try:
        extraction = extract_dependencies(files)
        resource_types = extraction.structure.resource_types()
        groups = group_resources(resource_types)
        contextualized = annotate(
            files, groups, extraction.dependency_map, resource_ids=list(resource_types)
        )
        document = formatter.format(contextualized, providers=extraction.structure.providers)
        document.metadata["failed_files"] = list(extraction.structure.failed_files)
    except Exception as exc:
        logger.error("Structured merge failed, using fallback document: %s", exc, exc_info=True)
        document = build_fallback_document(files, formatter)

    validate_merged_text(document)
    logger.info(document.summary())
    return document


def validate_merged_text(document: FormattedDocument) -> bool:
    """Check the document is usable for analysis, warning on oversize content."""
    if not document.text.strip():
        logger.error("Merged document is empty")
        return False
    if not document.file_names:
        logger.error("Merged document has no source files")
        return False
    if document.content_length > LARGE_DOCUMENT_WARNING:
        logger.warning(
            "Merged document is very large (%d characters) and may exceed model limits",
            document.content_length,
        )
    return True
