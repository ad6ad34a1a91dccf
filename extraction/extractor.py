"""
High-level orchestrator for Terraform declaration extraction.

Loads ``.tf`` files from a directory tree or a zip archive and runs the
scanner and the reference resolver over them.
"""

import logging
import os
import zipfile
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from extraction.config import SKIPPED_DIRECTORIES, TERRAFORM_EXTENSIONS
from extraction.models import DeclarationRegistry, DependencyMap, FileStructure, SourceFile
from extraction.resolver import resolve_dependencies
from extraction.scanner import scan_files

logger = logging.getLogger(__name__)


class ExtractionStats:
    """Statistics for an extraction operation."""

    def __init__(self):
        self.files_loaded = 0
        self.files_failed = 0
        self.resources_declared = 0
        self.dependencies_recorded = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "files_loaded": self.files_loaded,
            "files_failed": self.files_failed,
            "resources_declared": self.resources_declared,
            "dependencies_recorded": self.dependencies_recorded,
        }

    def __str__(self) -> str:
        return (
            f"ExtractionStats(loaded={self.files_loaded}, failed={self.files_failed}, "
            f"resources={self.resources_declared}, "
            f"dependencies={self.dependencies_recorded})"
        )


@dataclass
class ExtractionResult:
    files: List[SourceFile]
    structure: FileStructure
    registry: DeclarationRegistry
    dependency_map: DependencyMap
    stats: ExtractionStats = field(default_factory=ExtractionStats)


def _is_terraform_file(name: str) -> bool:
    return os.path.splitext(name)[1].lower() in TERRAFORM_EXTENSIONS


def discover_terraform_files(directory: str) -> List[str]:
    """Recursively discover ``.tf`` files, sorted by path.

    Hidden directories and ``.terraform`` provider caches are skipped.
    """
    directory = os.path.abspath(directory)
    found = []
    for root, dirs, files in os.walk(directory):
        dirs[:] = [
            d for d in dirs if not d.startswith(".") and d not in SKIPPED_DIRECTORIES
        ]
        for name in files:
            if _is_terraform_file(name):
                found.append(os.path.join(root, name))
    logger.info("Found %d Terraform files in %s", len(found), directory)
    return sorted(found)


def _read_directory(directory: str, stats: ExtractionStats) -> List[SourceFile]:
    sources = []
    for path in discover_terraform_files(directory):
        try:
            with open(path, "r", encoding="utf-8") as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read Terraform file %s: %s", path, e)
            stats.files_failed += 1
            continue
        sources.append(
            SourceFile(
                name=os.path.basename(path),
                path=os.path.relpath(path, directory),
                content=content,
            )
        )
    return sources


def _read_zip(archive_path: str, stats: ExtractionStats) -> List[SourceFile]:
    sources = []
    with zipfile.ZipFile(archive_path) as archive:
        for info in sorted(archive.infolist(), key=lambda i: i.filename):
            if info.is_dir() or not _is_terraform_file(info.filename):
                continue
            try:
                content = archive.read(info).decode("utf-8")
            except (OSError, UnicodeDecodeError, zipfile.BadZipFile) as e:
                logger.warning("Failed to read zip entry %s: %s", info.filename, e)
                stats.files_failed += 1
                continue
            sources.append(
                SourceFile(
                    name=os.path.basename(info.filename),
                    path=info.filename,
                    content=content,
                )
            )
    return sources


def load_source_files(input_path: str, stats: ExtractionStats | None = None) -> List[SourceFile]:
    """Read Terraform files from a directory or a ``.zip`` archive.

    Raises:
        ValueError: If ``input_path`` is empty or neither a directory nor a zip.
        FileNotFoundError: If ``input_path`` does not exist.
    """
    if not input_path or not input_path.strip():
        raise ValueError("Input path cannot be empty")
    if not os.path.exists(input_path):
        raise FileNotFoundError(f"Path does not exist: {input_path}")

    stats = stats if stats is not None else ExtractionStats()
    if input_path.lower().endswith(".zip") and os.path.isfile(input_path):
        logger.info("Reading Terraform files from zip: %s", input_path)
        sources = _read_zip(input_path, stats)
    elif os.path.isdir(input_path):
        logger.info("Reading Terraform files from directory: %s", input_path)
        sources = _read_directory(input_path, stats)
    else:
        raise ValueError(
            f"Input path must be either a directory or a zip file: {input_path}"
        )
    stats.files_loaded += len(sources)
    logger.info("Loaded %d Terraform files", len(sources))
    return sources


def extract_dependencies(files: Sequence[SourceFile]) -> ExtractionResult:
    """Scan and resolve a batch of already-loaded files."""
    stats = ExtractionStats()
    stats.files_loaded = len(files)
    structure = scan_files(files)
    registry, dependency_map = resolve_dependencies(files, structure)
    stats.files_failed = len(structure.failed_files)
    stats.resources_declared = len(registry.resources)
    stats.dependencies_recorded = dependency_map.total_dependencies
    logger.info("Extraction complete: %s", stats)
    return ExtractionResult(
        files=list(files),
        structure=structure,
        registry=registry,
        dependency_map=dependency_map,
        stats=stats,
    )
