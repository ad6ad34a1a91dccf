"""
Lexical declaration scanner for Terraform configuration text.

Each declaration kind has its own line-anchored pattern; this is a
deliberately lightweight pass and not a grammar parse. Brace balancing is
only used to read the bodies of ``locals`` and ``required_providers``
blocks.
"""

import logging
import re
from typing import Iterable, List, Sequence

from extraction.blocks import find_block_end, iter_blocks, split_top_level_statements
from extraction.config import (
    DATA_PATTERN,
    LOCALS_PATTERN,
    MODULE_PATTERN,
    OUTPUT_PATTERN,
    PROVIDER_PATTERN,
    REQUIRED_PROVIDERS_PATTERN,
    RESOURCE_PATTERN,
    VARIABLE_PATTERN,
)
from extraction.models import (
    DATA,
    LOCAL,
    MODULE,
    OUTPUT,
    RESOURCE,
    VARIABLE,
    Declaration,
    FileStructure,
    SourceFile,
)
from extraction.parser import DeclarationSyntaxError

logger = logging.getLogger(__name__)

_ENTRY_NAME_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_-]*)\s*=(?!=)")


def _entry_names(body: str) -> List[str]:
    names = []
    for statement in split_top_level_statements(body):
        match = _ENTRY_NAME_RE.match(statement)
        if match:
            names.append(match.group(1))
    return names


def _scan_locals(content: str, file_name: str) -> List[Declaration]:
    declarations = []
    for block in iter_blocks(LOCALS_PATTERN, content):
        for name in _entry_names(block.body):
            declarations.append(Declaration(LOCAL, LOCAL, name, file_name))
    return declarations


def scan_providers(content: str) -> List[str]:
    """Provider names from ``provider`` blocks and the first required_providers block.

    Later ``required_providers`` blocks in the same text are not inspected.
    """
    providers: dict[str, None] = {}
    for match in PROVIDER_PATTERN.finditer(content):
        providers.setdefault(match.group(1), None)

    required = REQUIRED_PROVIDERS_PATTERN.search(content)
    if required is not None:
        end = find_block_end(content, required.start())
        block_text = content[required.start():end]
        open_index = block_text.find("{")
        body = block_text[open_index + 1:]
        if body.endswith("}"):
            body = body[:-1]
        for name in _entry_names(body):
            providers.setdefault(name, None)
    return list(providers)


def scan_file(source: SourceFile) -> List[Declaration]:
    """Scan one file for declarations, in kind order then match order.

    Raises:
        DeclarationSyntaxError: If the content cannot be scanned.
    """
    content = source.content
    if not isinstance(content, str):
        raise DeclarationSyntaxError(
            f"{source.name}: content must be text, got {type(content).__name__}"
        )
    name = source.name
    declarations: List[Declaration] = []
    for match in RESOURCE_PATTERN.finditer(content):
        declarations.append(Declaration(RESOURCE, match.group(1), match.group(2), name))
    for match in MODULE_PATTERN.finditer(content):
        declarations.append(Declaration(MODULE, MODULE, match.group(1), name))
    for match in VARIABLE_PATTERN.finditer(content):
        declarations.append(Declaration(VARIABLE, VARIABLE, match.group(1), name))
    for match in OUTPUT_PATTERN.finditer(content):
        declarations.append(Declaration(OUTPUT, OUTPUT, match.group(1), name))
    for match in DATA_PATTERN.finditer(content):
        declarations.append(Declaration(DATA, match.group(1), match.group(2), name))
    declarations.extend(_scan_locals(content, name))
    return declarations


def _ids_of(declarations: Iterable[Declaration], kind: str) -> List[str]:
    return [d.composite_id for d in declarations if d.kind == kind]


def scan_files(files: Sequence[SourceFile]) -> FileStructure:
    """Scan an ordered batch of files into a ``FileStructure``.

    A file that fails to scan is logged and recorded in
    ``failed_files``; the remaining files are still scanned.
    """
    logger.info("Scanning %d Terraform files", len(files))
    structure = FileStructure()
    providers: dict[str, None] = {}

    for source in files:
        try:
            declarations = scan_file(source)
            file_providers = scan_providers(source.content)
        except Exception as e:
            logger.error("Error scanning file %s: %s", source.path, e, exc_info=True)
            structure.failed_files.append(source.path)
            continue

        structure.declarations.extend(declarations)
        structure.resources_by_file.setdefault(source.path, []).extend(
            _ids_of(declarations, RESOURCE)
        )
        structure.variables_by_file.setdefault(source.path, []).extend(
            _ids_of(declarations, VARIABLE)
        )
        structure.outputs_by_file.setdefault(source.path, []).extend(
            _ids_of(declarations, OUTPUT)
        )
        structure.providers_by_file.setdefault(source.path, []).extend(file_providers)
        for provider in file_providers:
            providers.setdefault(provider, None)
        logger.debug(
            "Scanned %s: %d declarations, providers=%s",
            source.path,
            len(declarations),
            file_providers,
        )

    structure.providers = list(providers)
    logger.info("Scan complete: %s", structure)
    return structure
