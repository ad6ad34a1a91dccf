"""
Structured declaration parsing contract and typed value model.

A ``SyntaxParser`` turns one ``SourceFile`` into ``ParsedBlock`` records whose
argument values are ``HclValue`` instances: a tagged union of primitive,
list, map and unevaluated reference. Values are plain frozen dataclasses
and never need reflection to serialize.

``LexicalBlockParser`` is the bundled implementation. It reads the
top-level arguments of ``resource`` and ``data`` blocks with the same
brace segmentation the scanner uses; it is not a full grammar.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

from core.identifiers import make_data_source_id, make_resource_id
from extraction.blocks import iter_blocks, split_top_level_statements
from extraction.config import DATA_BLOCK_PATTERN, RESOURCE_BLOCK_PATTERN
from extraction.models import DATA, RESOURCE, SourceFile

logger = logging.getLogger(__name__)


class DeclarationSyntaxError(ValueError):
    """Raised when one file cannot be scanned or parsed; never fatal for a batch."""


# ---------------------------------------------------------------------------
# Typed value model
# ---------------------------------------------------------------------------

Primitive = Union[str, int, float, bool, None]


@dataclass(frozen=True)
class HclPrimitive:
    value: Primitive
    kind: str = field(default="primitive", init=False)


@dataclass(frozen=True)
class HclList:
    items: Tuple["HclValue", ...] = ()
    kind: str = field(default="list", init=False)


@dataclass(frozen=True)
class HclMap:
    entries: Tuple[Tuple[str, "HclValue"], ...] = ()
    kind: str = field(default="map", init=False)

    def get(self, key: str) -> Optional["HclValue"]:
        for entry_key, value in self.entries:
            if entry_key == key:
                return value
        return None

    def keys(self) -> List[str]:
        return [key for key, _ in self.entries]


@dataclass(frozen=True)
class HclReference:
    """An expression left unevaluated (``aws_vpc.main.id``, ``"${var.x}-a"``)."""

    expression: str
    kind: str = field(default="reference", init=False)


HclValue = Union[HclPrimitive, HclList, HclMap, HclReference]


def to_plain(value: Any) -> Any:
    """Convert an ``HclValue`` (or plain data containing them) to JSON-ready data.

    References become ``"${expression}"`` strings unless the expression is
    already a quoted template.
    """
    if isinstance(value, HclPrimitive):
        return value.value
    if isinstance(value, HclList):
        return [to_plain(item) for item in value.items]
    if isinstance(value, HclMap):
        return {key: to_plain(item) for key, item in value.entries}
    if isinstance(value, HclReference):
        expr = value.expression
        if len(expr) >= 2 and expr.startswith('"') and expr.endswith('"'):
            return expr[1:-1]
        return "${" + expr + "}"
    if isinstance(value, Mapping):
        return {str(key): to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(item) for item in value]
    return value


def from_plain(value: Any) -> HclValue:
    """Wrap plain JSON-like data into the typed value model."""
    if isinstance(value, Mapping):
        return HclMap(tuple((str(k), from_plain(v)) for k, v in value.items()))
    if isinstance(value, (list, tuple)):
        return HclList(tuple(from_plain(item) for item in value))
    if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
        return HclReference(value[2:-1])
    if value is None or isinstance(value, (str, int, float, bool)):
        return HclPrimitive(value)
    return HclPrimitive(str(value))


# ---------------------------------------------------------------------------
# Parser contract
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ParsedBlock:
    kind: str
    type: str
    name: str
    arguments: Mapping[str, HclValue]
    file_name: str

    @property
    def composite_id(self) -> str:
        if self.kind == DATA:
            return make_data_source_id(self.type, self.name)
        return make_resource_id(self.type, self.name)

    def plain_arguments(self) -> Dict[str, Any]:
        return {key: to_plain(value) for key, value in self.arguments.items()}


class SyntaxParser(Protocol):
    def parse(self, source: SourceFile) -> List[ParsedBlock]:
        ...


@dataclass
class ParseOutcome:
    """Result of parsing a batch; failures are keyed by file name."""

    blocks: List[ParsedBlock] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)
    files_parsed: int = 0

    def resource_arguments(self) -> Dict[str, Dict[str, Any]]:
        """Plain arguments per resource composite id (latest declaration wins)."""
        return {
            block.composite_id: block.plain_arguments()
            for block in self.blocks
            if block.kind == RESOURCE
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "files_parsed": self.files_parsed,
            "files_failed": len(self.failures),
            "blocks": len(self.blocks),
        }


def parse_source_files(
    files: Sequence[SourceFile],
    parser: Optional[SyntaxParser] = None,
) -> ParseOutcome:
    """Parse every file; a per-file failure is logged, recorded and skipped."""
    parser = parser or LexicalBlockParser()
    outcome = ParseOutcome()
    for source in files:
        try:
            blocks = parser.parse(source)
        except DeclarationSyntaxError as e:
            logger.warning("Syntax error in %s: %s", source.name, e)
            outcome.failures[source.name] = str(e)
            continue
        except Exception as e:
            logger.error("Parser failed on %s: %s", source.name, e, exc_info=True)
            outcome.failures[source.name] = f"{type(e).__name__}: {e}"
            continue
        outcome.blocks.extend(blocks)
        outcome.files_parsed += 1
    logger.info(
        "Parsed %d blocks from %d files (%d failed)",
        len(outcome.blocks),
        outcome.files_parsed,
        len(outcome.failures),
    )
    return outcome


# ---------------------------------------------------------------------------
# Lexical implementation
# ---------------------------------------------------------------------------

_ASSIGNMENT_RE = re.compile(r'^"?([A-Za-z_][A-Za-z0-9_-]*)"?\s*[=:](?!=)\s*(.*)$', re.DOTALL)
_NESTED_BLOCK_RE = re.compile(r'^([A-Za-z_][A-Za-z0-9_-]*)((?:\s+"[^"]*")*)\s*\{(.*)\}$', re.DOTALL)
_HEREDOC_RE = re.compile(r"^<<-?\s*([A-Za-z_][A-Za-z0-9_]*)$")
_INT_RE = re.compile(r"^-?\d+$")
_FLOAT_RE = re.compile(r"^-?\d+\.\d+(?:[eE][-+]?\d+)?$")


def _split_items(inner: str) -> List[str]:
    """Split list contents on depth-zero commas, respecting double quotes."""
    items: List[str] = []
    current: List[str] = []
    depth = 0
    in_string = False
    escaped = False
    for char in inner:
        if in_string:
            current.append(char)
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in "{[(":
            depth += 1
        elif char in "}])":
            depth -= 1
        elif char == "," and depth == 0:
            items.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    tail = "".join(current).strip()
    if tail:
        items.append(tail)
    return [item for item in items if item]


def _is_simple_string(text: str) -> bool:
    if len(text) < 2 or not (text.startswith('"') and text.endswith('"')):
        return False
    inner = text[1:-1].replace('\\"', "")
    return '"' not in inner


def parse_value(text: str) -> HclValue:
    """Parse one right-hand side expression into an ``HclValue``."""
    text = text.strip().rstrip(",").strip()
    if _is_simple_string(text):
        inner = text[1:-1]
        if "${" in inner:
            return HclReference(text)
        return HclPrimitive(inner.replace('\\"', '"').replace("\\\\", "\\"))
    if text in ("true", "false"):
        return HclPrimitive(text == "true")
    if text == "null":
        return HclPrimitive(None)
    if _INT_RE.match(text):
        return HclPrimitive(int(text))
    if _FLOAT_RE.match(text):
        return HclPrimitive(float(text))
    if text.startswith("[") and text.endswith("]"):
        return HclList(tuple(parse_value(item) for item in _split_items(text[1:-1])))
    if text.startswith("{") and text.endswith("}"):
        return parse_body(text[1:-1])
    return HclReference(text)


def parse_body(body: str) -> HclMap:
    """Parse a block body into an ``HclMap``.

    Repeated nested blocks with the same name (``ingress { }`` twice)
    collapse into an ``HclList`` of maps.
    """
    entries: Dict[str, HclValue] = {}
    statements = split_top_level_statements(body)
    index = 0
    while index < len(statements):
        statement = statements[index]
        index += 1
        nested = _NESTED_BLOCK_RE.match(statement)
        if nested and "=" not in statement.split("{", 1)[0]:
            key = nested.group(1)
            value: HclValue = parse_body(nested.group(3))
            existing = entries.get(key)
            if isinstance(existing, HclList):
                entries[key] = HclList(existing.items + (value,))
            elif isinstance(existing, HclMap):
                entries[key] = HclList((existing, value))
            else:
                entries[key] = value
            continue
        assignment = _ASSIGNMENT_RE.match(statement)
        if not assignment:
            continue
        key, raw = assignment.group(1), assignment.group(2).strip()
        heredoc = _HEREDOC_RE.match(raw)
        if heredoc:
            terminator = heredoc.group(1)
            lines: List[str] = []
            while index < len(statements) and statements[index].strip() != terminator:
                lines.append(statements[index])
                index += 1
            index += 1
            entries[key] = HclPrimitive("\n".join(lines))
            continue
        entries[key] = parse_value(raw)
    return HclMap(tuple(entries.items()))


class LexicalBlockParser:
    """Bundled ``SyntaxParser``: resource and data blocks, brace-segmented."""

    def parse(self, source: SourceFile) -> List[ParsedBlock]:
        if not isinstance(source.content, str):
            raise DeclarationSyntaxError(
                f"{source.name}: content must be text, got {type(source.content).__name__}"
            )
        blocks: List[ParsedBlock] = []
        for kind, pattern in ((RESOURCE, RESOURCE_BLOCK_PATTERN), (DATA, DATA_BLOCK_PATTERN)):
            for block in iter_blocks(pattern, source.content):
                block_type, block_name = block.label
                arguments = parse_body(block.body)
                blocks.append(
                    ParsedBlock(
                        kind=kind,
                        type=block_type,
                        name=block_name,
                        arguments=dict(arguments.entries),
                        file_name=source.name,
                    )
                )
        return blocks
