"""
Validated descriptor records returned by the semantic analyzer.

Individual malformed entries are skipped and counted; a response that is
not a JSON object at all is rejected as a whole.
"""

import json
import logging
import numbers
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional

from analysis.config import DEFAULT_CONFIDENCE

logger = logging.getLogger(__name__)

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?```$", re.DOTALL)


class MalformedDescriptorError(ValueError):
    """A single resource or relationship entry failed validation."""


class AnalysisResponseError(RuntimeError):
    """The analyzer response as a whole is unusable."""


def _required_str(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise MalformedDescriptorError(f"missing or empty {key!r}: {payload!r}")
    return value.strip()


def _optional_str(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MalformedDescriptorError(f"{key!r} must be a string: {payload!r}")
    return value


@dataclass(frozen=True)
class ResourceDescriptor:
    id: str
    type: str
    name: str = ""
    provider: str = ""
    properties: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> "ResourceDescriptor":
        if not isinstance(payload, Mapping):
            raise MalformedDescriptorError(f"resource entry is not an object: {payload!r}")
        properties = payload.get("properties")
        if properties is None:
            properties = {}
        if not isinstance(properties, Mapping):
            raise MalformedDescriptorError(f"'properties' must be an object: {payload!r}")
        return cls(
            id=_optional_str(payload, "id"),
            type=_required_str(payload, "type"),
            name=_optional_str(payload, "name"),
            provider=_optional_str(payload, "provider"),
            properties=dict(properties),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "provider": self.provider,
            "properties": self.properties,
        }


@dataclass(frozen=True)
class RelationshipDescriptor:
    source: str
    target: str
    type: str
    description: str = ""
    confidence: float = DEFAULT_CONFIDENCE

    @classmethod
    def from_payload(cls, payload: Any) -> "RelationshipDescriptor":
        if not isinstance(payload, Mapping):
            raise MalformedDescriptorError(f"relationship entry is not an object: {payload!r}")
        confidence = payload.get("confidence", DEFAULT_CONFIDENCE)
        if confidence is None:
            confidence = DEFAULT_CONFIDENCE
        if isinstance(confidence, bool) or not isinstance(confidence, numbers.Real):
            raise MalformedDescriptorError(f"confidence must be a number: {payload!r}")
        if not 0.0 <= float(confidence) <= 1.0:
            raise MalformedDescriptorError(f"confidence outside [0, 1]: {payload!r}")
        return cls(
            source=_required_str(payload, "source"),
            target=_required_str(payload, "target"),
            type=_required_str(payload, "type"),
            description=_optional_str(payload, "description"),
            confidence=float(confidence),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "type": self.type,
            "description": self.description,
            "confidence": self.confidence,
        }


@dataclass
class AnalysisResult:
    resources: List[ResourceDescriptor] = field(default_factory=list)
    relationships: List[RelationshipDescriptor] = field(default_factory=list)
    skipped_resources: int = 0
    skipped_relationships: int = 0
    warnings: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> "AnalysisResult":
        """Validate a decoded response object entry by entry.

        Raises:
            AnalysisResponseError: If ``payload`` is not an object or its
                ``resources``/``relationships`` members are not lists.
        """
        if not isinstance(payload, Mapping):
            raise AnalysisResponseError(
                f"Analyzer response must be a JSON object, got {type(payload).__name__}"
            )
        raw_resources = payload.get("resources") or []
        raw_relationships = payload.get("relationships") or []
        if not isinstance(raw_resources, list) or not isinstance(raw_relationships, list):
            raise AnalysisResponseError("'resources' and 'relationships' must be lists")

        result = cls()
        for entry in raw_resources:
            try:
                result.resources.append(ResourceDescriptor.from_payload(entry))
            except MalformedDescriptorError as e:
                logger.warning("Skipping malformed resource: %s", e)
                result.skipped_resources += 1
        for entry in raw_relationships:
            try:
                result.relationships.append(RelationshipDescriptor.from_payload(entry))
            except MalformedDescriptorError as e:
                logger.warning("Skipping malformed relationship: %s", e)
                result.skipped_relationships += 1
        return result

    def with_fallback_properties(
        self, resource_arguments: Mapping[str, Mapping[str, Any]]
    ) -> "AnalysisResult":
        """Fill empty property bags from parsed block arguments.

        Descriptors are matched on ``id`` first, then on ``type.name``.
        """
        enriched: List[ResourceDescriptor] = []
        filled = 0
        for resource in self.resources:
            if resource.properties:
                enriched.append(resource)
                continue
            key = resource.id.strip() or f"{resource.type}.{resource.name}"
            arguments = resource_arguments.get(key)
            if arguments is None and resource.name:
                arguments = resource_arguments.get(f"{resource.type}.{resource.name}")
            if arguments:
                enriched.append(replace(resource, properties=dict(arguments)))
                filled += 1
            else:
                enriched.append(resource)
        if filled:
            logger.info("Filled properties for %d resources from parsed arguments", filled)
        return replace(self, resources=enriched)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resources": [resource.to_dict() for resource in self.resources],
            "relationships": [rel.to_dict() for rel in self.relationships],
        }

    def summary(self) -> Dict[str, Any]:
        return {
            "resources": len(self.resources),
            "relationships": len(self.relationships),
            "skipped_resources": self.skipped_resources,
            "skipped_relationships": self.skipped_relationships,
            "warnings": list(self.warnings),
        }


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json / ``` fence if present."""
    stripped = text.strip()
    match = _CODE_FENCE_RE.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def parse_analysis_payload(text: Optional[str]) -> AnalysisResult:
    """Decode the raw model output into a validated ``AnalysisResult``.

    Raises:
        AnalysisResponseError: If the text is empty, not JSON, or not an object.
    """
    if not text or not text.strip():
        raise AnalysisResponseError("Analyzer returned an empty response")
    cleaned = strip_code_fences(text)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise AnalysisResponseError(f"Analyzer response is not valid JSON: {e}") from e
    return AnalysisResult.from_payload(payload)
