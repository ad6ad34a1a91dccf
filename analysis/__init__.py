"""
Analysis module: semantic resource and relationship extraction via an
OpenAI-compatible chat completions endpoint.

Public API:
    - get_analyzer: Mock or real analyzer based on configuration
    - LLMInfrastructureAnalyzer / MockInfrastructureAnalyzer
    - AnalysisResult, ResourceDescriptor, RelationshipDescriptor
    - parse_analysis_payload: Validate raw model output
"""

from analysis.models import (
    AnalysisResponseError,
    AnalysisResult,
    MalformedDescriptorError,
    RelationshipDescriptor,
    ResourceDescriptor,
    parse_analysis_payload,
    strip_code_fences,
)
from analysis.analyzer import (
    LLMInfrastructureAnalyzer,
    MockInfrastructureAnalyzer,
    SemanticAnalyzer,
    build_analysis_prompt,
    get_analyzer,
    validate_analysis,
)

__all__ = [
    "AnalysisResponseError",
    "AnalysisResult",
    "MalformedDescriptorError",
    "RelationshipDescriptor",
    "ResourceDescriptor",
    "parse_analysis_payload",
    "strip_code_fences",
    "LLMInfrastructureAnalyzer",
    "MockInfrastructureAnalyzer",
    "SemanticAnalyzer",
    "build_analysis_prompt",
    "get_analyzer",
    "validate_analysis",
]
