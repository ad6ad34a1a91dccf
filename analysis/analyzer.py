"""
Semantic infrastructure analyzer, with mock and real (OpenRouter) backends.

The analyzer sends the merged document to a chat completions endpoint and
expects a JSON object with ``resources`` and ``relationships``. The
module-level router ``get_analyzer()`` inspects the ``USE_MOCK_ANALYZER``
config flag and returns the matching implementation.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Protocol

import openai
from openai import OpenAI
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from analysis.config import (
    ANALYZER_MAX_RETRIES,
    ANALYZER_MAX_TOKENS,
    ANALYZER_MODEL,
    ANALYZER_RETRY_MAX_WAIT,
    ANALYZER_RETRY_MIN_WAIT,
    ANALYZER_TEMPERATURE,
    LARGE_CONTENT_WARNING,
    MIN_RESOURCE_COVERAGE,
    OPENROUTER_API_KEY,
    OPENROUTER_BASE_URL,
    USE_MOCK_ANALYZER,
)
from analysis.models import AnalysisResult, parse_analysis_payload
from merging.models import FormattedDocument

logger = logging.getLogger(__name__)

SYSTEM_MESSAGE = (
    "You are an expert Terraform infrastructure analyst. You identify every "
    "resource in a Terraform configuration and the relationships between them. "
    "Always respond with valid JSON only."
)

ANALYSIS_PROMPT = """\
Analyze the Terraform infrastructure below and extract all resources and the
relationships between them.

Relationship types to look for, for example:
- DEPENDS_ON: aws_instance.web depends on aws_security_group.web_sg
- PROVIDES_STORAGE_FOR: aws_ebs_volume.data provides storage for aws_instance.web
- DEPLOYED_ON: helm_release.app deployed on aws_eks_cluster.main
- PROTECTED_BY: aws_db_instance.db protected by aws_security_group.db_sg
- MANAGES: aws_autoscaling_group.asg manages aws_launch_template.lt
- ROUTES_TO: aws_lb_listener.http routes to aws_lb_target_group.tg
- MOUNTS: aws_ecs_task_definition.app mounts aws_efs_file_system.shared
- CONNECTS_TO: aws_instance.web connects to aws_db_instance.db

Return a single JSON object in exactly this format:
{{
  "resources": [
    {{"id": "type.name", "type": "type", "name": "name", "provider": "provider", "properties": {{}}}}
  ],
  "relationships": [
    {{"source": "type.name", "target": "type.name", "type": "DEPENDS_ON", "description": "...", "confidence": 0.9}}
  ]
}}

{context}

{content}
"""

MOCK_RESPONSE: Dict[str, Any] = {
    "resources": [
        {
            "id": "aws_instance.web",
            "type": "aws_instance",
            "name": "web",
            "provider": "aws",
            "properties": {"instance_type": "t3.micro"},
        },
        {
            "id": "aws_db_instance.database",
            "type": "aws_db_instance",
            "name": "database",
            "provider": "aws",
            "properties": {"engine": "postgres"},
        },
    ],
    "relationships": [
        {
            "source": "aws_instance.web",
            "target": "aws_db_instance.database",
            "type": "CONNECTS_TO",
            "description": "Web server connects to the database",
            "confidence": 0.85,
        }
    ],
}


class SemanticAnalyzer(Protocol):
    def analyze(self, document: FormattedDocument) -> AnalysisResult:
        ...


# ---------------------------------------------------------------------------
# Module-level OpenAI client singleton (lazy, created on first real call)
# ---------------------------------------------------------------------------
_openai_client: OpenAI | None = None


def _get_openai_client() -> OpenAI:
    """Return the module-level OpenAI client, creating it on first use.

    Raises:
        ValueError: If ``OPENROUTER_API_KEY`` is empty.
    """
    global _openai_client

    if _openai_client is not None:
        return _openai_client

    if not OPENROUTER_API_KEY:
        raise ValueError(
            "OPENROUTER_API_KEY is not set. "
            "Add it to your .env file or export it as an environment variable."
        )

    _openai_client = OpenAI(
        api_key=OPENROUTER_API_KEY,
        base_url=OPENROUTER_BASE_URL,
        default_headers={
            "HTTP-Referer": "https://github.com/tfgraph",
            "X-Title": "TFGraph Importer",
        },
    )
    logger.info(
        "OpenAI client initialized (base_url=%s, model=%s)",
        OPENROUTER_BASE_URL,
        ANALYZER_MODEL,
    )
    return _openai_client


# ---------------------------------------------------------------------------
# Prompt construction
# ---------------------------------------------------------------------------

def build_context_header(document: FormattedDocument) -> str:
    metadata = document.metadata
    lines = [
        "INFRASTRUCTURE CONTEXT:",
        f"- FILES PROCESSED: {len(document.file_names)} ({', '.join(document.file_names)})",
        f"- TOTAL RESOURCES: {document.total_resources}",
        f"- PROVIDERS: {', '.join(document.providers) or 'unknown'}",
        f"- CONTENT LENGTH: {document.content_length} characters",
        f"- RESOURCE GROUPS: {len(document.logical_groups)}",
        f"- CROSS-REFERENCES DETECTED: {document.dependency_map.total_dependencies}",
        "- PROCESSING METADATA: "
        + json.dumps(
            {key: metadata[key] for key in sorted(metadata) if key != "formatting_timestamp"},
            default=str,
        ),
    ]
    return "\n".join(lines)


def build_analysis_prompt(document: FormattedDocument) -> str:
    return ANALYSIS_PROMPT.format(
        context=build_context_header(document),
        content=document.text,
    )


# ---------------------------------------------------------------------------
# Post-analysis validation
# ---------------------------------------------------------------------------

def validate_analysis(result: AnalysisResult, document: FormattedDocument) -> List[str]:
    """Compare the analyzer's findings with what the document declared."""
    warnings: List[str] = []
    found = len(result.resources)
    expected = document.total_resources

    if found == 0 and expected > 0:
        warnings.append(f"No resources returned although {expected} were declared")
    elif expected > 0 and found < expected * MIN_RESOURCE_COVERAGE:
        warnings.append(f"Only {found} of {expected} declared resources were returned")

    found_providers = {r.provider.lower() for r in result.resources if r.provider}
    missing = [p for p in document.providers if p.lower() not in found_providers]
    if missing and result.resources:
        warnings.append(f"No resources returned for providers: {', '.join(missing)}")

    if found > 1 and not result.relationships:
        warnings.append(f"No relationships returned for {found} resources")

    if document.content_length > LARGE_CONTENT_WARNING:
        warnings.append(
            f"Document is {document.content_length} characters; "
            "the model may not have seen all of it"
        )

    for warning in warnings:
        logger.warning("Analysis validation: %s", warning)
    return warnings


# ---------------------------------------------------------------------------
# Mock backend (deterministic, no network)
# ---------------------------------------------------------------------------

class MockInfrastructureAnalyzer:
    """Returns a fixed two-resource response without any network call."""

    def analyze(self, document: FormattedDocument) -> AnalysisResult:
        logger.info("Using mock analyzer for %d files", len(document.file_names))
        result = parse_analysis_payload(json.dumps(MOCK_RESPONSE))
        result.metadata.update({"model": "mock", "mock": True})
        result.warnings = validate_analysis(result, document)
        return result


# ---------------------------------------------------------------------------
# Real backend (OpenRouter API)
# ---------------------------------------------------------------------------

# Only retry on transient / network-related errors.
_RETRYABLE_EXCEPTIONS = (
    openai.RateLimitError,
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.InternalServerError,
)


class LLMInfrastructureAnalyzer:
    """Chat completions client that returns validated descriptors."""

    def __init__(
        self,
        model: str = ANALYZER_MODEL,
        max_tokens: int = ANALYZER_MAX_TOKENS,
        temperature: float = ANALYZER_TEMPERATURE,
        client: Optional[OpenAI] = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = _get_openai_client()
        return self._client

    @retry(
        retry=retry_if_exception_type(_RETRYABLE_EXCEPTIONS),
        wait=wait_exponential(
            multiplier=1,
            min=ANALYZER_RETRY_MIN_WAIT,
            max=ANALYZER_RETRY_MAX_WAIT,
        ),
        stop=stop_after_attempt(ANALYZER_MAX_RETRIES),
        reraise=True,
    )
    def _complete(self, prompt: str) -> str:
        """Send one chat completion request and return the message text.

        Retries transient errors (429, connection, timeout, 5xx) with
        exponential back-off. Authentication and bad-request errors
        propagate immediately.
        """
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_MESSAGE},
                {"role": "user", "content": prompt},
            ],
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        return response.choices[0].message.content or ""

    def analyze(self, document: FormattedDocument) -> AnalysisResult:
        """Analyze a merged document.

        Raises:
            AnalysisResponseError: If the response is not a usable JSON object.
            ValueError: If no API key is configured.
        """
        prompt = build_analysis_prompt(document)
        logger.info(
            "Requesting analysis (model=%s, prompt=%d characters)", self.model, len(prompt)
        )
        raw = self._complete(prompt)
        logger.debug("Analyzer returned %d characters", len(raw))

        result = parse_analysis_payload(raw)
        result.metadata.update({
            "model": self.model,
            "mock": False,
            "prompt_length": len(prompt),
            "response_length": len(raw),
        })
        result.warnings = validate_analysis(result, document)
        logger.info(
            "Analysis complete: %d resources, %d relationships (%d/%d skipped)",
            len(result.resources),
            len(result.relationships),
            result.skipped_resources,
            result.skipped_relationships,
        )
        return result


def get_analyzer(use_mock: Optional[bool] = None) -> SemanticAnalyzer:
    """Return the mock or real analyzer based on ``USE_MOCK_ANALYZER``."""
    if use_mock is None:
        use_mock = USE_MOCK_ANALYZER
    if use_mock:
        return MockInfrastructureAnalyzer()
    return LLMInfrastructureAnalyzer()
