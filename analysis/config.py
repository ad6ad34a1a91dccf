"""
Configuration constants for the semantic infrastructure analyzer.

Environment variables are loaded from a .env file at module import time via
python-dotenv. The analyzer talks to an OpenAI-compatible chat completions
endpoint (OpenRouter by default).
"""

import os

from dotenv import load_dotenv

from core.startup_config import env_flag, env_float, env_int

# ---------------------------------------------------------------------------
# Load .env file (idempotent; does nothing if already loaded or missing)
# ---------------------------------------------------------------------------
load_dotenv()

# ---------------------------------------------------------------------------
# OpenRouter / chat completions configuration
# ---------------------------------------------------------------------------
OPENROUTER_API_KEY: str = os.getenv("OPENROUTER_API_KEY", "")
OPENROUTER_BASE_URL: str = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
ANALYZER_MODEL: str = os.getenv("ANALYZER_MODEL", "openai/gpt-3.5-turbo")
ANALYZER_MAX_TOKENS: int = env_int("ANALYZER_MAX_TOKENS", 4000, minimum=1)
ANALYZER_TEMPERATURE: float = env_float("ANALYZER_TEMPERATURE", 0.2, minimum=0.0, maximum=2.0)

# Toggle: set USE_MOCK_ANALYZER=true in .env to skip real API calls
USE_MOCK_ANALYZER: bool = env_flag("USE_MOCK_ANALYZER", default=False)

# Retry configuration for analyzer API calls (used by tenacity)
ANALYZER_MAX_RETRIES: int = 3
ANALYZER_RETRY_MIN_WAIT: int = 2   # seconds
ANALYZER_RETRY_MAX_WAIT: int = 30  # seconds

# ---------------------------------------------------------------------------
# Response validation
# ---------------------------------------------------------------------------
DEFAULT_CONFIDENCE: float = 0.5
# Fewer resources than this share of the declared count triggers a warning.
MIN_RESOURCE_COVERAGE: float = 0.5
# Documents longer than this are flagged as possibly exceeding model context.
LARGE_CONTENT_WARNING: int = 50_000
