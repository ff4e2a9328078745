"""
gcp_clients.py - Google Cloud + Vertex AI helpers for LifeSync

This module connects the API to its two managed collaborators:
1. Firestore: the entity store for every user record and reference table.
2. Vertex AI generative models: the LLM that turns aggregated metrics into
   coaching text. Every call passes a JSON response schema and expects a
   JSON object back.

Main features:
- Loads environment variables from a `.env` file on import.
- `vertex_generate_json()` makes exactly LLM_MAX_ATTEMPTS attempts (1 by
  default, so no retry) and raises UpstreamError when the model fails,
  is blocked, or returns something that is not a JSON object.
- `fill_schema_defaults()` lets handlers tolerate responses that omit
  optional fields.
- `get_firestore_client()` and `get_llm()` are the FastAPI dependencies the
  handlers use; tests override them.

The module is import-safe: if the Vertex SDK is not installed, generation
raises UpstreamError at call time instead of breaking the import.
"""

import asyncio
import json
import logging
import os
import re
from typing import Any, Dict, Optional

from dotenv import load_dotenv, find_dotenv
from google.cloud import firestore

from .errors import UpstreamError

try:
    import vertexai
    from vertexai.generative_models import GenerationConfig, GenerativeModel
    _VERTEX_AVAILABLE = True
except Exception:
    vertexai = None
    GenerationConfig = None
    GenerativeModel = None
    _VERTEX_AVAILABLE = False

_logger = logging.getLogger(__name__)
_logger.addHandler(logging.NullHandler())

# --- Load environment variables on import ---
try:
    _env_path = find_dotenv()
    if _env_path:
        load_dotenv(_env_path, override=False)
        _logger.debug("Loaded .env from %s", _env_path)
    else:
        load_dotenv(override=False)
except Exception as e:
    _logger.warning("Error loading .env: %s", e)

# --- Environment configuration (defaults provided) ---
GCP_PROJECT: Optional[str] = os.environ.get("GCP_PROJECT")
GCP_LOCATION: str = os.environ.get("GCP_LOCATION", "us-central1")
VERTEX_MODEL_NAME: Optional[str] = os.environ.get("VERTEX_MODEL_NAME")
LLM_TEMPERATURE: float = float(os.environ.get("LLM_TEMPERATURE", "0.4"))
LLM_MAX_OUTPUT_TOKENS: int = int(os.environ.get("LLM_MAX_OUTPUT_TOKENS", "4096"))
LLM_MAX_ATTEMPTS: int = max(1, int(os.environ.get("LLM_MAX_ATTEMPTS", "1")))

_vertex_initialized = False


def init_vertex() -> None:
    """
    Initialize the Vertex AI SDK.
    - Safe to call multiple times.
    - Does nothing if the SDK is missing or already initialized.
    """
    global _vertex_initialized
    if _vertex_initialized or not _VERTEX_AVAILABLE:
        if not _VERTEX_AVAILABLE:
            _logger.debug("Vertex AI python package not available.")
        return

    try:
        _logger.info("Initializing Vertex AI: project=%s, location=%s", GCP_PROJECT, GCP_LOCATION)
        vertexai.init(project=GCP_PROJECT, location=GCP_LOCATION)
        _vertex_initialized = True
        _logger.info("Vertex AI initialized successfully")
    except Exception as e:
        _logger.exception("Vertex AI initialization failed: %s", e)
        _vertex_initialized = False


# -------------------------
# JSON helpers
# -------------------------
def _extract_json_from_raw(raw: Optional[str]) -> Dict[str, Any]:
    """
    Parse model output into a dict.

    Structured-output calls normally return bare JSON, but some models still
    wrap it in prose or code fences; in that case the first {...} block is
    parsed. Returns {} when nothing parseable is found.
    """
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
        return parsed if isinstance(parsed, dict) else {}
    except json.JSONDecodeError:
        pass
    match = re.search(r"\{.*\}", raw, re.DOTALL)
    if not match:
        return {}
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


_TYPE_DEFAULTS = {
    "array": list,
    "string": str,
    "object": dict,
}


def fill_schema_defaults(result: Optional[Dict[str, Any]], schema: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of `result` in which every top-level property declared by
    `schema` exists. Missing arrays become [], strings "", objects {} and
    numbers None.
    """
    filled = dict(result or {})
    for name, prop in (schema.get("properties") or {}).items():
        if filled.get(name) is None:
            factory = _TYPE_DEFAULTS.get(prop.get("type"))
            filled[name] = factory() if factory else None
    return filled


# -------------------------
# LLM invocation
# -------------------------
async def vertex_generate_json(
    prompt_text: str,
    response_schema: Dict[str, Any],
    model_name: Optional[str] = None,
    temperature: Optional[float] = None,
    max_output_tokens: Optional[int] = None
) -> Dict[str, Any]:
    """
    Send one prompt + JSON schema to Vertex AI and return the parsed object.

    Args:
        prompt_text: Natural-language prompt with the aggregated context.
        response_schema: JSON schema the response must follow. Passed to the
            model as a structural constraint, not just as documentation.
        model_name: Override for VERTEX_MODEL_NAME.
        temperature / max_output_tokens: Overrides for the configured defaults.

    Raises:
        UpstreamError: SDK unavailable, no model configured, call failure,
            safety block, or a response that is not a JSON object.
    """
    if not _VERTEX_AVAILABLE:
        raise UpstreamError("LLM integration is not available")

    model_to_use = model_name or VERTEX_MODEL_NAME
    if not model_to_use:
        raise UpstreamError("No LLM model configured")

    init_vertex()
    if not _vertex_initialized:
        raise UpstreamError("LLM integration failed to initialize")

    model = GenerativeModel(model_to_use)
    generation_config = GenerationConfig(
        temperature=LLM_TEMPERATURE if temperature is None else temperature,
        max_output_tokens=max_output_tokens or LLM_MAX_OUTPUT_TOKENS,
        response_mime_type="application/json",
        response_schema=response_schema,
    )

    last_error: Optional[Exception] = None
    delay = 1.0
    for attempt in range(LLM_MAX_ATTEMPTS):
        try:
            response = await model.generate_content_async(prompt_text, generation_config=generation_config)
            if not response.candidates:
                _logger.warning("Vertex AI response was blocked. Prompt Feedback: %s", response.prompt_feedback)
                raise UpstreamError("LLM response was blocked")

            parsed = _extract_json_from_raw(response.candidates[0].content.parts[0].text)
            if not parsed:
                raise UpstreamError("LLM returned a response that is not a JSON object")
            return parsed

        except UpstreamError:
            raise
        except Exception as e:
            last_error = e
            _logger.warning("Attempt %d: Vertex AI generation failed: %s", attempt + 1, e)
            if attempt < LLM_MAX_ATTEMPTS - 1:
                await asyncio.sleep(delay)
                delay *= 2

    raise UpstreamError(f"LLM call failed: {last_error}")


class VertexLLM:
    """LLMInvoker: (prompt, json_schema) -> structured JSON dict."""

    def __init__(self, model_name: Optional[str] = None):
        self.model_name = model_name

    async def invoke(self, prompt: str, response_schema: Dict[str, Any]) -> Dict[str, Any]:
        return await vertex_generate_json(prompt, response_schema, model_name=self.model_name)


def get_llm() -> VertexLLM:
    """FastAPI dependency returning the LLM invoker."""
    return VertexLLM()


def get_firestore_client() -> Optional[firestore.Client]:
    """
    Initialize and return a Firestore client.

    Returns:
        Firestore client instance, or None on failure.
    """
    try:
        _logger.debug("Initializing Firestore client for project: %s", GCP_PROJECT)
        return firestore.Client(project=GCP_PROJECT)
    except Exception as e:
        _logger.exception("Firestore client initialization failed: %s", e)
        return None
