"""Model boundary for every generation call.

All text, vision and image generation goes through Amazon Bedrock. Calls
that need live web content (lead discovery, brand research) are grounded by
fetching pages through the Jina reader/search endpoints and embedding them
in the prompt; the fetched URLs come back as grounding metadata.

Schema-directed calls hand the schema to the model as a forced tool and
return the tool input as JSON text. That text is still run through lenient
JSON recovery by ``generate_json``; the model is not trusted to honour the
schema.
"""

import base64
import json
import os
import re
import urllib.parse
import urllib.request
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import boto3
import structlog
from botocore.config import Config

from concierge.models.usage import CapabilityContext, UsageLedger
from concierge.services.credits import charge
from concierge.services.feature_gate import require_capability
from concierge.services.json_recovery import RecoveryResult, recover_json

logger = structlog.get_logger()

# Bedrock model configuration
# Using cross-region inference profiles (us. prefix) for newer models
DEFAULT_MODEL = os.environ.get("TEXT_MODEL", "us.anthropic.claude-sonnet-4-5-20250929-v1:0")
FAST_MODEL = os.environ.get("FAST_MODEL", "us.anthropic.claude-haiku-4-5-20251001-v1:0")
VISION_MODEL = os.environ.get("VISION_MODEL", DEFAULT_MODEL)
IMAGE_MODEL = os.environ.get("IMAGE_MODEL", "amazon.titan-image-generator-v2:0")

JINA_TIMEOUT = int(os.environ.get("JINA_TIMEOUT", "12"))

# Per-source cap on fetched web content embedded in a prompt
MAX_CONTEXT_CHARS = 8000

STRUCTURED_OUTPUT_TOOL = "structured_output"

# Bedrock timeout configuration
# Prevents hung requests from blocking Lambda execution indefinitely
BEDROCK_CONFIG = Config(
    read_timeout=120,
    connect_timeout=10,
    retries={
        "max_attempts": 2,
        "mode": "adaptive",
    },
)

bedrock = boto3.client("bedrock-runtime", config=BEDROCK_CONFIG)

_DATA_URL_RE = re.compile(r"^data:(image/[a-zA-Z0-9.+-]+);base64,(.+)$", re.DOTALL)
_SOURCE_URL_RE = re.compile(r"URL Source:\s*(\S+)")


@dataclass(frozen=True)
class ModelResponse:
    """Text returned by the model plus the sources it was grounded on."""

    text: str
    grounding: list[dict[str, str]] = field(default_factory=list)


@dataclass(frozen=True)
class Generation:
    """Result of a (possibly billed) generation call.

    ``ledger`` is the debited ledger for billed calls, None otherwise.
    ``data`` is set by ``generate_json``.
    """

    response: ModelResponse
    ledger: UsageLedger | None = None
    data: RecoveryResult | None = None


def fetch_url(url: str) -> str:
    """Fetch a page as markdown via Jina Reader (renders JavaScript).

    Returns:
        Markdown content, or empty string on failure.
    """
    try:
        req = urllib.request.Request(
            f"https://r.jina.ai/{url}",
            headers={
                "Accept": "text/markdown",
                "User-Agent": "concierge-ai/1.0",
            },
        )
        with urllib.request.urlopen(req, timeout=JINA_TIMEOUT) as response:
            md = response.read().decode("utf-8", errors="replace")
        return re.sub(r"\n{3,}", "\n\n", md).strip()
    except Exception as e:
        logger.debug("Jina fetch failed", url=url, error=str(e))
        return ""


def search_web(query: str) -> str:
    """Search the web via Jina Search.

    Returns:
        Search results as markdown, or empty string on failure.
    """
    try:
        req = urllib.request.Request(
            f"https://s.jina.ai/{urllib.parse.quote(query)}",
            headers={
                "Accept": "text/markdown",
                "User-Agent": "concierge-ai/1.0",
            },
        )
        with urllib.request.urlopen(req, timeout=JINA_TIMEOUT) as response:
            md = response.read().decode("utf-8", errors="replace")
        return re.sub(r"\n{3,}", "\n\n", md).strip()
    except Exception as e:
        logger.debug("Jina search failed", query=query, error=str(e))
        return ""


def _gather_context(
    web_search: str | None,
    url_context: Sequence[str],
) -> tuple[str, list[dict[str, str]]]:
    """Fetch grounding content and describe where it came from."""
    sections: list[str] = []
    grounding: list[dict[str, str]] = []

    if web_search:
        results = search_web(web_search)
        if results:
            sections.append(f"=== WEB SEARCH RESULTS ===\n{results[:MAX_CONTEXT_CHARS]}")
            for uri in dict.fromkeys(_SOURCE_URL_RE.findall(results)):
                grounding.append({"uri": uri, "source": "web_search"})

    for url in url_context:
        content = fetch_url(url)
        if content:
            sections.append(f"=== CONTENT OF {url} ===\n{content[:MAX_CONTEXT_CHARS]}")
            grounding.append({"uri": url, "source": "url_context"})

    return "\n\n".join(sections), grounding


def image_block(image: str) -> dict[str, Any]:
    """Build an Anthropic image content block from a ``data:`` URL."""
    match = _DATA_URL_RE.match(image.strip())
    if not match:
        raise ValueError("Images must be base64 data URLs")
    media_type, data = match.groups()
    return {
        "type": "image",
        "source": {"type": "base64", "media_type": media_type, "data": data},
    }


def _schema_tool(schema: dict[str, Any]) -> dict[str, Any]:
    # Tool input must be an object; other schemas are wrapped under "result"
    if schema.get("type") != "object":
        schema = {"type": "object", "properties": {"result": schema}, "required": ["result"]}
    return {
        "name": STRUCTURED_OUTPUT_TOOL,
        "description": "Return the response in the required structure.",
        "input_schema": schema,
    }


def invoke_model(
    prompt: str,
    system: str | None = None,
    model: str = DEFAULT_MODEL,
    max_tokens: int = 4096,
    temperature: float = 0.7,
    images: Sequence[str] = (),
    response_schema: dict[str, Any] | None = None,
    web_search: str | None = None,
    url_context: Sequence[str] = (),
) -> ModelResponse:
    """Invoke a Bedrock model.

    Args:
        prompt: The user prompt.
        system: Optional system prompt.
        model: The model to use.
        max_tokens: Maximum tokens to generate.
        temperature: Sampling temperature.
        images: Images as base64 data URLs, sent ahead of the prompt.
        response_schema: JSON schema the answer must follow.
        web_search: Query to ground the answer on live search results.
        url_context: Pages to fetch and include as context.

    Returns:
        The response text (JSON text for schema calls) and grounding sources.
    """
    context, grounding = _gather_context(web_search, url_context)
    text_prompt = f"{context}\n\n{prompt}" if context else prompt

    content: list[dict[str, Any]] = [image_block(image) for image in images]
    content.append({"type": "text", "text": text_prompt})

    request_body: dict[str, Any] = {
        "anthropic_version": "bedrock-2023-05-31",
        "max_tokens": max_tokens,
        "temperature": temperature,
        "messages": [{"role": "user", "content": content}],
    }
    if system:
        request_body["system"] = system

    wrapped = False
    if response_schema is not None:
        tool = _schema_tool(response_schema)
        wrapped = tool["input_schema"] is not response_schema
        request_body["tools"] = [tool]
        request_body["tool_choice"] = {"type": "tool", "name": STRUCTURED_OUTPUT_TOOL}

    try:
        response = bedrock.invoke_model(
            modelId=model,
            body=json.dumps(request_body),
            contentType="application/json",
            accept="application/json",
        )
        response_body = json.loads(response["body"].read())
    except Exception as e:
        logger.error("Model invocation failed", model=model, error=str(e))
        raise

    texts: list[str] = []
    for block in response_body.get("content", []):
        if block.get("type") == "tool_use" and block.get("name") == STRUCTURED_OUTPUT_TOOL:
            tool_input = block.get("input")
            if wrapped and isinstance(tool_input, dict):
                tool_input = tool_input.get("result")
            return ModelResponse(text=json.dumps(tool_input), grounding=grounding)
        if block.get("type") == "text":
            texts.append(block.get("text", ""))

    return ModelResponse(text="".join(texts), grounding=grounding)


def generate(
    prompt: str,
    *,
    ledger: UsageLedger | None = None,
    operation: str | None = None,
    capability: CapabilityContext | None = None,
    feature: str | None = None,
    skip_check: bool = False,
    **kwargs: Any,
) -> Generation:
    """Run one logical generation step.

    The capability check (when ``feature`` is given) happens first, then the
    ledger is debited for ``operation``, then the model is called. A failed
    call keeps the debit; the exception carries the debited ledger as
    ``exc.ledger``.

    Args:
        prompt: The user prompt.
        ledger: Ledger to debit. Unbilled when None.
        operation: Billable operation name (see ``CREDIT_COSTS``).
        capability: Capability context for gated features.
        feature: Capability the step requires, if any.
        skip_check: Bypass the capability check right after selection.
        **kwargs: Passed to ``invoke_model``.

    Returns:
        The model response and the debited ledger.

    Raises:
        CapabilityRequiredError: If ``feature`` is gated and not selected.
        InsufficientCreditsError: If the ledger can't cover the operation.
    """
    if feature:
        require_capability(capability, feature, skip_check)

    if ledger is None:
        return Generation(response=invoke_model(prompt, **kwargs))

    if operation is None:
        raise ValueError("A billed generation needs an operation name")

    response, debited = charge(ledger, operation, lambda: invoke_model(prompt, **kwargs))
    return Generation(response=response, ledger=debited)


def generate_json(prompt: str, **kwargs: Any) -> Generation:
    """Like ``generate`` but always applies lenient JSON recovery to the text."""
    kwargs.setdefault("temperature", 0.5)
    generation = generate(prompt, **kwargs)
    return Generation(
        response=generation.response,
        ledger=generation.ledger,
        data=recover_json(generation.response.text),
    )


def generate_image(
    prompt: str,
    width: int = 1024,
    height: int = 1024,
    quality: str = "standard",
) -> bytes:
    """Generate an image using Amazon Titan Image Generator v2.

    Args:
        prompt: The image generation prompt.
        width: Image width (must be multiple of 64, 320-4096).
        height: Image height (must be multiple of 64, 320-4096).
        quality: Image quality ("standard" or "premium").

    Returns:
        Image bytes (PNG).

    Raises:
        NotImplementedError: If image generation is not available.
    """
    # Titan has a 512 character limit for prompts
    truncated_prompt = prompt[:512]

    request_body = {
        "taskType": "TEXT_IMAGE",
        "textToImageParams": {"text": truncated_prompt},
        "imageGenerationConfig": {
            "numberOfImages": 1,
            "quality": quality,
            "cfgScale": 8.0,
            "height": height,
            "width": width,
        },
    }

    try:
        response = bedrock.invoke_model(
            modelId=IMAGE_MODEL,
            body=json.dumps(request_body),
            contentType="application/json",
            accept="application/json",
        )
        response_body = json.loads(response["body"].read())
        return base64.b64decode(response_body["images"][0])

    except Exception as e:
        error_msg = str(e)
        if "AccessDenied" in error_msg or "not authorized" in error_msg.lower():
            logger.warning("Image model access denied", error=error_msg)
            raise NotImplementedError(
                "Image generation not available. Enable 'Titan Image Generator G1 v2' in AWS Bedrock Model Access."
            ) from e
        if "ValidationException" in error_msg and "content filters" in error_msg.lower():
            logger.warning("Image prompt blocked by content filter", prompt=truncated_prompt[:100])
            raise ValueError(
                "Image prompt was flagged by content filters. Try a different description."
            ) from e
        logger.error("Image generation failed", error=error_msg)
        raise
