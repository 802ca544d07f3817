"""
HTTP utility functions shared by the GitHub and Coolify clients.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from sovereignlabs.coolify_mcp_server.utils.errors import UnexpectedResponseFormat

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

EXCERPT_LENGTH = 150


def excerpt(text: str, length: int = EXCERPT_LENGTH) -> str:
    """Shortens a response body for error messages."""
    text = (text or "").strip()
    if len(text) <= length:
        return text
    return text[:length] + "..."


def looks_like_html(text: str) -> bool:
    head = (text or "").lstrip()[:200].lower()
    return head.startswith("<!doctype") or "<html" in head


def create_client(
    timeout: float, headers: Optional[Dict[str, str]] = None, base_url: str = ""
) -> httpx.AsyncClient:
    """Creates an async client with a bounded timeout on every phase of the request."""
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=httpx.Timeout(timeout),
        headers=headers or {},
        follow_redirects=True,
    )


async def get_with_retry(
    client: httpx.AsyncClient,
    url: str,
    retries: int = 2,
    backoff: float = 0.5,
    **kwargs: Any,
) -> httpx.Response:
    """
    Performs a GET, retrying transport errors and 5xx responses.

    Only idempotent reads go through here; writes are single-attempt.

    Args:
        client: HTTP client
        url: Absolute URL or path relative to the client's base URL
        retries: Number of retries after the first attempt
        backoff: Initial delay in seconds, doubled after each retry

    Returns:
        The last response received

    Raises:
        httpx.TransportError: If every attempt failed at the transport level
    """
    delay = backoff
    for attempt in range(retries + 1):
        try:
            response = await client.get(url, **kwargs)
        except httpx.TransportError as e:
            if attempt >= retries:
                raise
            logger.warning(f"GET {url} failed ({e.__class__.__name__}), retrying in {delay}s")
        else:
            if response.status_code < 500 or attempt >= retries:
                return response
            logger.warning(f"GET {url} returned {response.status_code}, retrying in {delay}s")
        await asyncio.sleep(delay)
        delay *= 2

    raise RuntimeError(f"GET {url} exhausted retries")


def parse_json_response(response: httpx.Response, context: str) -> Any:
    """
    Parses a JSON body, turning HTML error pages and other non-JSON bodies
    into UnexpectedResponseFormat.

    Args:
        response: Response to parse
        context: Name of the call, used in the error message

    Returns:
        Decoded JSON value
    """
    text = response.text
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        if looks_like_html(text):
            raise UnexpectedResponseFormat(
                f"{context}: HTML response received (status {response.status_code}). "
                "Is a reverse proxy answering instead of the API? Check the URL and port.",
                excerpt(text),
            ) from None
        raise UnexpectedResponseFormat(
            f"{context}: invalid JSON response (status {response.status_code}): {excerpt(text)}",
            excerpt(text),
        ) from None


def parse_model(model: Type[ModelT], data: Any, context: str) -> ModelT:
    """Validates decoded JSON against a response schema."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise UnexpectedResponseFormat(
            f"{context}: response does not match the expected {model.__name__} shape "
            f"({e.error_count()} validation errors)",
            excerpt(json.dumps(data, default=str)),
        ) from None
