"""HTTP Request capability: httpx call with JMESPath response extraction."""

import json
import logging
import time
from typing import Any

import httpx
import jmespath

from relayflow.capabilities.plugin import capability
from relayflow.config import config

logger = logging.getLogger(__name__)

_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"}


def _as_mapping(value: Any, field: str) -> dict:
    """Accept a dict or a JSON object string (as templates produce)."""
    if value is None or value == "":
        return {}
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        parsed = json.loads(value)
        if isinstance(parsed, dict):
            return parsed
    raise ValueError(f"{field} must be an object")


def _parse_response_body(content: bytes, encoding: str = "utf-8") -> Any:
    """JSON when it parses, text otherwise."""
    if not content:
        return None
    try:
        return json.loads(content)
    except (json.JSONDecodeError, ValueError):
        return content.decode(encoding, errors="replace")


async def _execute_single(
    method: str,
    url: str,
    query_params: dict,
    client_kwargs: dict,
    request_kwargs: dict,
) -> tuple:
    """Send one request; returns (response, content, elapsed_ms)."""
    start = time.monotonic()
    async with httpx.AsyncClient(**client_kwargs) as client:
        extra = {"params": query_params} if query_params else {}
        response = await client.request(method, url, **extra, **request_kwargs)
        content = response.content
    elapsed_ms = int((time.monotonic() - start) * 1000)
    return response, content, elapsed_ms


@capability(name="HTTP Request", label="HTTP Request", category="system")
async def http_request(step_input: dict) -> dict:
    """Call an HTTP endpoint and return status, headers and parsed body.

    Config keys: url, method, headers, body, queryParams, responsePath.
    A 4xx/5xx status fails the step with the response attached in the message.
    """
    url = step_input.get("url")
    if not url:
        return {"success": False, "error": "HTTP Request requires a url."}

    method = str(step_input.get("method") or "GET").upper()
    if method not in _METHODS:
        return {"success": False, "error": f"Unsupported HTTP method: {method}"}

    headers = {k: str(v) for k, v in _as_mapping(step_input.get("headers"), "headers").items()}
    query_params = _as_mapping(step_input.get("queryParams"), "queryParams")

    request_kwargs: dict = {"headers": headers}
    body = step_input.get("body")
    if body is not None and body != "" and method not in ("GET", "HEAD"):
        if isinstance(body, str):
            try:
                request_kwargs["json"] = json.loads(body)
            except (json.JSONDecodeError, ValueError):
                request_kwargs["content"] = body.encode()
        else:
            request_kwargs["json"] = body

    client_kwargs = {"timeout": config.http_default_timeout_s}

    logger.info(f"[HTTP] {method} {url}")
    response, content, elapsed_ms = await _execute_single(
        method, url, query_params, client_kwargs, request_kwargs
    )
    parsed_body = _parse_response_body(content)

    response_path = step_input.get("responsePath")
    if response_path:
        parsed_body = jmespath.search(response_path, parsed_body)

    if response.status_code >= 400:
        return {
            "success": False,
            "error": f"HTTP {response.status_code} from {url}",
            "data": {"status": response.status_code, "body": parsed_body},
        }

    return {
        "status": response.status_code,
        "headers": dict(response.headers),
        "body": parsed_body,
        "url": str(response.url),
        "elapsed_ms": elapsed_ms,
    }
