"""Shared request and decoding helpers for tools that call HTTP providers."""

import json
from typing import Any, Callable, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..errors import ProviderError

ModelT = TypeVar("ModelT", bound=BaseModel)
ErrorExtractor = Callable[[Any], Optional[str]]


def json_body(response: httpx.Response) -> Any:
    """Returns the decoded JSON body, or None when there isn't one."""
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


async def send(
    client: httpx.AsyncClient,
    operation: str,
    method: str,
    url: str,
    *,
    timeout: float,
    extract_error: Optional[ErrorExtractor] = None,
    error_prefix: str = "api error",
    **kwargs: Any,
) -> httpx.Response:
    """Sends one request and converts transport and status failures.

    Non-2xx responses are reported with the provider's own message when
    ``extract_error`` can find one in the body, otherwise with the status.
    """
    try:
        response = await client.request(method, url, timeout=timeout, **kwargs)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise ProviderError(operation, f"request failed: {exc}") from exc

    if not response.is_success:
        detail = None
        if extract_error is not None:
            body = json_body(response)
            if body is not None:
                detail = extract_error(body)
        raise ProviderError(
            operation,
            detail or f"{error_prefix}: status {response.status_code}",
            status_code=response.status_code,
        )
    return response


def decode(response: httpx.Response, model: Type[ModelT], operation: str) -> ModelT:
    try:
        return model.model_validate_json(response.content)
    except ValidationError as exc:
        raise ProviderError(
            operation,
            f"decode response: {exc.error_count()} invalid field(s)",
            status_code=response.status_code,
        ) from exc
