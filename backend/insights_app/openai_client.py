from __future__ import annotations

import logging

import httpx
from openai import APIStatusError, OpenAI

from .config import Settings
from .errors import EmptyResponse, GatewayError, MissingConfiguration, PaymentRequired, RateLimited

logger = logging.getLogger(__name__)

ERROR_BODY_LIMIT = 500


def get_openai_client(settings: Settings, http_client: httpx.Client | None = None) -> OpenAI:
    if not settings.api_key:
        raise MissingConfiguration("AI_GATEWAY_API_KEY is not configured")
    # One attempt per invocation; the SDK retries 429s and 5xxs unless told not to.
    return OpenAI(
        api_key=settings.api_key,
        base_url=settings.base_url,
        max_retries=0,
        http_client=http_client,
    )


def _error_body(exc: APIStatusError) -> str:
    try:
        return exc.response.text[:ERROR_BODY_LIMIT]
    except httpx.ResponseNotRead:
        return str(exc.message)[:ERROR_BODY_LIMIT]


def complete_chat(
    client: OpenAI,
    messages: list[dict[str, str]],
    model: str,
    temperature: float = 0.7,
) -> str:
    try:
        completion = client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            stream=False,
        )
    except APIStatusError as exc:
        if exc.status_code == 429:
            raise RateLimited() from exc
        if exc.status_code == 402:
            raise PaymentRequired() from exc
        body = _error_body(exc)
        logger.error("AI gateway error: %s %s", exc.status_code, body)
        raise GatewayError(exc.status_code, body) from exc

    choices = getattr(completion, "choices", None) or []
    message = getattr(choices[0], "message", None) if choices else None
    content = getattr(message, "content", None)
    if not content:
        raise EmptyResponse()
    return content
