"""Completion gateway — the single seam between the agents and the chat model.

The gateway is constructed once with immutable settings and handed to every
agent. It does not retry; callers map any failure to their own fallback.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Iterator, Type, TypeVar

from openai import OpenAI
from pydantic import BaseModel, ValidationError

from . import config

logger = logging.getLogger("workshop.llm")

ModelT = TypeVar("ModelT", bound=BaseModel)

# Stored history uses "ai"/"user"; the chat API wants "assistant"/"user".
_ROLE_MAP = {"ai": "assistant", "assistant": "assistant", "user": "user"}


class StructuredOutputError(Exception):
    """The model's reply was not valid JSON or did not match the expected schema."""


@dataclass(frozen=True)
class GatewaySettings:
    api_key: str
    base_url: str
    model: str
    temperature: float = 0.7
    timeout: float | None = 60.0

    @classmethod
    def from_config(cls) -> "GatewaySettings":
        return cls(
            api_key=config.LLM_API_KEY,
            base_url=config.LLM_BASE_URL,
            model=config.LLM_MODEL,
            temperature=config.LLM_TEMPERATURE,
            timeout=config.LLM_TIMEOUT_SECONDS,
        )


def to_chat_messages(history: list) -> list[dict]:
    """Convert stored chat entries (dicts or models with role/content) to API messages."""
    messages = []
    for entry in history:
        if isinstance(entry, dict):
            role, content = entry["role"], entry["content"]
        else:
            role, content = entry.role, entry.content
        messages.append({"role": _ROLE_MAP.get(role, "user"), "content": content})
    return messages


# Leading fence with optional language tag; the closing fence may be missing or on the same line
_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*([\s\S]*?)\s*(?:```)?$", re.IGNORECASE)


def _strip_code_fence(raw: str) -> str:
    raw = raw.strip()
    match = _CODE_FENCE_RE.match(raw)
    return match.group(1) if match else raw


class CompletionGateway:
    """Wraps an OpenAI-compatible chat-completions endpoint."""

    def __init__(self, settings: GatewaySettings, client: OpenAI | None = None):
        self.settings = settings
        if client is None:
            # No retries at this layer.
            client = OpenAI(
                api_key=settings.api_key,
                base_url=settings.base_url,
                timeout=settings.timeout,
                max_retries=0,
            )
        self._client = client

    def _messages(self, system_prompt: str, conversation: list[dict]) -> list[dict]:
        return [{"role": "system", "content": system_prompt}] + list(conversation)

    def complete(self, system_prompt: str, conversation: list[dict]) -> str:
        """Free-text completion."""
        response = self._client.chat.completions.create(
            model=self.settings.model,
            temperature=self.settings.temperature,
            messages=self._messages(system_prompt, conversation),
        )
        self._log_usage(response)
        return (response.choices[0].message.content or "").strip()

    def complete_structured(
        self,
        system_prompt: str,
        conversation: list[dict],
        schema: Type[ModelT],
    ) -> ModelT:
        """JSON-object completion validated against ``schema``.

        Raises StructuredOutputError when the reply cannot be parsed or validated.
        """
        response = self._client.chat.completions.create(
            model=self.settings.model,
            temperature=self.settings.temperature,
            messages=self._messages(system_prompt, conversation),
            response_format={"type": "json_object"},
        )
        self._log_usage(response)
        raw = _strip_code_fence(response.choices[0].message.content or "")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StructuredOutputError(f"Reply is not valid JSON: {e}") from e
        try:
            return schema.model_validate(data)
        except ValidationError as e:
            raise StructuredOutputError(
                f"Reply does not match {schema.__name__}: {e.error_count()} error(s)"
            ) from e

    def stream(self, system_prompt: str, conversation: list[dict]) -> Iterator[str]:
        """Yield text increments of a free-text completion.

        The iterator is finite and single-use; it is not restartable.
        """
        stream = self._client.chat.completions.create(
            model=self.settings.model,
            temperature=self.settings.temperature,
            messages=self._messages(system_prompt, conversation),
            stream=True,
        )
        for chunk in stream:
            if not chunk.choices:
                continue
            text = chunk.choices[0].delta.content
            if text:
                yield text

    def _log_usage(self, response) -> None:
        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.debug(
                "API usage - prompt_tokens: %s, completion_tokens: %s",
                getattr(usage, "prompt_tokens", "?"),
                getattr(usage, "completion_tokens", "?"),
            )
