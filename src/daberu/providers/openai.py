"""OpenAI Chat Completions adapter."""

from __future__ import annotations

import logging

from daberu.core.models import Message, Role, Transcript
from daberu.providers.base import (
    EmptyReplyError,
    IncompleteReplyError,
    MalformedReplyError,
    ProviderInfo,
    Transport,
    missing_key_error,
    post_json,
)

log = logging.getLogger(__name__)

_INCOMPLETE_REASONS = {
    "length": "Incomplete model output due to max_tokens parameter or token limit",
    "content_filter": "Omitted content due to a flag from the content filters",
}


class OpenAIAdapter:
    """Flat ``messages`` array with in-band system role."""

    def __init__(self, config: dict | None = None) -> None:
        config = config or {}
        self._base_url = config.get("base_url", "https://api.openai.com").rstrip("/")

    @property
    def name(self) -> str:
        return "openai"

    @property
    def info(self) -> ProviderInfo:
        return ProviderInfo(
            name="openai",
            display_name="ChatGPT (OpenAI)",
            api_key_env="OPENAI_API_KEY",
            key_url="https://platform.openai.com/api-keys",
        )

    def build_request(self, transcript: Transcript, model: str) -> dict:
        return {
            "model": model,
            "messages": [m.to_dict() for m in transcript],
        }

    def send(
        self,
        transcript: Transcript,
        model: str,
        api_key: str | None,
        transport: Transport,
    ) -> Message:
        if not api_key:
            raise missing_key_error(self.info)

        data = post_json(
            transport,
            f"{self._base_url}/v1/chat/completions",
            {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            self.build_request(transcript, model),
        )
        return Message(role=Role.ASSISTANT, content=self.parse_reply(data))

    def parse_reply(self, data: dict) -> str:
        # {"choices": [{"message": {"content": "..."}, "finish_reason": "stop"}]}
        choices = data.get("choices")
        if choices is None or choices == []:
            raise EmptyReplyError("OpenAI reply contained no choices")
        if not isinstance(choices, list) or not isinstance(choices[0], dict):
            raise MalformedReplyError("OpenAI reply 'choices' is not a list of objects")

        choice = choices[0]
        reason = choice.get("finish_reason")
        log.debug("OpenAI finish_reason=%s", reason)
        if isinstance(reason, str) and reason in _INCOMPLETE_REASONS:
            raise IncompleteReplyError(reason, _INCOMPLETE_REASONS[reason])

        message = choice.get("message")
        if message is None:
            raise EmptyReplyError("OpenAI reply contained no message")
        if not isinstance(message, dict):
            raise MalformedReplyError("OpenAI reply 'message' is not an object")
        content = message.get("content")
        if not isinstance(content, str) or not content:
            raise EmptyReplyError("OpenAI reply contained no assistant text")
        return content
