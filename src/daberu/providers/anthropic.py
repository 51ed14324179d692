"""Anthropic Messages API adapter."""

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

ANTHROPIC_VERSION = "2023-06-01"

_INCOMPLETE_REASONS = {
    "max_tokens": "Incomplete model output due to max_tokens limit",
    "refusal": "The model refused to answer",
}


class AnthropicAdapter:
    """System text goes in a top-level ``system`` field, not in ``messages``."""

    def __init__(self, config: dict | None = None) -> None:
        config = config or {}
        self._base_url = config.get("base_url", "https://api.anthropic.com").rstrip("/")
        self._max_tokens = config.get("max_tokens", 4096)

    @property
    def name(self) -> str:
        return "anthropic"

    @property
    def info(self) -> ProviderInfo:
        return ProviderInfo(
            name="anthropic",
            display_name="Claude (Anthropic)",
            api_key_env="ANTHROPIC_API_KEY",
            key_url="https://console.anthropic.com/settings/keys",
        )

    def build_request(self, transcript: Transcript, model: str) -> dict:
        # Every system message is kept, in order, wherever it sits.
        system_parts = [m.content for m in transcript if m.role is Role.SYSTEM]
        request: dict = {
            "model": model,
            "max_tokens": self._max_tokens,
            "messages": [m.to_dict() for m in transcript if m.role is not Role.SYSTEM],
        }
        if system_parts:
            request["system"] = "\n\n".join(system_parts)
        return request

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
            f"{self._base_url}/v1/messages",
            {
                "x-api-key": api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "content-type": "application/json",
            },
            self.build_request(transcript, model),
        )
        return Message(role=Role.ASSISTANT, content=self.parse_reply(data))

    def parse_reply(self, data: dict) -> str:
        # {"content": [{"type": "text", "text": "..."}], "stop_reason": "end_turn"}
        reason = data.get("stop_reason")
        log.debug("Anthropic stop_reason=%s", reason)
        if isinstance(reason, str) and reason in _INCOMPLETE_REASONS:
            raise IncompleteReplyError(reason, _INCOMPLETE_REASONS[reason])

        blocks = data.get("content")
        if blocks is None:
            blocks = []
        if not isinstance(blocks, list):
            raise MalformedReplyError("Anthropic reply 'content' is not a list")
        texts = [
            b["text"]
            for b in blocks
            if isinstance(b, dict) and b.get("type") == "text" and isinstance(b.get("text"), str)
        ]
        content = "".join(texts)
        if not content:
            raise EmptyReplyError("Anthropic reply contained no text content blocks")
        return content
