"""Core data models for daberu."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Union

# --- Enums ---


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


# --- Conversation ---


@dataclass(frozen=True)
class Message:
    """A single turn in a conversation."""

    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


# Conversation order is tuple order; new turns produce a new tuple.
Transcript = tuple[Message, ...]


def append(transcript: Transcript, *messages: Message) -> Transcript:
    """Return a new transcript with ``messages`` added at the end."""
    return (*transcript, *messages)


# --- Resources ---


@dataclass(frozen=True)
class FileSpec:
    """Attach the contents of a file."""

    path: Path


@dataclass(frozen=True)
class ShellSpec:
    """Attach the standard output of a shell command."""

    command: str
    shell: str = "sh"


ResourceSpec = Union[FileSpec, ShellSpec]


@dataclass(frozen=True)
class Resource:
    """External text folded into a user turn.

    ``content`` holds the raw bytes after truncation. The cut is made on the
    byte stream, so it may split a multi-byte character; ``text`` decodes
    with replacement characters in that case.
    """

    provenance: str
    content: bytes
    truncated: bool = False

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


# --- Run ---


@dataclass
class RunConfig:
    """Resolved values for one conversation run."""

    provider: str = "openai"
    model: str = "gpt-4o"
    api_key: str | None = None
    system: str | None = None
    log_path: Path | None = None
    continue_mode: bool = False
    resources: list[ResourceSpec] = field(default_factory=list)
    resource_size_limit: int = 102400
    allow_partial_output: bool = False
    provider_options: dict = field(default_factory=dict)


@dataclass
class RunOutcome:
    """Result of a successful run."""

    assistant_text: str
    transcript: Transcript
