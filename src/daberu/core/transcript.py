"""Transcript persistence: the JSON conversation log."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from daberu import DaberuError
from daberu.core.fileutil import atomic_write
from daberu.core.models import Message, Role, Transcript

log = logging.getLogger(__name__)


class StoreError(DaberuError):
    """Base error for transcript persistence."""


class CorruptLogError(StoreError):
    """The log file exists but is not a valid message array."""


class StoreIOError(StoreError):
    """Reading or writing the log file failed at the OS level."""


class TranscriptStore:
    """Load and save transcripts.

    The log file is a JSON array of ``{"role", "content"}`` objects.
    ``save`` is the only writer and always writes the complete transcript.
    """

    def load(self, path: Path | None, continue_mode: bool) -> Transcript:
        """Load the history for a run.

        Returns an empty transcript when there is no log path, no log file,
        or when ``continue_mode`` is off (the old file will be overwritten
        on save).
        """
        if path is None:
            return ()
        if not path.exists():
            log.debug("No log file at %s, starting fresh", path)
            return ()
        if not continue_mode:
            log.debug("Ignoring existing log %s (continue mode off)", path)
            return ()
        return self.read(path)

    def read(self, path: Path) -> Transcript:
        """Parse the log file at ``path``.

        Raises:
            StoreIOError: The file cannot be read.
            CorruptLogError: The content is not a valid message array.
        """
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise CorruptLogError(f"Log file {path} is not valid UTF-8: {e}") from e
        except OSError as e:
            raise StoreIOError(f"Failed to read log file {path}: {e}") from e

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CorruptLogError(f"Failed to parse log file {path}: {e}") from e

        transcript = parse_transcript(data, source=str(path))
        log.info("Loaded %d message(s) from %s", len(transcript), path)
        return transcript

    def save(self, path: Path | None, transcript: Transcript) -> None:
        """Atomically overwrite ``path`` with the full transcript."""
        if path is None:
            return
        content = dump_transcript(transcript)
        try:
            atomic_write(path, content)
        except UnicodeEncodeError as e:
            raise StoreIOError(f"Failed to encode log file {path} as UTF-8: {e}") from e
        except OSError as e:
            raise StoreIOError(f"Failed to save log file {path}: {e}") from e
        log.info("Saved %d message(s) to %s", len(transcript), path)


def dump_transcript(transcript: Transcript) -> str:
    """Serialize a transcript to the log file format."""
    return json.dumps(
        [m.to_dict() for m in transcript],
        ensure_ascii=False,
        indent=2,
    ) + "\n"


def parse_transcript(data: object, source: str = "<log>") -> Transcript:
    """Validate decoded JSON and build a Transcript from it."""
    if not isinstance(data, list):
        raise CorruptLogError(
            f"Log file {source} must contain a JSON array, got {type(data).__name__}"
        )

    messages: list[Message] = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise CorruptLogError(f"Log file {source}: entry {i} is not an object")
        role = item.get("role")
        content = item.get("content")
        try:
            parsed_role = Role(role)
        except ValueError as e:
            raise CorruptLogError(
                f"Log file {source}: entry {i} has unknown role {role!r}"
            ) from e
        if not isinstance(content, str):
            raise CorruptLogError(
                f"Log file {source}: entry {i} has no string 'content'"
            )
        try:
            content.encode("utf-8")
        except UnicodeEncodeError as e:
            raise CorruptLogError(
                f"Log file {source}: entry {i} holds text that is not valid Unicode: {e}"
            ) from e
        messages.append(Message(role=parsed_role, content=content))
    return tuple(messages)
