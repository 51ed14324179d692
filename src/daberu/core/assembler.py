"""Build the next user turn from stdin, resources and the system message."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from daberu.core.models import Message, Resource, Role, Transcript, append

log = logging.getLogger(__name__)

RESOURCE_HEADER = "===== BEGIN RESOURCE: {provenance}{note} ====="
RESOURCE_FOOTER = "===== END RESOURCE: {provenance} ====="


def format_resource(resource: Resource) -> str:
    """Wrap a resource body between provenance header and footer lines."""
    note = " (truncated)" if resource.truncated else ""
    body = resource.text
    if body and not body.endswith("\n"):
        body += "\n"
    return (
        RESOURCE_HEADER.format(provenance=resource.provenance, note=note)
        + "\n"
        + body
        + RESOURCE_FOOTER.format(provenance=resource.provenance)
    )


def build_user_content(stdin_text: str, resources: Sequence[Resource]) -> str:
    """Resources first, in order, then a blank line, then the live prompt."""
    if not resources:
        return stdin_text
    blocks = "\n\n".join(format_resource(r) for r in resources)
    return f"{blocks}\n\n{stdin_text}"


def assemble(
    transcript: Transcript,
    stdin_text: str,
    resources: Sequence[Resource] = (),
    system_text: str | None = None,
) -> Transcript:
    """Return ``transcript`` extended by the optional system message and one user turn.

    System message policy:
      * no leading system message: ``system_text`` becomes the first message;
      * leading system message present: ``system_text`` is appended after the
        history as an additional system message, never dropped.
    """
    result = transcript

    if system_text is not None:
        system = Message(role=Role.SYSTEM, content=system_text)
        if not result or result[0].role is not Role.SYSTEM:
            result = (system, *result)
        else:
            log.info("History already has a system message, appending another")
            result = append(result, system)

    user = Message(role=Role.USER, content=build_user_content(stdin_text, resources))
    return append(result, user)
