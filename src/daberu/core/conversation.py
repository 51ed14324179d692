"""ConversationEngine: load history, attach resources, ask the model, save.

Run sequence (first failure aborts, nothing is retried):
  1. load the transcript
  2. load each resource
  3. assemble the new user turn
  4. send to the configured provider
  5. append the assistant reply
  6. save the full transcript
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from daberu import DaberuError
from daberu.core.assembler import assemble
from daberu.core.models import Resource, RunConfig, RunOutcome, append
from daberu.core.resource import ResourceLoader
from daberu.core.transcript import TranscriptStore
from daberu.providers.base import HttpxTransport, ProviderAdapter, Transport
from daberu.providers.registry import get_provider

log = logging.getLogger(__name__)


class RunError(DaberuError):
    """A run failed; ``stage`` names the step and ``cause`` the underlying error."""

    def __init__(self, stage: str, cause: Exception) -> None:
        super().__init__(f"{stage} failed: {cause}")
        self.stage = stage
        self.cause = cause


class ConversationEngine:
    """Wire store, loader, assembler and provider into one run.

    Collaborators are injected so tests can swap in fakes; by default the
    provider is looked up in the registry and requests go through httpx.
    """

    def __init__(
        self,
        store: TranscriptStore | None = None,
        loader: ResourceLoader | None = None,
        transport: Transport | None = None,
        provider_factory: Callable[[str, dict | None], ProviderAdapter] = get_provider,
    ) -> None:
        self._store = store or TranscriptStore()
        self._loader = loader or ResourceLoader()
        self._transport = transport or HttpxTransport()
        self._provider_factory = provider_factory

    def run(self, config: RunConfig, stdin_text: str) -> RunOutcome:
        """Execute one conversation turn.

        Raises:
            RunError: Wrapping the ResourceError, StoreError or ProviderError
                of the failing stage.
        """
        try:
            history = self._store.load(config.log_path, config.continue_mode)
        except DaberuError as e:
            raise RunError("load", e) from e

        resources = self._load_resources(config)

        transcript = assemble(history, stdin_text, resources, config.system)
        log.debug(
            "Assembled transcript: %d message(s) (%d from history, %d resource(s))",
            len(transcript),
            len(history),
            len(resources),
        )

        try:
            provider = self._provider_factory(config.provider, config.provider_options)
        except ValueError as e:
            raise RunError("send", e) from e

        log.info(
            "Sending %d message(s) to %s (model=%s)",
            len(transcript),
            provider.name,
            config.model,
        )
        try:
            reply = provider.send(transcript, config.model, config.api_key, self._transport)
        except DaberuError as e:
            # The log on disk stays exactly as loaded.
            raise RunError("send", e) from e

        final = append(transcript, reply)

        try:
            self._store.save(config.log_path, final)
        except DaberuError as e:
            raise RunError("save", e) from e

        return RunOutcome(assistant_text=reply.content, transcript=final)

    def _load_resources(self, config: RunConfig) -> list[Resource]:
        resources: list[Resource] = []
        for spec in config.resources:
            try:
                resource = self._loader.load(
                    spec,
                    config.resource_size_limit,
                    allow_partial=config.allow_partial_output,
                )
            except DaberuError as e:
                raise RunError("resource", e) from e
            log.info(
                "Loaded resource %s (%d bytes%s)",
                resource.provenance,
                len(resource.content),
                ", truncated" if resource.truncated else "",
            )
            resources.append(resource)
        return resources
