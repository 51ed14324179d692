"""Resource loading: file contents and shell-command output, size-capped."""

from __future__ import annotations

import logging
import subprocess

from daberu import DaberuError
from daberu.core.models import FileSpec, Resource, ResourceSpec, ShellSpec

log = logging.getLogger(__name__)


class ResourceError(DaberuError):
    """Base error for resource loading."""

    def __init__(self, provenance: str, message: str) -> None:
        super().__init__(message)
        self.provenance = provenance


class ResourceNotFoundError(ResourceError):
    """The resource file does not exist."""


class ResourceNotReadableError(ResourceError):
    """The resource exists but could not be read (permissions, IO, spawn failure)."""


class CommandFailedError(ResourceError):
    """A shell-command resource exited with a non-zero status.

    ``partial`` carries the captured (already size-capped) output only when
    the caller asked for it; otherwise it is None.
    """

    def __init__(
        self,
        provenance: str,
        code: int,
        stderr: str = "",
        partial: Resource | None = None,
    ) -> None:
        message = f"Shell command `{provenance}` failed with exit code {code}"
        if stderr.strip():
            message += f": {stderr.strip()}"
        super().__init__(provenance, message)
        self.code = code
        self.stderr = stderr
        self.partial = partial


def truncate(provenance: str, data: bytes, byte_limit: int) -> Resource:
    """Cap ``data`` at ``byte_limit`` bytes and wrap it as a Resource.

    The cut is made on raw bytes and may land inside a multi-byte character.
    """
    if byte_limit < 0:
        raise ValueError(f"byte_limit must be >= 0, got {byte_limit}")
    if len(data) <= byte_limit:
        return Resource(provenance=provenance, content=data, truncated=False)
    log.warning(
        "Resource (%s) exceeds size limit (truncated): size=%d, limit=%d",
        provenance,
        len(data),
        byte_limit,
    )
    return Resource(provenance=provenance, content=data[:byte_limit], truncated=True)


def _check_limit(provenance: str, byte_limit: int) -> None:
    if byte_limit < 0:
        raise ResourceError(
            provenance, f"Resource size limit must be >= 0, got {byte_limit}"
        )


class ResourceLoader:
    """Read files and run shell commands to produce Resources.

    No retries: every failure propagates to the caller.
    """

    def load(
        self,
        spec: ResourceSpec,
        byte_limit: int,
        allow_partial: bool = False,
    ) -> Resource:
        """Load one resource, capped at ``byte_limit`` bytes.

        Args:
            spec: A FileSpec or ShellSpec.
            byte_limit: Maximum number of content bytes to keep.
            allow_partial: Attach captured output to CommandFailedError
                instead of discarding it.

        Raises:
            ResourceNotFoundError: File does not exist.
            ResourceNotReadableError: File unreadable or shell not runnable.
            ResourceError: ``byte_limit`` is negative.
            CommandFailedError: Shell command exited non-zero.
        """
        if isinstance(spec, FileSpec):
            _check_limit(str(spec.path), byte_limit)
            return self._load_file(spec, byte_limit)
        if isinstance(spec, ShellSpec):
            _check_limit(spec.command, byte_limit)
            return self._load_shell(spec, byte_limit, allow_partial)
        raise TypeError(f"Unsupported resource spec: {spec!r}")

    def _load_file(self, spec: FileSpec, byte_limit: int) -> Resource:
        provenance = str(spec.path)
        try:
            data = spec.path.read_bytes()
        except FileNotFoundError as e:
            raise ResourceNotFoundError(
                provenance, f"Resource file not found: {provenance}"
            ) from e
        except OSError as e:
            raise ResourceNotReadableError(
                provenance, f"Failed to read resource file {provenance}: {e}"
            ) from e

        log.debug("Read %d bytes from %s", len(data), provenance)
        return truncate(provenance, data, byte_limit)

    def _load_shell(
        self, spec: ShellSpec, byte_limit: int, allow_partial: bool
    ) -> Resource:
        provenance = spec.command
        try:
            result = subprocess.run(
                [spec.shell, "-c", spec.command],
                stdin=subprocess.DEVNULL,
                capture_output=True,
                check=False,
            )
        except OSError as e:
            raise ResourceNotReadableError(
                provenance,
                f"Failed to execute shell command `{provenance}` with {spec.shell}: {e}",
            ) from e

        log.debug(
            "Shell command `%s` exited with %d (%d bytes of output)",
            provenance,
            result.returncode,
            len(result.stdout),
        )

        if result.returncode != 0:
            partial = None
            if allow_partial:
                partial = truncate(provenance, result.stdout, byte_limit)
            raise CommandFailedError(
                provenance,
                result.returncode,
                stderr=result.stderr.decode("utf-8", errors="replace"),
                partial=partial,
            )

        return truncate(provenance, result.stdout, byte_limit)
