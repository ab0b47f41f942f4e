"""Error taxonomy shared by the registry, loaders and configuration store."""

from __future__ import annotations

import enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Sequence

if TYPE_CHECKING:  # pragma: no cover
    from platform_loader.loading.batch_loader import LoadOutcome


class PlatformLoaderError(Exception):
    """Base class for every error raised by platform_loader."""


class InvalidArgument(PlatformLoaderError, ValueError):
    pass


class RegistryNotEnabled(PlatformLoaderError):
    def __init__(self) -> None:
        super().__init__('Platform registry has not been enabled; call enable_platforms() first.')


class NotRegistered(PlatformLoaderError, LookupError):
    def __init__(self, platform_id: str) -> None:
        self.platform_id = platform_id
        super().__init__(f"Platform '{platform_id}' is not registered!")


class NotLoaded(PlatformLoaderError, LookupError):
    def __init__(self, platform_id: str) -> None:
        self.platform_id = platform_id
        super().__init__(f"The requested platform '{platform_id}' was not loaded.")


class ResolutionKind(str, enum.Enum):
    NOT_FOUND = 'not_found'
    OTHER = 'other'


class ResolutionError(PlatformLoaderError):
    def __init__(self, module_name: str, kind: ResolutionKind, message: str | None = None) -> None:
        self.module_name = module_name
        self.kind = kind
        if message is None:
            if kind is ResolutionKind.NOT_FOUND:
                message = f"Module '{module_name}' is not installed."
            else:
                message = f"Failed to resolve module: '{module_name}'."
        super().__init__(message)

    @property
    def not_found(self) -> bool:
        return self.kind is ResolutionKind.NOT_FOUND


class InstallError(PlatformLoaderError):
    def __init__(self, targets: Sequence[str], returncode: int | None, output: str = '') -> None:
        self.targets = list(targets)
        self.returncode = returncode
        self.output = output
        super().__init__(f"Failed to install {', '.join(self.targets)} (exit status {returncode}).")


class ConfigMissing(PlatformLoaderError):
    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        super().__init__(f"Platform configuration file is missing or invalid - path: '{self.path}'.")


class BatchLoadError(PlatformLoaderError):
    """Raised when at least one group of a batch failed.

    Every outcome is attached, successes included, so callers can report the
    real state of each platform rather than only the first failure.
    """

    def __init__(self, outcomes: Sequence['LoadOutcome']) -> None:
        self.outcomes = list(outcomes)
        failed = self.failures
        names = ', '.join(f"{o.module_name or '?'}[{', '.join(o.platform_ids)}]" for o in failed)
        super().__init__(f"{len(failed)} platform group(s) failed to load: {names}")

    @property
    def failures(self) -> list['LoadOutcome']:
        return [o for o in self.outcomes if o.error is not None]

    @property
    def instances(self) -> list[Any]:
        return [o.instance for o in self.outcomes if o.error is None]
