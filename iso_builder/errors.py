from __future__ import annotations

from typing import Optional, Sequence


class BuildError(RuntimeError):
    """Base class for build failures."""

    def __init__(self, message: str, code: int = -1) -> None:
        super().__init__(message)
        self.code = code


class PhaseError(BuildError):
    """A phase stopped at a named step.

    ``code`` is the step's negative result code; ``cause`` is the exception
    that made the step fail, when there was one.
    """

    def __init__(
        self,
        phase: str,
        step: str,
        code: int,
        message: str = "",
        cause: Optional[BaseException] = None,
    ) -> None:
        self.phase = phase
        self.step = step
        self.cause = cause
        reason = message or (str(cause) if cause is not None else "step failed")
        self.reason = reason
        super().__init__(f"{phase}/{step} failed ({code}): {reason}", code=code)


class CacheError(BuildError):
    """Raised when a cache entry cannot be written or restored."""


class DependencyError(BuildError):
    """Host is missing files or commands the build needs.

    Codes: -1 files missing, -2 commands missing, -3 both.
    """

    def __init__(self, missing_files: Sequence[str], missing_commands: Sequence[str]) -> None:
        self.missing_files = list(missing_files)
        self.missing_commands = list(missing_commands)

        parts = []
        if self.missing_files:
            parts.append("missing files: " + ", ".join(self.missing_files))
        if self.missing_commands:
            parts.append("missing commands: " + ", ".join(self.missing_commands))

        if self.missing_files and self.missing_commands:
            code = -3
        elif self.missing_commands:
            code = -2
        else:
            code = -1
        super().__init__("; ".join(parts) or "missing dependencies", code=code)
