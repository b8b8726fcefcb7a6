"""Error taxonomy for kubescape_api.

Every failure surfaced to a caller is a KubescapeError subclass, so hosts can
catch a single type and still tell an execution failure from a cancelled or
unparseable scan.
"""

from __future__ import annotations


class KubescapeError(Exception):
    """Base class for all kubescape_api errors."""

    pass


class ResolutionError(KubescapeError):
    """No version could be determined and nothing is installed locally."""

    pass


class InstallError(KubescapeError):
    """Fetching or writing the binary or a framework failed."""

    pass


class NotInstalledError(KubescapeError):
    """A scan was requested before setup completed successfully."""

    pass


class ExecutionError(KubescapeError):
    """The scanner process ran but exited with a non-zero status."""

    def __init__(self, exit_code: int, stderr: str = "") -> None:
        self.exit_code = exit_code
        self.stderr = stderr
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else "no stderr output"
        super().__init__(f"kubescape exited with code {exit_code}: {detail}")


class CancelledError(KubescapeError):
    """The operation was cancelled by the caller."""

    def __init__(self, message: str = "Operation cancelled") -> None:
        super().__init__(message)


class ParseError(KubescapeError):
    """The scanner succeeded but its output was not well-formed."""

    pass


class ConfigError(KubescapeError):
    """Configuration loading or validation error."""

    pass
