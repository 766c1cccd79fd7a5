"""Error types for core-warden."""


class ConfigurationError(ValueError):
    """Startup configuration is unusable. Fatal: the daemon refuses to start."""


class InvalidSelection(ConfigurationError):
    """Core selection names no valid logical core."""


class ProcessGone(Exception):
    """Process exited between enumeration and the attribute read/write."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"process {pid} no longer exists")
        self.pid = pid


class TransientReadError(Exception):
    """Priority or affinity of a live process could not be read."""

    def __init__(self, pid: int, cause: BaseException) -> None:
        super().__init__(f"cannot read process {pid}: {cause}")
        self.pid = pid
        self.cause = cause


class EnforcementError(Exception):
    """Priority and/or affinity write failed for a process.

    Attributes:
        pid: Target process
        failures: (attribute, exception) pairs, one per failed write
    """

    def __init__(self, pid: int, failures: list[tuple[str, BaseException]]) -> None:
        detail = "; ".join(f"{attr}: {exc}" for attr, exc in failures)
        super().__init__(f"cannot enforce policy on process {pid}: {detail}")
        self.pid = pid
        self.failures = failures

    @property
    def process_gone(self) -> bool:
        """True if the process exited mid-operation."""
        return any(isinstance(exc, ProcessGone) for _, exc in self.failures)
