"""Configuration system for core-warden."""

import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

from core_warden.cores import resolve_core_mask
from core_warden.errors import ConfigurationError
from core_warden.models import PriorityClass, TargetConfiguration
from core_warden.procs import normalize_name

# Watched processes always go to the lowest class
TARGET_PRIORITY = PriorityClass.IDLE


@dataclass
class PolicyConfig:
    """Which processes to watch and what to force them to."""

    process_names: list[str] = field(default_factory=lambda: ["notepad.exe"])
    interval_seconds: int = 5  # Seconds between reconciliation cycles
    core_selection: str = "Last"  # "First", "Last" or a logical core index
    verbose_already_compliant: bool = False  # Log compliant processes every cycle


@dataclass
class SystemConfig:
    """Daemon housekeeping configuration."""

    heartbeat_cycles: int = 60  # Log heartbeat every N cycles
    # Log file rotation
    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    policy: PolicyConfig = field(default_factory=PolicyConfig)
    system: SystemConfig = field(default_factory=SystemConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "core-warden"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "core-warden"

    @property
    def log_path(self) -> Path:
        """Daemon log path (JSON Lines)."""
        return self.state_dir / "daemon.log"

    @property
    def runtime_dir(self) -> Path:
        """Runtime directory for the PID file. Cleared on reboot."""
        return Path(tempfile.gettempdir()) / "core-warden"

    @property
    def pid_path(self) -> Path:
        """PID file path."""
        return self.runtime_dir / "daemon.pid"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("policy", "system"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions, so Config() and
        Config.load() agree.

        Raises:
            ConfigurationError: File cannot be parsed or a value is invalid.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ConfigurationError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            policy=_load_policy_config(data.get("policy", {})),
            system=_load_system_config(data.get("system", {})),
        )

    def build_target(self, cpu_count: int) -> TargetConfiguration:
        """Resolve the policy against the host into an immutable target.

        Raises:
            ConfigurationError: Core selection invalid for this host.
        """
        policy = self.policy
        mask = resolve_core_mask(policy.core_selection, cpu_count)

        return TargetConfiguration(
            process_names=frozenset(normalize_name(n) for n in policy.process_names),
            interval_seconds=policy.interval_seconds,
            core_selection=policy.core_selection,
            verbose_already_compliant=policy.verbose_already_compliant,
            target_priority=TARGET_PRIORITY,
            target_affinity_mask=mask,
        )


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _require_table(section: str, data: object) -> Mapping:
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"[{section}] must be a table, got {data!r}")
    return data


def _load_policy_config(data: object) -> PolicyConfig:
    """Load policy config from TOML data, using dataclass defaults for missing fields."""
    data = _require_table("policy", data)
    defaults = PolicyConfig()

    process_names = data.get("process_names", defaults.process_names)
    if isinstance(process_names, str):
        process_names = [process_names]
    if not isinstance(process_names, list):
        raise ConfigurationError(f"process_names must be a list, got {process_names!r}")
    if not process_names:
        raise ConfigurationError("process_names must list at least one process")
    for name in process_names:
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError(f"Invalid process name: {name!r}")

    interval_seconds = data.get("interval_seconds", defaults.interval_seconds)
    if not _is_int(interval_seconds) or interval_seconds < 1:
        raise ConfigurationError(
            f"interval_seconds must be an integer >= 1, got {interval_seconds!r}"
        )

    core_selection = data.get("core_selection", defaults.core_selection)
    if _is_int(core_selection):
        core_selection = str(core_selection)
    if not isinstance(core_selection, str):
        raise ConfigurationError(f"Invalid core_selection: {core_selection!r}")

    verbose = data.get("verbose_already_compliant", defaults.verbose_already_compliant)
    if not isinstance(verbose, bool):
        raise ConfigurationError(
            f"verbose_already_compliant must be true or false, got {verbose!r}"
        )

    # An explicit target_priority may only name the fixed class
    if "target_priority" in data:
        try:
            priority = PriorityClass.parse(str(data["target_priority"]))
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        if priority is not TARGET_PRIORITY:
            raise ConfigurationError(
                f"target_priority is fixed at {TARGET_PRIORITY.value!r}, "
                f"got {data['target_priority']!r}"
            )

    return PolicyConfig(
        process_names=[str(n) for n in process_names],
        interval_seconds=int(interval_seconds),
        core_selection=str(core_selection),
        verbose_already_compliant=bool(verbose),
    )


def _non_negative_int(data: Mapping, key: str, default: int) -> int:
    value = data.get(key, default)
    if not _is_int(value) or value < 0:
        raise ConfigurationError(f"{key} must be an integer >= 0, got {value!r}")
    return int(value)


def _load_system_config(data: object) -> SystemConfig:
    """Load system config from TOML data."""
    data = _require_table("system", data)
    d = SystemConfig()

    heartbeat_cycles = data.get("heartbeat_cycles", d.heartbeat_cycles)
    if not _is_int(heartbeat_cycles) or heartbeat_cycles < 1:
        raise ConfigurationError(f"heartbeat_cycles must be >= 1, got {heartbeat_cycles!r}")

    return SystemConfig(
        heartbeat_cycles=int(heartbeat_cycles),
        log_max_bytes=_non_negative_int(data, "log_max_bytes", d.log_max_bytes),
        log_backup_count=_non_negative_int(data, "log_backup_count", d.log_backup_count),
    )
