class SynapseError(Exception):
    """Base class for every error raised by focus_synapse."""


class PlatformError(SynapseError):
    """A foreground/process probe or notification failed."""


class PersistenceError(SynapseError):
    """The local store could not read or write a record."""


class SyncError(SynapseError):
    """A request to the remote store failed or returned bad data."""


class ClockError(SynapseError):
    """The system clock reported a time before the epoch."""


class ConfigError(SynapseError):
    """The rules file could not be read or parsed."""
