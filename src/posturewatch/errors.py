from __future__ import annotations


class PostureWatchError(Exception):
    """Base class for all posturewatch errors."""


class NotInitializedError(PostureWatchError):
    """An operation was attempted before the monitor finished initializing."""


class PersonNotVisibleError(PostureWatchError):
    """Calibration was requested without adequate landmark confidence."""


class SourceUnavailableError(PostureWatchError):
    """The landmark source failed to process a single frame."""


class InitializationError(PostureWatchError):
    """The landmark source could not be loaded."""


class ConfigError(PostureWatchError, ValueError):
    pass
