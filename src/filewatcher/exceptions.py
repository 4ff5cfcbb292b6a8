"""Custom exceptions for the file watcher package."""


class WatcherError(Exception):
    """Base exception for all watcher errors."""
    pass


class StateError(WatcherError):
    """Error related to the persisted watcher state."""
    pass


class CorruptStateError(StateError):
    """State file exists but cannot be parsed."""

    def __init__(self, message: str, state_file=None):
        super().__init__(message)
        self.state_file = state_file


class WatcherNotRunningError(WatcherError):
    """Watcher has not been started."""
    pass


class WatcherAlreadyRunningError(WatcherError):
    """Watcher has already been started."""
    pass
