"""Errors raised by the environment dashboard."""


class EnvDashboardError(Exception):
    """Base class for dashboard errors"""


class FetchError(EnvDashboardError):
    """The environment variables could not be read from the server."""


class EditorBusyError(EnvDashboardError):
    """A load or save is already in flight for this editor."""


class EditorClosedError(EnvDashboardError):
    """The editor was closed and no longer owns any state."""


class AdminSecretLockedError(EnvDashboardError):
    """The new admin secret was set before the current one was confirmed."""


class EditorNotLoadedError(EnvDashboardError):
    """No snapshot has been loaded into the editor yet."""
