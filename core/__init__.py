# Core module
from .editor import EnvironmentEditor, AdminSecretConfirmation, SaveOutcome, build_submission, diff_variables
from .env_client import EnvClient, SubmitError, SubmitResult
from .errors import (
	EnvDashboardError,
	FetchError,
	EditorBusyError,
	EditorClosedError,
	EditorNotLoadedError,
	AdminSecretLockedError,
)
from .notify import NotifyKind, ConsoleNotifier, log_notifier

__all__ = [
	'EnvironmentEditor',
	'AdminSecretConfirmation',
	'SaveOutcome',
	'build_submission',
	'diff_variables',
	'EnvClient',
	'SubmitError',
	'SubmitResult',
	'EnvDashboardError',
	'FetchError',
	'EditorBusyError',
	'EditorClosedError',
	'EditorNotLoadedError',
	'AdminSecretLockedError',
	'NotifyKind',
	'ConsoleNotifier',
	'log_notifier',
]
