"""Environment editor - the state behind the dashboard's settings page.

Owns one working copy of the environment variables, diffs it against a
freshly fetched snapshot on save and submits only what changed.

The admin secret gets special handling:
- after every load the editable ``ADMIN_SECRET`` is blank and
  ``OLD_ADMIN_SECRET`` holds the server's current value;
- a new secret can only be typed once the current one has been re-entered;
- a rotation is only submitted when the new value is non-empty and the
  re-entered value still matches the server at save time.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Protocol
import logging

from pydantic import BaseModel, ConfigDict, ValidationError

from config.env_schema import (
    ADMIN_SECRET,
    FIELD_NAMES,
    OLD_ADMIN_SECRET,
    READ_ONLY_FIELDS,
    SECRET_FIELDS,
    Section,
    copy_variables,
    empty_variables,
    fields_in_section,
    normalize_variables,
    unknown_names,
)
from core.audit import record_env_update
from core.env_client import SubmitResult
from core.errors import (
    AdminSecretLockedError,
    EditorBusyError,
    EditorClosedError,
    EditorNotLoadedError,
    FetchError,
)
from core.notify import Notifier, NotifyKind, capitalize_first_letter, log_notifier

logger = logging.getLogger(__name__)

MASK = "********"


class EnvSource(Protocol):
    def fetch_config(self) -> Awaitable[Mapping[str, Any]]: ...

    def submit_config(self, patch: Mapping[str, Any]) -> Awaitable[SubmitResult]: ...


class SaveState(str, Enum):
    IDLE = "idle"
    SAVING = "saving"


class AdminSecretConfirmation(BaseModel):
    """What the user typed as the current admin secret, and whether it matched."""
    model_config = ConfigDict(frozen=True)

    value: str = ""
    disable_input_field: bool = True


@dataclass
class SaveOutcome:
    submission: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def diff_variables(edited: Mapping[str, Any], fresh: Mapping[str, Any]) -> List[str]:
    """Names whose edited value differs from ``fresh``, in schema order.

    Lists compare element-wise and order matters.
    """
    return [name for name in FIELD_NAMES if edited.get(name) != fresh.get(name)]


def build_submission(edited: Mapping[str, Any], fresh: Mapping[str, Any]) -> Dict[str, Any]:
    """The patch to send: changed fields, minus what may not be sent."""
    submission = {name: edited[name] for name in diff_variables(edited, fresh)}

    if (
        not submission.get(ADMIN_SECRET)
        or submission.get(OLD_ADMIN_SECRET) != fresh.get(ADMIN_SECRET)
    ):
        submission.pop(ADMIN_SECRET, None)
        submission.pop(OLD_ADMIN_SECRET, None)

    for name in READ_ONLY_FIELDS:
        submission.pop(name, None)

    return copy_variables(submission)


def default_field_visibility() -> Dict[str, bool]:
    return {name: False for name in SECRET_FIELDS}


class EnvironmentEditor:
    """Editable copy of the server's environment variables.

    One editor belongs to one page; it is not safe to drive it from more
    than one task. ``loading`` is true until the first load finishes and
    during every save.
    """

    def __init__(
        self,
        source: EnvSource,
        *,
        notify: Notifier = log_notifier,
        audit_log_path: Optional[Path] = None,
        actor: Optional[str] = None,
    ) -> None:
        self.source = source
        self._notify = notify
        self.audit_log_path = audit_log_path
        self.actor = actor

        self._variables: Dict[str, Any] = empty_variables()
        self._confirmation = AdminSecretConfirmation()
        self._field_visibility = default_field_visibility()
        self._loading = True
        self._loaded = False
        self._save_state = SaveState.IDLE
        self._closed = False

    # -- state -------------------------------------------------------------

    @property
    def variables(self) -> Dict[str, Any]:
        return copy_variables(self._variables)

    @property
    def confirmation(self) -> AdminSecretConfirmation:
        return self._confirmation

    @property
    def field_visibility(self) -> Dict[str, bool]:
        return dict(self._field_visibility)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def save_state(self) -> SaveState:
        return self._save_state

    @property
    def can_save(self) -> bool:
        return (
            self._loaded
            and not self._loading
            and not self._closed
            and self._save_state is SaveState.IDLE
        )

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Drop all state. Responses still in flight are ignored."""
        self._closed = True
        self._loaded = False
        self._variables = empty_variables()
        self._confirmation = AdminSecretConfirmation()

    def _ensure_open(self) -> None:
        if self._closed:
            raise EditorClosedError("Editor has been closed")

    # -- editing -----------------------------------------------------------

    def set_variables(self, variables: Mapping[str, Any]) -> None:
        """Replace the working copy. Missing names become empty."""
        self._ensure_open()
        unknown = unknown_names(variables)
        if unknown:
            raise ValueError(f"Unknown environment variables: {', '.join(unknown)}")
        self._variables = normalize_variables(variables)

    def update_variables(self, **changes: Any) -> None:
        merged = dict(self._variables)
        merged.update(changes)
        self.set_variables(merged)

    def section_variables(self, section: Section) -> Dict[str, Any]:
        current = self.variables
        return {f.name: current[f.name] for f in fields_in_section(section)}

    def set_field_visibility(self, visibility: Mapping[str, bool]) -> None:
        unknown = [name for name in visibility if name not in self._field_visibility]
        if unknown:
            raise ValueError(f"Not a secret variable: {', '.join(sorted(unknown))}")
        merged = dict(self._field_visibility)
        merged.update({k: bool(v) for k, v in visibility.items()})
        self._field_visibility = merged

    def toggle_field_visibility(self, name: str) -> bool:
        if name not in self._field_visibility:
            raise ValueError(f"Not a secret variable: {name}")
        visible = not self._field_visibility[name]
        self.set_field_visibility({name: visible})
        return visible

    def masked_variables(self) -> Dict[str, Any]:
        """Working copy with hidden, non-empty secrets replaced by a mask."""
        shown = self.variables
        for name, visible in self._field_visibility.items():
            if not visible and shown.get(name):
                shown[name] = MASK
        return shown

    # -- admin secret ------------------------------------------------------

    def on_confirm_admin_secret_input(self, candidate: str) -> AdminSecretConfirmation:
        """Check a re-entered admin secret against the loaded one.

        Any change here clears a partially typed new secret. Nothing matches
        until a snapshot has been loaded.
        """
        self._ensure_open()
        matches = self._loaded and candidate == self._variables[OLD_ADMIN_SECRET]
        self._confirmation = AdminSecretConfirmation(value=candidate, disable_input_field=not matches)
        if self._variables[ADMIN_SECRET] != "":
            self.update_variables(**{ADMIN_SECRET: ""})
        return self._confirmation

    def set_new_admin_secret(self, value: str) -> None:
        if self._confirmation.disable_input_field:
            raise AdminSecretLockedError("Confirm the current admin secret first")
        self.update_variables(**{ADMIN_SECRET: value})

    # -- remote ------------------------------------------------------------

    async def _fetch_snapshot(self) -> Dict[str, Any]:
        raw = await self.source.fetch_config()
        try:
            return normalize_variables(raw)
        except ValidationError as e:
            raise FetchError(f"server returned {e.error_count()} invalid environment variables") from e

    async def _fetch(self) -> Optional[Dict[str, Any]]:
        try:
            snapshot = await self._fetch_snapshot()
        except Exception as e:
            if not self._closed:
                logger.error("Failed to fetch environment variables: %s", e)
                self._notify(capitalize_first_letter(str(e)), NotifyKind.ERROR)
            raise
        if self._closed:
            logger.debug("Editor closed during fetch; discarding response")
            return None
        return snapshot

    def _apply_snapshot(self, snapshot: Mapping[str, Any]) -> None:
        variables = copy_variables(snapshot)
        variables[OLD_ADMIN_SECRET] = snapshot[ADMIN_SECRET]
        variables[ADMIN_SECRET] = ""
        self._variables = variables
        self._confirmation = AdminSecretConfirmation()
        self._loaded = True

    async def load_config(self) -> Optional[Dict[str, Any]]:
        """Fetch the server's variables and make them the working copy.

        Refused while a save is in flight; the reload after a successful save
        runs once the save has finished.
        """
        self._ensure_open()
        if self._save_state is SaveState.SAVING:
            raise EditorBusyError("A save is in progress")
        self._loading = True
        try:
            snapshot = await self._fetch()
        finally:
            self._loading = False
        if snapshot is None:
            return None
        self._apply_snapshot(snapshot)
        logger.debug("Loaded %d environment variables", len(snapshot))
        return self.variables

    async def save(self) -> Optional[SaveOutcome]:
        """Submit every field that differs from a fresh fetch.

        Returns None when the editor was closed mid-request.
        """
        self._ensure_open()
        if self._loading or self._save_state is SaveState.SAVING:
            raise EditorBusyError("A load or save is already in progress")
        if not self._loaded:
            raise EditorNotLoadedError("Load the environment variables before saving")

        self._loading = True
        self._save_state = SaveState.SAVING
        try:
            fresh = await self._fetch()
            if fresh is None:
                return None
            submission = build_submission(self._variables, fresh)
            logger.info("Submitting %d changed variables: %s", len(submission), ", ".join(sorted(submission)))
            result = await self.source.submit_config(submission)
        finally:
            self._loading = False
            self._save_state = SaveState.IDLE

        if self._closed:
            return None

        if result.error:
            message = capitalize_first_letter(result.error.message)
            logger.warning("Environment update rejected: %s", message)
            self._notify(message, NotifyKind.ERROR)
            return SaveOutcome(submission=submission, error=message)

        self._confirmation = AdminSecretConfirmation()
        if self.audit_log_path is not None:
            record_env_update(submission, path=self.audit_log_path, actor=self.actor)
        self._notify(f"Successfully updated {len(submission)} variables", NotifyKind.SUCCESS)

        await self.load_config()
        return SaveOutcome(submission=submission)
