import asyncio

import pytest

from config.env_schema import READ_ONLY_FIELDS, empty_variables
from core.editor import EnvironmentEditor, MASK, SaveState, build_submission, diff_variables
from core.errors import (
    AdminSecretLockedError,
    EditorBusyError,
    EditorClosedError,
    EditorNotLoadedError,
    FetchError,
)
from core.notify import NotifyKind

from conftest import FakeEnvSource, make_server_env


def _loaded_editor(source, notifier=None):
    editor = EnvironmentEditor(source, notify=notifier or (lambda message, kind: None))
    asyncio.run(editor.load_config())
    return editor


def test_diff_lists_compare_element_wise_and_in_order():
    fresh = empty_variables()
    fresh["ROLES"] = ["admin", "editor"]

    same = dict(fresh, ROLES=["admin", "editor"])
    reordered = dict(fresh, ROLES=["editor", "admin"])
    toggled = dict(fresh, DISABLE_SIGN_UP=True)

    assert diff_variables(same, fresh) == []
    assert diff_variables(reordered, fresh) == ["ROLES"]
    assert diff_variables(toggled, fresh) == ["DISABLE_SIGN_UP"]


def test_build_submission_never_includes_read_only_fields():
    fresh = empty_variables()
    edited = dict(fresh, DATABASE_URL="x", DATABASE_NAME="y", DATABASE_TYPE="z", SMTP_HOST="mail")

    submission = build_submission(edited, fresh)

    assert submission == {"SMTP_HOST": "mail"}
    assert not READ_ONLY_FIELDS & submission.keys()


def test_build_submission_admin_secret_requires_new_value_and_matching_old():
    fresh = dict(empty_variables(), ADMIN_SECRET="s1")

    rotated = dict(fresh, ADMIN_SECRET="s2", OLD_ADMIN_SECRET="s1")
    assert build_submission(rotated, fresh) == {"ADMIN_SECRET": "s2", "OLD_ADMIN_SECRET": "s1"}

    blank_new = dict(fresh, ADMIN_SECRET="", OLD_ADMIN_SECRET="s1")
    assert build_submission(blank_new, fresh) == {}

    stale_old = dict(fresh, ADMIN_SECRET="s2", OLD_ADMIN_SECRET="s0")
    assert build_submission(stale_old, fresh) == {}


def test_load_blanks_admin_secret_and_remembers_old_value(source):
    editor = EnvironmentEditor(source)
    assert editor.loading is True

    asyncio.run(editor.load_config())

    assert editor.loading is False
    assert editor.variables["ADMIN_SECRET"] == ""
    assert editor.variables["OLD_ADMIN_SECRET"] == "s1"
    assert editor.confirmation.value == ""
    assert editor.confirmation.disable_input_field is True


def test_confirmation_gate_enables_and_disables_new_secret(source):
    editor = _loaded_editor(source)

    assert editor.on_confirm_admin_secret_input("s1").disable_input_field is False
    editor.set_new_admin_secret("s2")
    assert editor.variables["ADMIN_SECRET"] == "s2"

    confirmation = editor.on_confirm_admin_secret_input("s")
    assert confirmation.value == "s"
    assert confirmation.disable_input_field is True
    assert editor.variables["ADMIN_SECRET"] == ""

    with pytest.raises(AdminSecretLockedError):
        editor.set_new_admin_secret("s3")


def test_confirmation_change_clears_partial_secret_even_when_matching(source):
    editor = _loaded_editor(source)
    editor.on_confirm_admin_secret_input("s1")
    editor.set_new_admin_secret("s2")

    editor.on_confirm_admin_secret_input("s1")

    assert editor.variables["ADMIN_SECRET"] == ""
    assert editor.confirmation.disable_input_field is False


def test_scenario_rotate_admin_secret(source, notifier):
    editor = _loaded_editor(source, notifier)
    editor.on_confirm_admin_secret_input("s1")
    editor.set_new_admin_secret("s2")

    outcome = asyncio.run(editor.save())

    assert outcome.ok
    assert source.submissions == [{"ADMIN_SECRET": "s2", "OLD_ADMIN_SECRET": "s1"}]
    assert editor.variables["OLD_ADMIN_SECRET"] == "s2"
    assert editor.variables["ADMIN_SECRET"] == ""
    assert editor.confirmation.disable_input_field is True
    assert notifier.messages[-1] == ("Successfully updated 2 variables", NotifyKind.SUCCESS)


def test_scenario_unconfirmed_admin_secret_is_not_submitted(source):
    editor = _loaded_editor(source)
    # bypass the gate the way a raw setter could
    editor.update_variables(ADMIN_SECRET="s2", OLD_ADMIN_SECRET="")

    outcome = asyncio.run(editor.save())

    assert outcome.ok
    assert source.submissions == [{}]
    assert source.env["ADMIN_SECRET"] == "s1"


def test_scenario_roles_only_submission(source):
    editor = _loaded_editor(source)
    editor.update_variables(ROLES=["admin", "editor"])

    outcome = asyncio.run(editor.save())

    assert outcome.submission == {"ROLES": ["admin", "editor"]}
    assert source.submissions == [{"ROLES": ["admin", "editor"]}]


def test_scenario_rejected_update_keeps_edits(source, notifier):
    editor = _loaded_editor(source, notifier)
    editor.update_variables(ALLOWED_ORIGINS=["not a url"])
    before = editor.variables
    fetches = source.fetch_count
    source.reject_with = "invalid origin"

    outcome = asyncio.run(editor.save())

    assert not outcome.ok
    assert outcome.error == "Invalid origin"
    assert notifier.messages[-1] == ("Invalid origin", NotifyKind.ERROR)
    assert editor.variables == before
    assert editor.loading is False
    assert editor.save_state is SaveState.IDLE
    # only the pre-save refresh, no reload after the rejection
    assert source.fetch_count == fetches + 1


def test_rejected_update_keeps_confirmation(source):
    editor = _loaded_editor(source)
    editor.on_confirm_admin_secret_input("s1")
    editor.set_new_admin_secret("s2")
    source.reject_with = "nope"

    asyncio.run(editor.save())

    assert editor.confirmation.value == "s1"
    assert editor.confirmation.disable_input_field is False
    assert editor.variables["ADMIN_SECRET"] == "s2"


def test_secret_rotated_elsewhere_between_load_and_save(source):
    editor = _loaded_editor(source)
    editor.on_confirm_admin_secret_input("s1")
    editor.set_new_admin_secret("s2")
    source.env["ADMIN_SECRET"] = "rotated"

    asyncio.run(editor.save())

    assert source.submissions == [{}]
    assert source.env["ADMIN_SECRET"] == "rotated"


def test_save_diffs_against_fresh_snapshot(source):
    editor = _loaded_editor(source)
    # another admin changes SMTP_HOST to what this editor already holds
    editor.update_variables(SMTP_HOST="mail.example.com")
    source.env["SMTP_HOST"] = "mail.example.com"

    outcome = asyncio.run(editor.save())

    assert outcome.submission == {}


def test_fetch_failure_reports_error_and_clears_loading(notifier):
    source = FakeEnvSource()
    source.fail_fetch_with = FetchError("unauthorized")
    editor = EnvironmentEditor(source, notify=notifier)

    with pytest.raises(FetchError):
        asyncio.run(editor.load_config())

    assert editor.loading is False
    assert notifier.messages == [("Unauthorized", NotifyKind.ERROR)]


def test_invalid_server_payload_is_a_fetch_error(notifier):
    source = FakeEnvSource(make_server_env(ROLES="admin"))
    editor = EnvironmentEditor(source, notify=notifier)

    with pytest.raises(FetchError):
        asyncio.run(editor.load_config())

    assert notifier.messages[0][1] is NotifyKind.ERROR


def test_save_is_refused_while_loading(source):
    editor = EnvironmentEditor(source)
    assert editor.can_save is False

    with pytest.raises(EditorBusyError):
        asyncio.run(editor.save())

    assert source.submissions == []


def test_second_save_while_saving_is_refused(source):
    editor = _loaded_editor(source)

    async def scenario():
        first = asyncio.ensure_future(editor.save())
        await asyncio.sleep(0)
        with pytest.raises(EditorBusyError):
            await editor.save()
        return await first

    outcome = asyncio.run(scenario())

    assert outcome.ok
    assert len(source.submissions) == 1


def test_response_after_close_is_discarded(source):
    editor = _loaded_editor(source)
    editor.update_variables(SMTP_HOST="mail")
    source.on_fetch = lambda src: editor.close()

    outcome = asyncio.run(editor.save())

    assert outcome is None
    assert source.submissions == []
    with pytest.raises(EditorClosedError):
        editor.update_variables(SMTP_HOST="again")


def test_set_variables_rejects_unknown_names_and_wrong_kinds(source):
    editor = _loaded_editor(source)

    with pytest.raises(ValueError):
        editor.update_variables(NOT_A_VARIABLE="x")
    with pytest.raises(ValueError):
        editor.update_variables(DISABLE_SIGN_UP="yes")


def test_variables_are_replaced_not_shared(source):
    editor = _loaded_editor(source)
    snapshot = editor.variables
    snapshot["ROLES"].append("intruder")

    assert editor.variables["ROLES"] == ["admin"]


def test_masked_variables_follow_visibility(source):
    editor = _loaded_editor(source)

    assert editor.masked_variables()["JWT_SECRET"] == MASK
    assert editor.masked_variables()["OLD_ADMIN_SECRET"] == MASK
    # empty secrets stay empty
    assert editor.masked_variables()["SMTP_PASSWORD"] == ""

    assert editor.toggle_field_visibility("JWT_SECRET") is True
    assert editor.masked_variables()["JWT_SECRET"] == "jwt-secret"

    with pytest.raises(ValueError):
        editor.toggle_field_visibility("ROLES")


def test_successful_save_is_audited(source, tmp_path):
    path = tmp_path / "audit.log"
    editor = EnvironmentEditor(source, audit_log_path=path, actor="ops")
    asyncio.run(editor.load_config())
    editor.update_variables(SMTP_HOST="mail", SMTP_PASSWORD="hunter2")

    asyncio.run(editor.save())

    text = path.read_text(encoding="utf-8")
    assert "SMTP_HOST" in text
    assert "SMTP_PASSWORD" in text
    assert "hunter2" not in text


def test_save_after_failed_initial_load_is_refused(notifier):
    source = FakeEnvSource()
    source.fail_fetch_with = FetchError("unauthorized")
    editor = EnvironmentEditor(source, notify=notifier)
    with pytest.raises(FetchError):
        asyncio.run(editor.load_config())
    source.fail_fetch_with = None

    assert editor.loading is False
    assert editor.loaded is False
    assert editor.can_save is False
    with pytest.raises(EditorNotLoadedError):
        asyncio.run(editor.save())

    assert source.submissions == []
    assert source.env["ROLES"] == ["admin"]


def test_load_during_save_is_refused_and_keeps_guard(source):
    editor = _loaded_editor(source)
    editor.update_variables(SMTP_HOST="mail")

    async def scenario():
        first = asyncio.ensure_future(editor.save())
        await asyncio.sleep(0)
        with pytest.raises(EditorBusyError):
            await editor.load_config()
        assert editor.loading is True
        assert editor.can_save is False
        assert editor.variables["SMTP_HOST"] == "mail"
        return await first

    outcome = asyncio.run(scenario())

    assert outcome.ok
    assert source.submissions == [{"SMTP_HOST": "mail"}]
    assert source.env["SMTP_HOST"] == "mail"
    assert editor.can_save is True


def test_confirmation_stays_locked_before_load(source):
    editor = EnvironmentEditor(source)

    confirmation = editor.on_confirm_admin_secret_input("")

    assert confirmation.disable_input_field is True
    with pytest.raises(AdminSecretLockedError):
        editor.set_new_admin_secret("s2")
