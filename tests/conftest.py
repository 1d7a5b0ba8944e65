import asyncio

import pytest

from config.env_schema import SERVER_FIELD_NAMES, empty_variables
from core.env_client import SubmitError, SubmitResult


def make_server_env(**overrides):
    env = {name: value for name, value in empty_variables().items() if name in SERVER_FIELD_NAMES}
    env.update(
        {
            "ADMIN_SECRET": "s1",
            "ROLES": ["admin"],
            "DEFAULT_ROLES": ["admin"],
            "ALLOWED_ORIGINS": ["*"],
            "JWT_TYPE": "HS256",
            "JWT_SECRET": "jwt-secret",
            "DATABASE_NAME": "authorizer",
            "DATABASE_TYPE": "postgres",
            "DATABASE_URL": "postgres://localhost/authorizer",
        }
    )
    env.update(overrides)
    return env


class FakeEnvSource:
    """In-memory stand-in for the server's _env query and _update_env mutation."""

    def __init__(self, env=None):
        self.env = env if env is not None else make_server_env()
        self.fetch_count = 0
        self.submissions = []
        self.reject_with = None
        self.fail_fetch_with = None
        self.on_fetch = None

    async def fetch_config(self):
        self.fetch_count += 1
        await asyncio.sleep(0)
        if self.on_fetch:
            self.on_fetch(self)
        if self.fail_fetch_with is not None:
            raise self.fail_fetch_with
        return {k: list(v) if isinstance(v, list) else v for k, v in self.env.items()}

    async def submit_config(self, patch):
        self.submissions.append(dict(patch))
        await asyncio.sleep(0)
        if self.reject_with:
            return SubmitResult(error=SubmitError(message=self.reject_with))
        for name, value in patch.items():
            if name == "OLD_ADMIN_SECRET":
                continue
            self.env[name] = value
        return SubmitResult(message="configurations updated successfully")


class RecordingNotifier:
    def __init__(self):
        self.messages = []

    def __call__(self, message, kind):
        self.messages.append((message, kind))


@pytest.fixture
def source():
    return FakeEnvSource()


@pytest.fixture
def notifier():
    return RecordingNotifier()
