"""Schema of the environment variables exposed by the authorization server.

Every variable the dashboard loads, diffs or submits is declared here once,
together with its value kind, the dashboard section it belongs to and the
flags that change how it is handled:

- ``secret`` variables are masked on display until revealed.
- ``read_only`` variables describe the instance and are never submitted.
- ``local_only`` variables exist in the editing state but are not part of
  the server's ``_env`` query.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Tuple

from pydantic import StrictBool, StrictStr, TypeAdapter


ADMIN_SECRET = "ADMIN_SECRET"
OLD_ADMIN_SECRET = "OLD_ADMIN_SECRET"


class FieldKind(str, Enum):
    """Value kinds a variable can hold"""
    STRING = "string"
    BOOLEAN = "boolean"
    STRING_LIST = "string_list"


class Section(str, Enum):
    """Dashboard sections, in display order"""
    INSTANCE_INFORMATION = "instance_information"
    SOCIAL_LOGIN = "social_login"
    ROLES = "roles"
    JWT = "jwt"
    SESSION_STORAGE = "session_storage"
    EMAIL = "email"
    ALLOWED_ORIGINS = "allowed_origins"
    ORGANIZATION = "organization"
    ACCESS_TOKEN = "access_token"
    FEATURES = "features"
    DANGER_ZONE = "danger_zone"


@dataclass(frozen=True)
class EnvField:
    name: str
    kind: FieldKind
    section: Section
    secret: bool = False
    read_only: bool = False
    local_only: bool = False


_S, _B, _L = FieldKind.STRING, FieldKind.BOOLEAN, FieldKind.STRING_LIST

ENV_FIELDS: Tuple[EnvField, ...] = (
    EnvField("DATABASE_NAME", _S, Section.INSTANCE_INFORMATION, read_only=True),
    EnvField("DATABASE_TYPE", _S, Section.INSTANCE_INFORMATION, read_only=True),
    EnvField("DATABASE_URL", _S, Section.INSTANCE_INFORMATION, read_only=True),
    EnvField("GOOGLE_CLIENT_ID", _S, Section.SOCIAL_LOGIN),
    EnvField("GOOGLE_CLIENT_SECRET", _S, Section.SOCIAL_LOGIN, secret=True),
    EnvField("GITHUB_CLIENT_ID", _S, Section.SOCIAL_LOGIN),
    EnvField("GITHUB_CLIENT_SECRET", _S, Section.SOCIAL_LOGIN, secret=True),
    EnvField("FACEBOOK_CLIENT_ID", _S, Section.SOCIAL_LOGIN),
    EnvField("FACEBOOK_CLIENT_SECRET", _S, Section.SOCIAL_LOGIN, secret=True),
    EnvField("ROLES", _L, Section.ROLES),
    EnvField("DEFAULT_ROLES", _L, Section.ROLES),
    EnvField("PROTECTED_ROLES", _L, Section.ROLES),
    EnvField("JWT_TYPE", _S, Section.JWT),
    EnvField("JWT_SECRET", _S, Section.JWT, secret=True),
    EnvField("JWT_ROLE_CLAIM", _S, Section.JWT),
    EnvField("JWT_PRIVATE_KEY", _S, Section.JWT),
    EnvField("JWT_PUBLIC_KEY", _S, Section.JWT),
    EnvField("REDIS_URL", _S, Section.SESSION_STORAGE),
    EnvField("SMTP_HOST", _S, Section.EMAIL),
    EnvField("SMTP_PORT", _S, Section.EMAIL),
    EnvField("SMTP_USERNAME", _S, Section.EMAIL),
    EnvField("SMTP_PASSWORD", _S, Section.EMAIL, secret=True),
    EnvField("SENDER_EMAIL", _S, Section.EMAIL),
    EnvField("ALLOWED_ORIGINS", _L, Section.ALLOWED_ORIGINS),
    EnvField("ORGANIZATION_NAME", _S, Section.ORGANIZATION),
    EnvField("ORGANIZATION_LOGO", _S, Section.ORGANIZATION),
    EnvField("CUSTOM_ACCESS_TOKEN_SCRIPT", _S, Section.ACCESS_TOKEN),
    EnvField("ACCESS_TOKEN_EXPIRY_TIME", _S, Section.ACCESS_TOKEN),
    EnvField("DISABLE_LOGIN_PAGE", _B, Section.FEATURES),
    EnvField("DISABLE_MAGIC_LINK_LOGIN", _B, Section.FEATURES),
    EnvField("DISABLE_EMAIL_VERIFICATION", _B, Section.FEATURES),
    EnvField("DISABLE_BASIC_AUTHENTICATION", _B, Section.FEATURES),
    EnvField("DISABLE_SIGN_UP", _B, Section.FEATURES),
    EnvField(ADMIN_SECRET, _S, Section.DANGER_ZONE, secret=True),
    EnvField(OLD_ADMIN_SECRET, _S, Section.DANGER_ZONE, secret=True, local_only=True),
)

FIELDS_BY_NAME: Dict[str, EnvField] = {f.name: f for f in ENV_FIELDS}
FIELD_NAMES: Tuple[str, ...] = tuple(f.name for f in ENV_FIELDS)
SERVER_FIELD_NAMES: Tuple[str, ...] = tuple(f.name for f in ENV_FIELDS if not f.local_only)
READ_ONLY_FIELDS: FrozenSet[str] = frozenset(f.name for f in ENV_FIELDS if f.read_only)
SECRET_FIELDS: Tuple[str, ...] = tuple(f.name for f in ENV_FIELDS if f.secret)

_ADAPTERS: Dict[FieldKind, TypeAdapter] = {
    FieldKind.STRING: TypeAdapter(StrictStr),
    FieldKind.BOOLEAN: TypeAdapter(StrictBool),
    FieldKind.STRING_LIST: TypeAdapter(List[StrictStr]),
}

_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off", ""}


def empty_value(kind: FieldKind) -> Any:
    if kind is FieldKind.BOOLEAN:
        return False
    if kind is FieldKind.STRING_LIST:
        return []
    return ""


def empty_variables() -> Dict[str, Any]:
    return {f.name: empty_value(f.kind) for f in ENV_FIELDS}


def fields_in_section(section: Section) -> List[EnvField]:
    return [f for f in ENV_FIELDS if f.section is section]


def normalize_variables(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Build a complete variables mapping from a (possibly partial) payload.

    Missing or null values become the kind's empty value. Names outside the
    schema are dropped. Values of the wrong kind raise a pydantic
    ``ValidationError``. List values are always fresh copies.
    """
    values: Dict[str, Any] = {}
    for field in ENV_FIELDS:
        value = raw.get(field.name)
        if value is None:
            value = empty_value(field.kind)
        values[field.name] = _ADAPTERS[field.kind].validate_python(value)
    return values


def copy_variables(variables: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: list(v) if isinstance(v, list) else v for k, v in variables.items()}


def unknown_names(names) -> List[str]:
    return sorted(n for n in names if n not in FIELDS_BY_NAME)


def parse_text_value(name: str, text: str) -> Any:
    """Convert command-line text into a value of the variable's kind.

    Booleans accept true/false, yes/no, on/off and 1/0. Lists are
    comma-separated; blank items are dropped.
    """
    field = FIELDS_BY_NAME.get(name)
    if field is None:
        raise ValueError(f"Unknown environment variable: {name}")

    if field.kind is FieldKind.BOOLEAN:
        word = text.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
        raise ValueError(f"{name} expects a boolean, got {text!r}")

    if field.kind is FieldKind.STRING_LIST:
        return [item.strip() for item in text.split(",") if item.strip()]

    return text
