from .settings import Settings, settings
from .env_schema import (
    ADMIN_SECRET,
    OLD_ADMIN_SECRET,
    ENV_FIELDS,
    FIELD_NAMES,
    READ_ONLY_FIELDS,
    SECRET_FIELDS,
    EnvField,
    FieldKind,
    Section,
)

__all__ = [
    'Settings',
    'settings',
    'ADMIN_SECRET',
    'OLD_ADMIN_SECRET',
    'ENV_FIELDS',
    'FIELD_NAMES',
    'READ_ONLY_FIELDS',
    'SECRET_FIELDS',
    'EnvField',
    'FieldKind',
    'Section',
]
