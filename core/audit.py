"""Audit trail for environment updates.

Each successful submission appends one JSON line naming the variables that
were sent. Values are never written, secrets included.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from threading import RLock
from typing import Any, Dict, Iterable, List, Optional
import json
import logging

from config import settings


_LOCK = RLock()

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _append_audit(path: Path, entry: Dict[str, Any]) -> None:
    try:
        line = json.dumps(entry, ensure_ascii=False)
        with _LOCK:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
    except Exception:
        # Audit failures never fail the update.
        logger.exception("Failed to append environment audit entry")


def record_env_update(
    fields: Iterable[str],
    *,
    path: Optional[Path] = None,
    actor: Optional[str] = None,
) -> Dict[str, Any]:
    """Record that ``fields`` were submitted to the server."""
    entry: Dict[str, Any] = {
        "ts_utc": _utcnow().isoformat(),
        "actor": actor,
        "event": "env_variables_updated",
        "server": settings.authorizer_url,
        "fields": sorted(fields),
    }
    _append_audit(Path(path or settings.audit_log_path), entry)
    return entry


def read_audit(path: Optional[Path] = None) -> List[Dict[str, Any]]:
    target = Path(path or settings.audit_log_path)
    if not target.exists():
        return []
    entries = []
    for line in target.read_text(encoding="utf-8").splitlines():
        if not line.strip():
            continue
        entries.append(json.loads(line))
    return entries
