"""Grant record persistence between a separate `grant` and `revoke` invocation (pre/post CI steps).

Only one paired run is covered: revoke deletes the file once it has been consumed.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from .results import GrantRecord


def save_state(path: str, record: GrantRecord) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_name(p.name + ".tmp")
    tmp.write_text(json.dumps(record.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
    os.replace(tmp, p)


def load_state(path: str) -> Optional[GrantRecord]:
    """Return the saved record, or None when there is nothing to clean up.

    Raises ValueError if the file exists but is not a valid record.
    """
    p = Path(path)
    if not p.exists():
        return None
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
        return GrantRecord.from_dict(data)
    except (json.JSONDecodeError, KeyError, TypeError) as e:
        raise ValueError(f"corrupt state file {path}: {e}") from e


def clear_state(path: str) -> None:
    Path(path).unlink(missing_ok=True)
