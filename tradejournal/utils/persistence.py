"""
JSON document storage.

The trade repository (one document holding every trade record) and
the per-user session snapshots (known hashtags and symbols) are both
JSON files.  Writes go through a sibling ``.tmp`` file that replaces
the target in one step, so a reader never sees half a document.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional


def load_json(path: str) -> Optional[Any]:
    """Return the decoded document at `path`, or `None` if there is none yet.

    A file that exists but is not valid JSON raises `json.JSONDecodeError`;
    callers decide whether that is fatal (repository) or ignorable
    (session snapshot).
    """
    target = Path(path)
    if not target.is_file():
        return None
    return json.loads(target.read_text(encoding="utf-8"))


def save_json(path: str, document: Any) -> None:
    """Replace the document at `path`, creating missing directories.

    Keys are sorted and indented so the trade file diffs cleanly.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    staging = target.with_name(target.name + ".tmp")
    staging.write_text(
        json.dumps(document, ensure_ascii=False, indent=2, sort_keys=True),
        encoding="utf-8",
    )
    os.replace(staging, target)
