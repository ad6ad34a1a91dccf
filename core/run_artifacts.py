"""Import report artifacts for operational reporting."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any

DEFAULT_REPORT_DIR = "output/import_reports"


def write_import_report(
    report: dict[str, Any],
    import_id: str,
    output_dir: str = DEFAULT_REPORT_DIR,
) -> str:
    """Write a JSON import report and return its path.

    ``import_id`` and ``timestamp_utc`` are filled in unless the report
    already carries them.
    """
    os.makedirs(output_dir, exist_ok=True)
    payload = dict(report)
    payload.setdefault("import_id", import_id)
    payload.setdefault("timestamp_utc", datetime.now(timezone.utc).isoformat())
    path = os.path.join(output_dir, f"{import_id}.json")
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True, default=str)
    return path


def write_text_artifact(text: str, path: str) -> str:
    """Write a UTF-8 text artifact (e.g. the analysis document) to ``path``."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
    return path
