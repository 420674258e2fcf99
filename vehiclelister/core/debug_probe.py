from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Optional

from ..config import get_diagnostics_log_path


def append_debug_log(
    *,
    location: str,
    message: str,
    data: dict[str, Any],
    run_id: str,
    log_path: Optional[Path] = None,
) -> None:
    path = Path(log_path) if log_path else get_diagnostics_log_path()
    payload = {
        "id": f"log_{int(time.time() * 1000)}_{location}",
        "timestamp": int(time.time() * 1000),
        "location": location,
        "message": message,
        "data": data,
        "runId": run_id,
    }
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
    except Exception:
        pass
