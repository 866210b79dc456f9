"""
Debug Log Utility

Provides optional, safe file-based debug logging for viewer session debugging.
Logs are written only when enabled via environment variable; failures are
swallowed so the application never crashes due to logging.

Inputs:
    - debug_log(location, message, data) calls from application code
    - Environment: STACKVIEWER_DEBUG_LOG (set to 1, true, or yes to enable)

Outputs:
    - When enabled: appends JSON lines to <project_root>/.debug/debug.log
    - When disabled or on error: no side effects

Requirements:
    - Standard library only: pathlib, os, json, time
"""

import json
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

# This file is src/utils/debug_log.py -> parent=utils, parent.parent=src, parent.parent.parent=project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

# Enable only when env is set to 1, true, or yes (case-insensitive). Default off.
_DEBUG_ENV = os.getenv("STACKVIEWER_DEBUG_LOG", "0").strip().lower()
DEBUG_LOG_ENABLED = _DEBUG_ENV in ("1", "true", "yes")


def debug_log(
    location: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
    log_path: Optional[Path] = None,
) -> None:
    """
    Append one JSON log line to .debug/debug.log when debug logging is enabled.

    Failures (missing dir, permission, disk full, etc.) are caught and ignored
    so the application remains stable.

    Args:
        location: Call site identifier (e.g. "instance_resolver.go_to").
        message: Short description of the event.
        data: Arbitrary dict of context (must be JSON-serializable).
        log_path: Optional override of the log file location.
    """
    if not DEBUG_LOG_ENABLED:
        return
    try:
        if log_path is None:
            log_dir = _PROJECT_ROOT / ".debug"
            log_dir.mkdir(parents=True, exist_ok=True)
            log_path = log_dir / "debug.log"
        payload = {
            "location": location,
            "message": message,
            "data": data or {},
            "timestamp": int(time.time() * 1000),
        }
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(payload, default=str) + "\n")
    except Exception:
        pass
