from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional


_CONFIGURED = False
_LOG_PATH: Optional[Path] = None


def setup_logging(log_dir: Optional[Path] = None, level: int = logging.INFO) -> Optional[Path]:
    """Configure console logging, plus a dated file log when *log_dir* is given.

    Streamlit re-executes the page script on every rerun, so this only
    installs handlers the first time it is called in a process.

    Returns the log file path, if any.
    """
    global _CONFIGURED, _LOG_PATH

    if _CONFIGURED:
        return _LOG_PATH

    logger = logging.getLogger("telemetry_dashboard")
    logger.setLevel(level)
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    sh = logging.StreamHandler(sys.stdout)
    sh.setLevel(level)
    sh.setFormatter(fmt)
    logger.addHandler(sh)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        _LOG_PATH = log_dir / f"dashboard_{datetime.now().strftime('%Y-%m-%d')}.log"
        fh = logging.FileHandler(_LOG_PATH, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    _CONFIGURED = True
    logger.info("Logging initialized%s", f": {_LOG_PATH}" if _LOG_PATH else "")
    return _LOG_PATH


def get_log_path() -> Optional[Path]:
    return _LOG_PATH
