from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def write_output(path: Path | str, text: str) -> Path:
    """Replace ``path`` with ``text``, creating parent directories as needed."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text, encoding="utf-8")
    logger.info("Wrote results to %s", target)
    return target
