"""Best-effort diagnostic dumps of intermediate streaming payloads."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


class DebugArtifactWriter:
    """Write ``<id>_<kind>_<timestamp>.json`` files under a debug directory.

    Failures are logged and swallowed: diagnostics must never fail a transcription.
    A writer created with ``directory=None`` is disabled.
    """

    def __init__(self, directory: Optional[Path]) -> None:
        self.directory = directory

    @property
    def enabled(self) -> bool:
        return self.directory is not None

    def save(self, artifact_id: str, data: Any, kind: str) -> Optional[Path]:
        if self.directory is None:
            return None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
            path = self.directory / f"{artifact_id}_{kind}_{stamp}.json"
            path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
            return path
        # Diagnostics only; the pipeline continues without the artifact
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Failed to save debug info (%s) for %s: %s", kind, artifact_id, exc)
            return None
