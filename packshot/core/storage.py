"""
Working File Storage

Each invocation owns a set of named files under the working directory.
Names are derived from the input's identity (file stem + content hash)
and the job id, so concurrent invocations never collide.
"""

import hashlib
import re
from pathlib import Path
from typing import Dict, Optional

from packshot.core.logging import get_logger

logger = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def input_identity(source_name: str, data: bytes) -> str:
    """Stable, filesystem-safe identity for an input image."""
    stem = Path(source_name or "image").stem or "image"
    stem = _UNSAFE_CHARS.sub("_", stem)[:64]
    digest = hashlib.sha1(data).hexdigest()[:12]
    return f"{stem}_{digest}"


class WorkingFiles:
    """Named working files for one pipeline invocation."""

    def __init__(
        self,
        base_path: Path,
        identity: str,
        job_id: Optional[str] = None,
        enabled: bool = True
    ):
        self.base_path = Path(base_path)
        self.prefix = f"{identity}_{job_id[:8]}" if job_id else identity
        self.enabled = enabled
        self.written: Dict[str, Path] = {}

    def path_for(self, name: str) -> Path:
        return self.base_path / f"{self.prefix}_{name}.png"

    def write(self, name: str, data: bytes) -> Optional[Path]:
        """Write an artifact; returns its path, or None when persistence is off."""
        if not self.enabled:
            return None
        if not data:
            raise ValueError(f"Refusing to write empty artifact '{name}'")

        self.base_path.mkdir(parents=True, exist_ok=True)
        path = self.path_for(name)
        tmp_path = path.with_suffix(".tmp")
        with open(tmp_path, "wb") as f:
            f.write(data)
        tmp_path.replace(path)

        self.written[name] = path
        logger.debug("working_file_written", name=name, path=str(path), size=len(data))
        return path

