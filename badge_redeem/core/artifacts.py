"""
Local "save-as" for downloaded badges and exported JSON documents.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

_FILENAME_PARAM = re.compile(r'filename="([^"]+)"')


def filename_from_content_disposition(header: Optional[str], default: str) -> str:
    """
    Pick the filename out of a Content-Disposition header.

    Only the quoted form (filename="...") is recognised. Directory parts are
    dropped so a server cannot steer the file outside the output directory.
    """
    if header:
        match = _FILENAME_PARAM.search(header)
        if match:
            name = match.group(1).replace("\\", "/").split("/")[-1].strip()
            if name and name not in (".", ".."):
                return name
    return default


class ArtifactStore:
    """Writes artifacts into one output directory, never overwriting an existing file."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _free_path(self, filename: str) -> Path:
        candidate = self.directory / filename
        if not candidate.exists():
            return candidate
        stem, suffix = candidate.stem, candidate.suffix
        counter = 1
        while True:
            candidate = self.directory / f"{stem} ({counter}){suffix}"
            if not candidate.exists():
                return candidate
            counter += 1

    def save_bytes(self, filename: str, content: bytes) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._free_path(filename)
        path.write_bytes(content)
        logger.info(f"💾 Saved {len(content)} bytes to {path}")
        return path

    def save_json(self, filename: str, document: Dict[str, Any]) -> Path:
        text = json.dumps(document, indent=2, ensure_ascii=False)
        return self.save_bytes(filename, text.encode("utf-8"))
