"""
Local Filesystem Storage Implementation.
Stores the backend's JSON files under the data directory.
"""

import logging
import os
import uuid
import aiofiles
from pathlib import Path
from typing import Optional, List
from .interface import StorageInterface

logger = logging.getLogger(__name__)


class LocalStorage(StorageInterface):
    """
    Local filesystem storage implementation.
    Each write goes to its own temporary sibling and is renamed into place.
    """

    def __init__(self, base_dir: str = "./data"):
        """
        Initialize local storage with a base directory.

        Args:
            base_dir: Base directory for all stored files
        """
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, path: str) -> Path:
        """Convert relative path to full absolute path within base directory."""
        full_path = (self.base_dir / path).resolve()

        if full_path != self.base_dir and self.base_dir not in full_path.parents:
            raise ValueError(f"Invalid path: {path} - path traversal detected")

        return full_path

    async def save(self, path: str, content: bytes | str) -> None:
        full_path = self._get_full_path(path)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = full_path.with_name(f"{full_path.name}.{uuid.uuid4().hex}.tmp")

        if isinstance(content, str):
            async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
                await f.write(content)
        else:
            async with aiofiles.open(tmp_path, 'wb') as f:
                await f.write(content)

        os.replace(tmp_path, full_path)
        logger.debug(f"Saved {path} ({len(content)} bytes)")

    async def load(self, path: str) -> Optional[bytes]:
        full_path = self._get_full_path(path)
        if not full_path.is_file():
            return None

        async with aiofiles.open(full_path, 'rb') as f:
            return await f.read()

    async def exists(self, path: str) -> bool:
        return self._get_full_path(path).is_file()

    async def delete(self, path: str) -> bool:
        full_path = self._get_full_path(path)
        if not full_path.is_file():
            return False
        full_path.unlink()
        logger.debug(f"Deleted {path}")
        return True

    async def list(self, path: str, pattern: str = "*") -> List[str]:
        full_path = self._get_full_path(path)
        if not full_path.is_dir():
            return []

        return sorted(
            str(p.relative_to(self.base_dir))
            for p in full_path.glob(pattern)
            if p.is_file() and not p.name.endswith(".tmp")
        )
