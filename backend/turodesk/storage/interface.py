"""
Storage Interface - Abstract base class for the local data store.
"""

from abc import ABC, abstractmethod
from typing import Optional, List


class StorageInterface(ABC):
    """
    Contract for the store holding sessions.json, user.json, auth.json and
    per-session history files.
    """

    @abstractmethod
    async def save(self, path: str, content: bytes | str) -> None:
        """
        Save content to the specified path, replacing any previous content.

        Args:
            path: Relative path (e.g., "history/<session_id>.json")
            content: Text or bytes to write

        Raises:
            OSError: If the content could not be written
        """
        pass

    @abstractmethod
    async def load(self, path: str) -> Optional[bytes]:
        """
        Load content from the specified path.

        Args:
            path: Relative path to load from

        Returns:
            Optional[bytes]: File content, or None if the file doesn't exist
        """
        pass

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check if a file exists at the specified path."""
        pass

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """
        Delete the file at the specified path.

        Returns:
            bool: True if a file was removed, False if there was none
        """
        pass

    @abstractmethod
    async def list(self, path: str, pattern: str = "*") -> List[str]:
        """
        List files in a directory.

        Args:
            path: Directory path to list
            pattern: Glob pattern to filter files (e.g., "*.json")

        Returns:
            List[str]: Sorted relative file paths
        """
        pass
