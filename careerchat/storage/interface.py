"""
Storage Interface - Abstract base class for all storage implementations.
Chat and user stores talk to this interface only, so the backing medium
(local disk today) can be swapped without touching them.
"""

from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any


class StorageInterface(ABC):
    """Contract for path-addressed blob storage."""

    @abstractmethod
    async def save(
        self,
        path: str,
        content: bytes | str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Save content to the specified path, replacing any existing content.

        Args:
            path: Relative path (e.g., "users/123/sessions/abc.json")
            content: Content to save, bytes or text
            metadata: Optional metadata stored alongside the file

        Returns:
            bool: True if save was successful, False otherwise
        """

    @abstractmethod
    async def load(self, path: str) -> Optional[bytes]:
        """
        Load content from the specified path.

        Returns:
            Optional[bytes]: File content, or None if the file doesn't exist
        """

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check whether a file exists at the specified path."""

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """
        Delete the file at the specified path.

        Returns:
            bool: True if a file was deleted
        """

    @abstractmethod
    async def list(
        self,
        path: str,
        pattern: Optional[str] = None,
        recursive: bool = False
    ) -> List[str]:
        """
        List files in the specified directory.

        Args:
            path: Directory path to list
            pattern: Optional glob pattern to filter files (e.g., "*.json")
            recursive: Whether to list files recursively

        Returns:
            List[str]: Sorted relative file paths
        """

    @abstractmethod
    async def get_metadata(self, path: str) -> Optional[Dict[str, Any]]:
        """Get size, timestamps and any custom metadata for a file."""

    @abstractmethod
    async def append(self, path: str, content: str) -> bool:
        """
        Append text to a file, creating it if needed.

        Returns:
            bool: True if append was successful
        """
