"""
Local Filesystem Storage Implementation.
All data lives under a single base directory on the server.
"""

import json
import logging
import aiofiles
from pathlib import Path
from typing import Optional, List, Dict, Any
from datetime import datetime
import glob as glob_module

from .interface import StorageInterface

logger = logging.getLogger(__name__)

META_SUFFIX = '.meta'


class LocalStorage(StorageInterface):
    """
    Local filesystem storage implementation.
    Stores all data in a base directory on the server.
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

    @staticmethod
    def _meta_path(full_path: Path) -> Path:
        return full_path.with_suffix(full_path.suffix + META_SUFFIX)

    async def save(
        self,
        path: str,
        content: bytes | str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> bool:
        """Save content to local filesystem."""
        try:
            full_path = self._get_full_path(path)
            full_path.parent.mkdir(parents=True, exist_ok=True)

            if isinstance(content, str):
                async with aiofiles.open(full_path, 'w', encoding='utf-8') as f:
                    await f.write(content)
            else:
                async with aiofiles.open(full_path, 'wb') as f:
                    await f.write(content)

            if metadata:
                async with aiofiles.open(self._meta_path(full_path), 'w', encoding='utf-8') as f:
                    await f.write(json.dumps(metadata, indent=2, default=str))

            return True
        except (OSError, ValueError) as e:
            logger.error(f"Error saving file {path}: {e}")
            return False

    async def load(self, path: str) -> Optional[bytes]:
        """Load content from local filesystem."""
        try:
            full_path = self._get_full_path(path)
            if not full_path.exists():
                return None

            async with aiofiles.open(full_path, 'rb') as f:
                return await f.read()
        except (OSError, ValueError) as e:
            logger.error(f"Error loading file {path}: {e}")
            return None

    async def exists(self, path: str) -> bool:
        """Check if file exists."""
        try:
            return self._get_full_path(path).exists()
        except ValueError:
            return False

    async def delete(self, path: str) -> bool:
        """Delete file (and its metadata sidecar) from local filesystem."""
        try:
            full_path = self._get_full_path(path)
            if not full_path.exists():
                return False

            full_path.unlink()
            meta_path = self._meta_path(full_path)
            if meta_path.exists():
                meta_path.unlink()
            return True
        except (OSError, ValueError) as e:
            logger.error(f"Error deleting file {path}: {e}")
            return False

    async def list(
        self,
        path: str,
        pattern: Optional[str] = None,
        recursive: bool = False
    ) -> List[str]:
        """List files in directory."""
        try:
            full_path = self._get_full_path(path)
            if not full_path.exists():
                return []

            if pattern:
                glob_pattern = str(full_path / "**" / pattern) if recursive else str(full_path / pattern)
                files = glob_module.glob(glob_pattern, recursive=recursive)
            else:
                candidates = full_path.rglob("*") if recursive else full_path.glob("*")
                files = [str(p) for p in candidates if p.is_file()]

            return sorted(
                str(Path(file_path).relative_to(self.base_dir))
                for file_path in files
                if not file_path.endswith(META_SUFFIX)
            )
        except (OSError, ValueError) as e:
            logger.error(f"Error listing files in {path}: {e}")
            return []

    async def get_metadata(self, path: str) -> Optional[Dict[str, Any]]:
        """Get file metadata."""
        try:
            full_path = self._get_full_path(path)
            if not full_path.exists():
                return None

            stat = full_path.stat()
            metadata = {
                'size': stat.st_size,
                'created_at': datetime.fromtimestamp(stat.st_ctime).isoformat(),
                'modified_at': datetime.fromtimestamp(stat.st_mtime).isoformat(),
                'path': path
            }

            meta_path = self._meta_path(full_path)
            if meta_path.exists():
                async with aiofiles.open(meta_path, 'r', encoding='utf-8') as f:
                    metadata.update(json.loads(await f.read()))

            return metadata
        except (OSError, ValueError) as e:
            logger.error(f"Error getting metadata for {path}: {e}")
            return None

    async def append(self, path: str, content: str) -> bool:
        """Append content to existing file."""
        try:
            full_path = self._get_full_path(path)
            full_path.parent.mkdir(parents=True, exist_ok=True)

            async with aiofiles.open(full_path, 'a', encoding='utf-8') as f:
                await f.write(content)
            return True
        except (OSError, ValueError) as e:
            logger.error(f"Error appending to file {path}: {e}")
            return False
