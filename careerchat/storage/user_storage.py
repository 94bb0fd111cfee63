"""
User Storage - Persistent storage for user accounts on top of StorageInterface.
"""

import json
import logging
from typing import Optional, Dict
from datetime import datetime, timezone

from .interface import StorageInterface
from .local_storage import LocalStorage

logger = logging.getLogger(__name__)


class UserStorage:
    """
    Manages persistent storage of user data.
    One JSON file per user in ``users/``, plus an email -> user_id index.
    """

    def __init__(self, storage: StorageInterface):
        """
        Initialize user storage.

        Args:
            storage: StorageInterface implementation (typically LocalStorage)
        """
        self.storage = storage
        self.users_dir = "users"
        self._email_index_path = f"{self.users_dir}/email_index.json"

    def _user_path(self, user_id: str) -> str:
        return f"{self.users_dir}/{user_id}.json"

    @staticmethod
    def _normalize_email(email: str) -> str:
        return email.strip().lower()

    async def _load_email_index(self) -> Dict[str, str]:
        content = await self.storage.load(self._email_index_path)
        if content is None:
            return {}
        try:
            return json.loads(content.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"Corrupt email index, treating as empty: {e}")
            return {}

    async def _save_email_index(self, index: Dict[str, str]) -> bool:
        return await self.storage.save(self._email_index_path, json.dumps(index, indent=2))

    async def get_user(self, user_id: str) -> Optional[Dict]:
        """
        Get user by user_id.

        Returns:
            Optional[Dict]: User data (timestamps as datetime) or None if not found
        """
        content = await self.storage.load(self._user_path(user_id))
        if content is None:
            return None

        try:
            user_data = json.loads(content.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"Error loading user {user_id}: {e}")
            return None

        for key in ('created_at', 'updated_at'):
            if key in user_data:
                user_data[key] = datetime.fromisoformat(user_data[key])
        return user_data

    async def get_user_by_email(self, email: str) -> Optional[Dict]:
        """Get user by (case-insensitive) email."""
        index = await self._load_email_index()
        user_id = index.get(self._normalize_email(email))
        if user_id is None:
            return None
        return await self.get_user(user_id)

    async def create_user(
        self,
        user_id: str,
        email: str,
        name: str,
        hashed_password: str,
    ) -> Dict:
        """
        Create a new user and register its email in the index.

        Returns:
            Dict: Created user data
        """
        now = datetime.now(timezone.utc)

        user_data = {
            "id": user_id,
            "email": self._normalize_email(email),
            "name": name,
            "hashed_password": hashed_password,
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
        }

        await self.storage.save(
            self._user_path(user_id),
            json.dumps(user_data, indent=2, ensure_ascii=False)
        )

        index = await self._load_email_index()
        index[user_data["email"]] = user_id
        await self._save_email_index(index)

        logger.info("User created", extra={"extra_fields": {"user_id": user_id}})

        user_data['created_at'] = now
        user_data['updated_at'] = now
        return user_data


# Global user storage instance
_user_storage: Optional[UserStorage] = None


def init_user_storage(storage: Optional[StorageInterface] = None) -> UserStorage:
    """
    Initialize the global user storage instance.

    Args:
        storage: Optional StorageInterface implementation. If None, creates LocalStorage.
    """
    global _user_storage
    if storage is None:
        storage = LocalStorage()
    _user_storage = UserStorage(storage)
    return _user_storage


def get_user_storage() -> UserStorage:
    """
    Get the global user storage instance.

    Raises:
        RuntimeError: If user storage has not been initialized
    """
    if _user_storage is None:
        raise RuntimeError("User storage not initialized. Call init_user_storage() first.")
    return _user_storage
