"""
Local key-value persistence.

Each key holds one JSON document. ``JsonFileStore`` keeps one file per key
under a data directory; ``MemoryStore`` keeps documents in a dict and is what
tests and previews use. ``UserScopedStore`` wraps either one and prefixes
every key with the signed-in user's id.
"""
import asyncio
import copy
import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Protocol

logger = logging.getLogger(__name__)

GOALS_KEY = "goals"
TRANSACTIONS_KEY = "transactions"
USER_SETUP_KEY = "user_setup"
AUTH_USER_KEY = "auth.current_user"
AUTH_TEMP_KEY = "auth.temp_data"
AUTH_TOKEN_KEY = "trend_auth_token"

# documents that belong to the signed-in user; auth keys stay device-wide
USER_DATA_KEYS = (USER_SETUP_KEY, TRANSACTIONS_KEY, GOALS_KEY)


class StorageError(Exception):
    """Raised when a document cannot be read or written."""


class KeyValueStore(Protocol):
    async def get_item(self, key: str) -> Optional[Any]: ...

    async def set_item(self, key: str, value: Any) -> None: ...

    async def remove_item(self, key: str) -> None: ...

    async def remove_many(self, keys: Iterable[str]) -> None: ...


class MemoryStore:
    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, str] = {}
        for key, value in (initial or {}).items():
            self._data[key] = json.dumps(value)

    async def get_item(self, key: str) -> Optional[Any]:
        await asyncio.sleep(0)
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    async def set_item(self, key: str, value: Any) -> None:
        await asyncio.sleep(0)
        self._data[key] = json.dumps(value)

    async def remove_item(self, key: str) -> None:
        await asyncio.sleep(0)
        self._data.pop(key, None)

    async def remove_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            await self.remove_item(key)

    def snapshot(self) -> Dict[str, Any]:
        return {k: copy.deepcopy(json.loads(v)) for k, v in self._data.items()}


class JsonFileStore:
    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def _read(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"cannot read {key}: {e}") from e

    def _write(self, key: str, value: Any) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            tmp.write_text(json.dumps(value, indent=2), encoding="utf-8")
            tmp.replace(path)
        except (OSError, TypeError) as e:
            raise StorageError(f"cannot write {key}: {e}") from e

    async def get_item(self, key: str) -> Optional[Any]:
        return await asyncio.to_thread(self._read, key)

    async def set_item(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._write, key, value)
        logger.debug("Stored %s", key)

    async def remove_item(self, key: str) -> None:
        await asyncio.to_thread(self._path(key).unlink, True)

    async def remove_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            await self.remove_item(key)


class UserScopedStore:
    """A view of a store where every key belongs to one user.

    Keys are written as ``user_{user_id}_{key}`` so that two accounts on the
    same device never read each other's documents.
    """

    def __init__(self, store: KeyValueStore, user_id: str):
        if not user_id:
            raise ValueError("user_id is required")
        self.store = store
        self.user_id = user_id

    def user_key(self, key: str) -> str:
        return f"user_{self.user_id}_{key}"

    async def get_item(self, key: str) -> Optional[Any]:
        return await self.store.get_item(self.user_key(key))

    async def set_item(self, key: str, value: Any) -> None:
        await self.store.set_item(self.user_key(key), value)

    async def remove_item(self, key: str) -> None:
        await self.store.remove_item(self.user_key(key))

    async def remove_many(self, keys: Iterable[str]) -> None:
        await self.store.remove_many([self.user_key(k) for k in keys])

    async def migrate_legacy_data(self, keys: Iterable[str] = USER_DATA_KEYS) -> Dict[str, bool]:
        """Move documents stored before accounts existed into this user's namespace.

        A legacy document is copied only when the user has nothing under that
        key yet. The original is backed up under ``{key}_backup_{ms}`` and then
        removed, so a later sign-in (by this or another user) finds nothing to
        migrate.
        """
        results: Dict[str, bool] = {}
        for key in keys:
            legacy = await self.store.get_item(key)
            if not legacy:
                continue
            if await self.get_item(key):
                logger.info("%s already exists for user %s, skipping migration", key, self.user_id)
                results[key] = True
                continue
            try:
                await self.set_item(key, legacy)
                await self.store.set_item(f"{key}_backup_{int(time.time() * 1000)}", {
                    "data": legacy,
                    "migratedAt": datetime.now().isoformat(),
                    "migratedTo": self.user_key(key),
                    "originalUserId": self.user_id,
                })
                await self.store.remove_item(key)
            except StorageError as e:
                logger.error("Migration of %s failed: %s", key, e)
                results[key] = False
                continue
            logger.info("Migrated %s to %s", key, self.user_key(key))
            results[key] = True
        return results

    async def has_existing_data(self) -> Dict[str, bool]:
        setup = await self.get_item(USER_SETUP_KEY)
        transactions = await self.get_item(TRANSACTIONS_KEY)
        goals = await self.get_item(GOALS_KEY)
        result = {
            "has_user_setup": bool(setup),
            "has_transactions": bool(transactions),
            "has_goals": bool(goals),
        }
        result["has_any_data"] = any(result.values())
        return result

    async def delete_all_user_data(self) -> bool:
        try:
            await self.remove_many(USER_DATA_KEYS)
        except StorageError as e:
            logger.error("Deleting data for user %s failed: %s", self.user_id, e)
            return False
        logger.info("Deleted all data for user %s", self.user_id)
        return True
