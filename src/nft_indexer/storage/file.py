"""JSON file storage adapter"""

import asyncio
import json
import os
from pathlib import Path
from typing import Dict, Optional

from loguru import logger

from .base import StorageAdapter
from ..config import Config
from ..errors import StorageError


class FileStorage(StorageAdapter):
    """
    Keeps every key in a single JSON document on disk so the cache survives
    between CLI runs. The file is rewritten atomically on each change.
    """

    def __init__(self, config: Config, path: Optional[Path] = None):
        self.config = config
        self.path = Path(path or config.cache_path).expanduser()
        self._data: Optional[Dict[str, str]] = None
        self._lock = asyncio.Lock()

    def _load(self) -> Dict[str, str]:
        if self._data is None:
            if not self.path.exists():
                self._data = {}
            else:
                try:
                    with self.path.open("r", encoding="utf-8") as f:
                        data = json.load(f)
                except (OSError, json.JSONDecodeError) as e:
                    raise StorageError(f"Could not read cache file {self.path}: {e}") from e
                if not isinstance(data, dict):
                    raise StorageError(f"Cache file {self.path} is not a JSON object")
                self._data = data
        return self._data

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with tmp.open("w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, sort_keys=True)
            os.replace(tmp, self.path)
        except OSError as e:
            logger.warning(f"Could not write cache file {self.path}: {e}")

    async def get_cache(self, key: str) -> Optional[str]:
        async with self._lock:
            value = self._load().get(key)
        if value is not None and not isinstance(value, str):
            raise StorageError(f"Unexpected value stored for {key}")
        return value

    async def set_cache(self, key: str, value: str) -> None:
        async with self._lock:
            try:
                self._load()[key] = value
            except StorageError as e:
                # Unreadable file: start over rather than keep failing
                logger.warning(f"{e}, resetting cache file")
                self._data = {key: value}
            self._save()

    async def delete_cache(self, key: str) -> None:
        async with self._lock:
            try:
                data = self._load()
            except StorageError as e:
                logger.warning(f"{e}, resetting cache file")
                self._data = {}
                data = self._data
            data.pop(key, None)
            self._save()
