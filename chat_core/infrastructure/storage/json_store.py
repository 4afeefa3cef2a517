"""本地键值槽位存储。

每个槽位对应存储根目录下的一个 UTF-8 文件。写入先落到临时文件再用
os.replace 覆盖，读取方只会看到旧快照或新快照，不会读到半截内容。
多个进程同时写同一槽位时不做协调，后写者覆盖先写者。
"""

import os
import re
from pathlib import Path
from typing import Dict, Optional, Protocol
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.exceptions import StoreError


_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class JsonFileKeyValueStore(KeyValueStore):
    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def get(self, key: str) -> Optional[str]:
        path = self._slot_path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StoreError(code="STORE_READ_ERROR", message=str(e), key=key)

    def set(self, key: str, value: str) -> None:
        path = self._slot_path(key)
        tmp_path = self._root / f"{key}.{uuid4().hex}.tmp"
        try:
            tmp_path.write_text(value, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StoreError(code="STORE_WRITE_ERROR", message=str(e), key=key)

    def remove(self, key: str) -> None:
        path = self._slot_path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StoreError(code="STORE_DELETE_ERROR", message=str(e), key=key)

    def _slot_path(self, key: str) -> Path:
        if not _KEY_RE.match(key or ""):
            raise StoreError(code="INVALID_SLOT_KEY", message=repr(key))
        return self._root / f"{key}.json"


class InMemoryKeyValueStore(KeyValueStore):
    """进程内字典实现，用于测试和不需要落盘的临时会话。"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data
