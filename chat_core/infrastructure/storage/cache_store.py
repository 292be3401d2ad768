"""按 scope 划分的持久化缓存。

本地模型的权重与编译产物分别缓存在两个 scope 中。这里提供缓存边界的协议，
以及一个基于目录的实现：每个 scope 对应一个子目录，每个 key 对应一个文件。
缓存内容由运行时写入，这里只负责列出与删除。
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, List, Protocol

from chat_core.config.settings import settings
from chat_core.domain.exceptions import BusinessError


class CacheScope(Protocol):
    def keys(self) -> Iterable[str]:
        ...

    def delete(self, key: str) -> bool:
        ...


class CacheStorage(Protocol):
    def open(self, scope: str) -> CacheScope:
        ...


class DirectoryCacheScope:
    """单个 scope 的目录实现，key 与文件名的映射保存在 index.json 中。"""

    def __init__(self, root: Path):
        self._root = root
        self._root.mkdir(parents=True, exist_ok=True)
        self._index_path = self._root / "index.json"

    def _read_index(self) -> dict:
        if not self._index_path.exists():
            return {}
        try:
            return json.loads(self._index_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise BusinessError(code="CACHE_READ_ERROR", message=str(e))

    def _write_index(self, index: dict) -> None:
        self._index_path.write_text(json.dumps(index, ensure_ascii=False, indent=2), encoding="utf-8")

    def keys(self) -> List[str]:
        return sorted(self._read_index())

    def delete(self, key: str) -> bool:
        index = self._read_index()
        fname = index.pop(key, None)
        if fname is None:
            return False
        (self._root / fname).unlink(missing_ok=True)
        self._write_index(index)
        return True


class DirectoryCacheStorage:
    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.cache_root).resolve()

    def open(self, scope: str) -> DirectoryCacheScope:
        # "webllm/model" → <root>/webllm/model
        parts = [p for p in scope.replace("\\", "/").split("/") if p and p not in (".", "..")]
        if not parts:
            raise BusinessError(code="CACHE_SCOPE_INVALID", message=f"invalid cache scope: {scope!r}")
        return DirectoryCacheScope(self._root.joinpath(*parts))
