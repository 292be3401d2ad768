"""本地模型缓存清理。

模型权重与编译后的 wasm 分别缓存在两个 scope 中，scope 名需要与运行时
写缓存时使用的名字保持一致。
"""

from typing import List

from chat_core.infrastructure.logging.logger import logger
from chat_core.infrastructure.storage.cache_store import CacheStorage


MODEL_CACHE_SCOPE = "webllm/model"
WASM_CACHE_SCOPE = "webllm/wasm"


def clear_cache(storage: CacheStorage, scope: str) -> int:
    cache = storage.open(scope)
    removed = 0
    for key in list(cache.keys()):
        if cache.delete(key):
            removed += 1
    logger.info("Cleared cache scope", extra={"extra": {"scope": scope, "removed": removed}})
    return removed


def clear_all_cache(storage: CacheStorage) -> List[int]:
    return [clear_cache(storage, MODEL_CACHE_SCOPE), clear_cache(storage, WASM_CACHE_SCOPE)]
