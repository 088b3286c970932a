"""
画像キャッシュモジュール

フィンガープリントをキーとして、デコード済み画像をメモリ上に保持する
容量制限付きのLRUキャッシュを提供します。
"""
import threading
from collections import OrderedDict
from typing import Any, Dict, Optional

from utils import logger, get_config


def make_cache_key(identifier: str, url: str) -> str:
    """
    キャッシュキー（フィンガープリント）を生成

    Args:
        identifier: アイテムの識別子
        url: 解決済みの画像URL

    Returns:
        str: キャッシュキー
    """
    return f"{url}#{identifier}"


def estimate_image_size(image: Any) -> int:
    """画像が占有するおおよそのバイト数を返す（不明な場合は0）"""
    if isinstance(image, (bytes, bytearray, memoryview)):
        return len(image)
    size_in_bytes = getattr(image, "sizeInBytes", None)
    if callable(size_in_bytes):
        return int(size_in_bytes())
    return 0


class ImageCache:
    """
    スレッドセーフなLRU画像キャッシュ

    件数の上限とバイト数の上限（任意）を持ち、上限を超えた場合は
    最も長く参照されていないエントリから削除します。
    すべての操作は単一のロックで直列化されるため、複数のワーカーから
    同時に呼び出しても内部状態は壊れません。
    """

    def __init__(self, memory_limit: int = None, memory_limit_mb: int = None):
        """
        初期化

        Args:
            memory_limit: 保持する画像数の上限
            memory_limit_mb: 保持する画像の合計サイズの上限（MB、0で無制限）
        """
        config = get_config()
        if memory_limit is None:
            memory_limit = config.get("cache.memory_limit", 200)
        if memory_limit_mb is None:
            memory_limit_mb = config.get("cache.memory_limit_mb", 64)

        if memory_limit <= 0:
            raise ValueError(f"memory_limit must be positive: {memory_limit}")

        self.memory_limit: int = memory_limit
        self.memory_limit_bytes: int = max(0, memory_limit_mb) * 1024 * 1024
        self.cache_lock = threading.RLock()

        # 先頭が最も古いエントリ
        self._entries: "OrderedDict[str, Any]" = OrderedDict()
        self._sizes: Dict[str, int] = {}
        self._total_bytes = 0

        # 統計情報の初期化
        self.stats = {
            "hits": 0,
            "misses": 0,
            "writes": 0,
            "evictions": 0,
            "removals": 0,
        }

        logger.info(
            f"{self.__class__.__name__}を初期化: memory_limit={memory_limit}, "
            f"memory_limit_mb={memory_limit_mb}"
        )

    def make_key(self, identifier: str, url: str) -> str:
        return make_cache_key(identifier, url)

    def get(self, cache_key: str) -> Optional[Any]:
        """
        画像を取得

        ヒットしたエントリは最新のアクセスとして扱われます。

        Args:
            cache_key: キャッシュキー

        Returns:
            画像、またはキャッシュにない場合はNone
        """
        with self.cache_lock:
            image = self._entries.get(cache_key)
            if image is None:
                self.stats["misses"] += 1
            else:
                self._entries.move_to_end(cache_key)
                self.stats["hits"] += 1

        if image is None:
            logger.debug(f"キャッシュミス: {cache_key}")
        else:
            logger.debug(f"キャッシュヒット: {cache_key}")
        return image

    def put(self, cache_key: str, image: Any) -> bool:
        """
        画像をキャッシュに保存

        Args:
            cache_key: キャッシュキー
            image: 保存する画像

        Returns:
            bool: 保存された場合はTrue（画像単体がバイト数上限を超える場合はFalse）
        """
        if image is None:
            raise ValueError("Cannot cache None")

        size = estimate_image_size(image)
        if self.memory_limit_bytes and size > self.memory_limit_bytes:
            logger.warning(f"画像がキャッシュ上限より大きいため保存しません: {cache_key} ({size} bytes)")
            return False

        with self.cache_lock:
            if cache_key in self._entries:
                self._discard(cache_key)

            self._entries[cache_key] = image
            self._sizes[cache_key] = size
            self._total_bytes += size
            self.stats["writes"] += 1

            self._evict_over_budget()

        logger.debug(f"キャッシュに追加: {cache_key}")
        return True

    def remove(self, cache_key: str) -> bool:
        """
        画像をキャッシュから削除

        Args:
            cache_key: キャッシュキー

        Returns:
            bool: エントリが存在して削除された場合はTrue
        """
        with self.cache_lock:
            if cache_key not in self._entries:
                return False
            self._discard(cache_key)
            self.stats["removals"] += 1

        logger.debug(f"キャッシュから削除: {cache_key}")
        return True

    def contains(self, cache_key: str) -> bool:
        """アクセス順序を変えずに存在を確認"""
        with self.cache_lock:
            return cache_key in self._entries

    def clear(self) -> None:
        """キャッシュをクリア"""
        with self.cache_lock:
            count = len(self._entries)
            self._entries.clear()
            self._sizes.clear()
            self._total_bytes = 0
        logger.info(f"画像キャッシュをクリアしました ({count}件)")

    def __len__(self) -> int:
        with self.cache_lock:
            return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        """
        キャッシュの統計情報を取得

        Returns:
            dict: キャッシュの統計情報を含む辞書
        """
        with self.cache_lock:
            stats = dict(self.stats)
            stats.update({
                "memory_cache_count": len(self._entries),
                "memory_cache_bytes": self._total_bytes,
                "memory_limit": self.memory_limit,
                "memory_limit_bytes": self.memory_limit_bytes,
                "hit_ratio": self._get_hit_ratio(),
            })
        return stats

    def _discard(self, cache_key: str) -> None:
        # Caller holds cache_lock
        del self._entries[cache_key]
        self._total_bytes -= self._sizes.pop(cache_key, 0)

    def _evict_over_budget(self) -> None:
        # Caller holds cache_lock
        while self._entries and (
            len(self._entries) > self.memory_limit
            or (self.memory_limit_bytes and self._total_bytes > self.memory_limit_bytes)
        ):
            oldest_key = next(iter(self._entries))
            self._discard(oldest_key)
            self.stats["evictions"] += 1
            logger.debug(f"古いアイテムをキャッシュから削除: {oldest_key}")

    def _get_hit_ratio(self) -> float:
        """
        キャッシュヒット率を計算

        Returns:
            float: ヒット率（0～100）
        """
        total = self.stats["hits"] + self.stats["misses"]
        if total == 0:
            return 0.0
        return (self.stats["hits"] / total) * 100.0
