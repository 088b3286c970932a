"""
フィードコントローラーモジュール

リモートの写真一覧をページ単位で取得してコレクションにマージし、
画像キャッシュとセッションスナップショットを管理するクラスを提供します。
"""
import functools
import itertools
from typing import Callable, Dict, Iterable, List, Optional, Set

from PySide6.QtCore import QObject, Qt, Signal, Slot

from models import FeedPage, ImageCache, PaginationState, PhotoItem, SnapshotStore
from utils import logger, get_config
from .worker_manager import WorkerManager
from .feed_workers import CacheEvictionWorker

ImageCallback = Callable[[object], None]

# Shared by every controller so eviction worker ids stay unique within one WorkerManager
_eviction_sequence = itertools.count(1)


class _PageRequest:
    """発行済みのページリクエスト"""

    def __init__(self, generation: int, page: int):
        self.generation = generation
        self.page = page

    def __repr__(self):
        return f"_PageRequest(generation={self.generation}, page={self.page})"


class FeedController(QObject):
    """
    フィードの取得・マージ・キャッシュ・永続化を統括するクラス

    コレクションとページネーション状態はこのオブジェクトが属するスレッドでのみ変更されます。
    表示層への通知と画像の受け渡しは、呼び出し中に同期的に行われることはなく、
    常にキュー接続を経由して後から配送されます。
    """
    # 表示層への通知
    content_updated = Signal()            # コンテンツ全体が更新された
    items_inserted = Signal(int, int)     # [start, end) の範囲にアイテムが追加された
    message_posted = Signal(str, str)     # (title, body)

    # 表示層へ処理を受け渡すための内部シグナル
    _dispatch = Signal(object)

    MESSAGE_TITLE = "Warning"

    def __init__(self, feed_fetcher, image_fetcher, image_cache: ImageCache,
                 snapshot_store: SnapshotStore, worker_manager: WorkerManager,
                 page_size: int = None, eviction_priority: int = None):
        """
        初期化

        Args:
            feed_fetcher: fetch_page(page, per_page, on_success, on_failure) を持つフェッチャー
            image_fetcher: image_url(item) と fetch_image(url, on_success, on_failure) を持つフェッチャー
            image_cache: 画像キャッシュ
            snapshot_store: セッションスナップショットのストア
            worker_manager: キャッシュ削除ワーカーを実行するワーカーマネージャー
            page_size: 1ページあたりの件数（省略時は設定値、セッション中は固定）
            eviction_priority: キャッシュ削除ワーカーの優先度（省略時は設定値）
        """
        super().__init__()
        config = get_config()
        if page_size is None:
            page_size = config.get_page_size()
        if eviction_priority is None:
            eviction_priority = config.get("workers.eviction_priority", -1)
        if page_size <= 0:
            raise ValueError(f"page_size must be positive: {page_size}")

        self.feed_fetcher = feed_fetcher
        self.image_fetcher = image_fetcher
        self.image_cache = image_cache
        self.snapshot_store = snapshot_store
        self.worker_manager = worker_manager
        self.page_size: int = page_size
        self.eviction_priority: int = eviction_priority

        self._items: List[PhotoItem] = []
        self._item_ids: Set[str] = set()
        self._pagination = PaginationState()
        self._started = False

        # refresh() のたびに増加し、それ以前に発行されたリクエストを無効化する
        self._generation = 0
        self._refresh_request: Optional[_PageRequest] = None
        self._load_more_request: Optional[_PageRequest] = None

        # フィンガープリント → 画像を待っているコールバック
        self._pending_images: Dict[str, List[ImageCallback]] = {}

        self._dispatch.connect(self._run_dispatched, Qt.ConnectionType.QueuedConnection)

        logger.info(f"FeedController initialized: page_size={page_size}")

    # ------------------------------------------------------------------
    # 状態の参照
    # ------------------------------------------------------------------

    @property
    def pagination(self) -> PaginationState:
        return self._pagination

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_request is not None

    @property
    def is_loading_more(self) -> bool:
        return self._load_more_request is not None

    def item_count(self) -> int:
        """コレクション内のアイテム数"""
        return len(self._items)

    def item_at(self, index: int) -> PhotoItem:
        """
        指定されたインデックスのアイテムを取得

        Raises:
            IndexError: インデックスが [0, item_count()) の範囲外の場合
        """
        if not 0 <= index < len(self._items):
            raise IndexError(f"Item index out of range: {index} (count={len(self._items)})")
        return self._items[index]

    def items(self) -> List[PhotoItem]:
        """コレクションのコピーを表示順で返す"""
        return list(self._items)

    def all_loaded(self) -> bool:
        """
        すべてのアイテムを取得済みかどうか

        1ページも適用されていない間は、件数の比較にかかわらずFalseを返します。
        """
        if not self._pagination.is_initialized:
            return False
        return len(self._items) >= self._pagination.total

    # ------------------------------------------------------------------
    # 表示層からの操作
    # ------------------------------------------------------------------

    def start(self) -> None:
        """
        コンテンツの読み込みを開始

        初回の呼び出しでは前回セッションのスナップショットを復元します。
        復元できた場合はネットワークにアクセスしません。
        """
        if not self._started:
            self._started = True
            if self._restore_snapshot():
                return
        self.refresh()

    def refresh(self) -> bool:
        """
        1ページ目から取得し直してコレクションを置き換える

        Returns:
            bool: リクエストを発行した場合はTrue（既に更新中、またはワーカーを起動できなかった場合はFalse）
        """
        if self._refresh_request is not None:
            logger.debug("Refresh already in flight, ignoring request")
            return False

        # Invalidates any load-more response still in flight
        self._generation += 1
        self._load_more_request = None
        request = _PageRequest(self._generation, 1)
        self._refresh_request = request

        logger.info("Refreshing feed")
        return self.feed_fetcher.fetch_page(
            request.page, self.page_size,
            functools.partial(self._on_refresh_loaded, request),
            functools.partial(self._on_page_failed, request),
        )

    def load_more(self) -> bool:
        """
        次のページを取得してコレクションの末尾に追加する

        未取得・コレクションが空・すべて取得済みの場合は何もしません。

        Returns:
            bool: リクエストを発行した場合はTrue
        """
        if not self._pagination.is_initialized or not self._items or self.all_loaded():
            return False

        if self._refresh_request is not None or self._load_more_request is not None:
            logger.debug("Page request already in flight, ignoring load more")
            return False

        request = _PageRequest(self._generation, self._pagination.next_page)
        self._load_more_request = request

        logger.info(f"Loading more: page {request.page}")
        return self.feed_fetcher.fetch_page(
            request.page, self.page_size,
            functools.partial(self._on_load_more_loaded, request),
            functools.partial(self._on_page_failed, request),
        )

    def image_for(self, item: PhotoItem, deliver: ImageCallback) -> None:
        """
        アイテムの画像を非同期に取得

        キャッシュにあればそれを、なければネットワークから取得してキャッシュに
        保存したうえで deliver に渡します。取得に失敗した場合は何も渡しません。

        Args:
            item: 対象のアイテム
            deliver: 画像を受け取るコールバック（表示層のスレッドで呼び出されます）
        """
        url = self.image_fetcher.image_url(item)
        if not url:
            logger.debug(f"No image URL for item {item.id}")
            return

        cache_key = self.image_cache.make_key(item.id, url)
        cached_image = self.image_cache.get(cache_key)
        if cached_image is not None:
            self._post(functools.partial(deliver, cached_image))
            return

        waiting = self._pending_images.get(cache_key)
        if waiting is not None:
            # Coalesce with the fetch already in flight
            waiting.append(deliver)
            return

        self._pending_images[cache_key] = [deliver]
        self.image_fetcher.fetch_image(
            url,
            functools.partial(self._on_image_loaded, cache_key, item.id),
            functools.partial(self._on_image_failed, cache_key),
        )

    # ------------------------------------------------------------------
    # ライフサイクル
    # ------------------------------------------------------------------

    def on_session_ending(self) -> bool:
        """
        セッション終了時の処理

        コレクションを先頭から削って最新の page_size 件だけを残し、
        削ったアイテムの画像をキャッシュから削除してからスナップショットを保存します。

        Returns:
            bool: スナップショットを保存した場合はTrue
        """
        count = len(self._items)
        if count == 0:
            logger.info("Session ending with an empty collection, nothing to persist")
            return False

        if count > self.page_size:
            trimmed = self._items[:count - self.page_size]
            self._evict_images(trimmed)
            self._set_items(self._items[count - self.page_size:])
            logger.info(f"Trimmed {len(trimmed)} items before persisting")

        return self.snapshot_store.save(self._items)

    # ------------------------------------------------------------------
    # レスポンス処理
    # ------------------------------------------------------------------

    def _restore_snapshot(self) -> bool:
        items = self.snapshot_store.load()
        if not items:
            return False

        self._set_items(items)
        logger.info(f"Restored {len(self._items)} items from the previous session")
        self._post(self.content_updated.emit)
        self.snapshot_store.clear()
        return True

    def _on_refresh_loaded(self, request: _PageRequest, feed_page: FeedPage) -> None:
        if request is not self._refresh_request:
            logger.warning(f"Discarding stale refresh response: {request}")
            return
        self._refresh_request = None

        if feed_page.page != request.page:
            logger.warning(f"Discarding refresh response for page {feed_page.page}, expected {request.page}")
            return

        # Items still present on the new page keep their cached images
        kept_ids = {item.id for item in feed_page.items}
        self._evict_images(item for item in self._items if item.id not in kept_ids)
        self._set_items(feed_page.items)
        self._pagination = PaginationState.from_feed_page(feed_page)

        logger.info(f"Feed refreshed: {len(self._items)} items, page {self._pagination.page}/{self._pagination.pages}, total={self._pagination.total}")
        self._post(self.content_updated.emit)

    def _on_load_more_loaded(self, request: _PageRequest, feed_page: FeedPage) -> None:
        if request is not self._load_more_request:
            logger.warning(f"Discarding stale load more response: {request}")
            return
        self._load_more_request = None

        if request.generation != self._generation or request.page != self._pagination.next_page:
            logger.warning(f"Discarding out-of-order response: {request}, current page {self._pagination.page}")
            return
        if feed_page.page != request.page:
            logger.warning(f"Discarding response for page {feed_page.page}, expected {request.page}")
            return

        start = len(self._items)
        self._append_items(feed_page.items)
        end = len(self._items)
        self._pagination = PaginationState.from_feed_page(feed_page)

        logger.info(f"Loaded page {self._pagination.page}/{self._pagination.pages}: {end - start} new items, {end} total")
        if end > start:
            self._post(functools.partial(self.items_inserted.emit, start, end))

    def _on_page_failed(self, request: _PageRequest, message: str) -> None:
        if request is self._refresh_request:
            self._refresh_request = None
        elif request is self._load_more_request:
            self._load_more_request = None
        else:
            logger.debug(f"Ignoring failure of stale request {request}: {message}")
            return

        logger.error(f"Failed to load page {request.page}: {message}")
        self._post(functools.partial(self.message_posted.emit, self.MESSAGE_TITLE, message))

    def _on_image_loaded(self, cache_key: str, item_id: str, image: object) -> None:
        callbacks = self._pending_images.pop(cache_key, [])

        # Items dropped while the fetch was in flight are not cached
        if item_id in self._item_ids:
            self.image_cache.put(cache_key, image)

        for deliver in callbacks:
            self._post(functools.partial(deliver, image))

    def _on_image_failed(self, cache_key: str, message: str) -> None:
        self._pending_images.pop(cache_key, None)
        logger.debug(f"Image fetch failed for {cache_key}: {message}")

    # ------------------------------------------------------------------
    # 内部処理
    # ------------------------------------------------------------------

    def _set_items(self, items: Iterable[PhotoItem]) -> None:
        self._items = []
        self._item_ids = set()
        self._append_items(items)

    def _append_items(self, items: Iterable[PhotoItem]) -> None:
        for item in items:
            if item.id in self._item_ids:
                logger.debug(f"Skipping duplicate item {item.id}")
                continue
            self._items.append(item)
            self._item_ids.add(item.id)

    def _evict_images(self, items: Iterable[PhotoItem]) -> bool:
        """
        アイテムの画像をキャッシュから削除するワーカーを低優先度で起動

        Returns:
            bool: ワーカーを起動した場合はTrue
        """
        cache_keys = []
        for item in items:
            url = self.image_fetcher.image_url(item)
            if url:
                cache_keys.append(self.image_cache.make_key(item.id, url))
        if not cache_keys:
            return False

        worker_id = f"cache_eviction_{next(_eviction_sequence)}"
        worker = CacheEvictionWorker(self.image_cache, cache_keys, worker_id=worker_id)
        return self.worker_manager.start_worker(worker_id, worker, self.eviction_priority)

    def _post(self, callback: Callable[[], None]) -> None:
        """コールバックを表示層のスレッドへ後から配送する"""
        self._dispatch.emit(callback)

    @Slot(object)
    def _run_dispatched(self, callback: Callable[[], None]) -> None:
        callback()
