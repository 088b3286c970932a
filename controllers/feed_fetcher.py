"""
リモートフェッチャーモジュール

ワーカーをスレッドプールに投入し、結果をコールバックとして
フェッチャーが属するスレッド（オーナースレッド）へ返すクラスを提供します。
"""
import itertools
from typing import Callable, Dict, Optional, Tuple

from PySide6.QtCore import QObject, Slot

from models import PhotoItem
from utils import logger, get_config
from .feed_workers import FeedPageWorker, ImageFetchWorker
from .flickr_api import FlickrAPI
from .worker_manager import WorkerManager
from .workers import BaseWorker

SuccessCallback = Callable[[object], None]
FailureCallback = Callable[[str], None]

# Shared by every fetcher so worker ids stay unique within one WorkerManager
_worker_sequence = itertools.count(1)


class RemoteFetcher(QObject):
    """
    ワーカーの結果をコールバックに振り分ける基底クラス

    ワーカーのシグナルはこのオブジェクトのスロットに接続されるため、
    コールバックは常にこのオブジェクトが属するスレッドで実行されます。
    """

    def __init__(self, api: FlickrAPI, worker_manager: WorkerManager, priority: int = 0):
        super().__init__()
        self.api = api
        self.worker_manager = worker_manager
        self.priority = priority
        self._callbacks: Dict[str, Tuple[SuccessCallback, FailureCallback]] = {}

    def _next_worker_id(self, prefix: str) -> str:
        return f"{prefix}_{next(_worker_sequence)}"

    def _submit(self, worker: BaseWorker, on_success: SuccessCallback, on_failure: FailureCallback) -> bool:
        self._callbacks[worker.worker_id] = (on_success, on_failure)
        worker.signals.result.connect(self._on_worker_result)
        worker.signals.error.connect(self._on_worker_error)

        if not self.worker_manager.start_worker(worker.worker_id, worker, self.priority):
            self._callbacks.pop(worker.worker_id, None)
            on_failure(f"Failed to start worker {worker.worker_id}")
            return False
        return True

    def pending_count(self) -> int:
        return len(self._callbacks)

    @Slot(str, object)
    def _on_worker_result(self, worker_id: str, result: object) -> None:
        callbacks = self._callbacks.pop(worker_id, None)
        if callbacks is None:
            logger.warning(f"Result from unknown worker: {worker_id}")
            return
        callbacks[0](result)

    @Slot(str, str)
    def _on_worker_error(self, worker_id: str, message: str) -> None:
        callbacks = self._callbacks.pop(worker_id, None)
        if callbacks is None:
            logger.warning(f"Error from unknown worker: {worker_id}")
            return
        callbacks[1](message)


class FeedFetcher(RemoteFetcher):
    """フィードのページを非同期に取得するフェッチャー"""

    def __init__(self, api: FlickrAPI, worker_manager: WorkerManager, priority: int = None):
        if priority is None:
            priority = get_config().get("workers.feed_priority", 1)
        super().__init__(api, worker_manager, priority)

    def fetch_page(self, page: int, per_page: int,
                   on_success: SuccessCallback, on_failure: FailureCallback) -> bool:
        """
        ページを取得

        Args:
            page: ページ番号（1始まり）
            per_page: 1ページあたりの件数
            on_success: FeedPage を受け取るコールバック
            on_failure: エラーメッセージを受け取るコールバック

        Returns:
            bool: ワーカーの起動に成功した場合はTrue
        """
        worker = FeedPageWorker(self.api, page, per_page,
                                worker_id=self._next_worker_id(f"feed_page_{page}"))
        return self._submit(worker, on_success, on_failure)


class ImageFetcher(RemoteFetcher):
    """写真の画像を非同期に取得するフェッチャー"""

    def __init__(self, api: FlickrAPI, worker_manager: WorkerManager, priority: int = None):
        if priority is None:
            priority = get_config().get("workers.image_priority", 0)
        super().__init__(api, worker_manager, priority)

    def image_url(self, item: PhotoItem) -> Optional[str]:
        """アイテムの画像URLを解決"""
        return self.api.image_url(item)

    def fetch_image(self, url: str, on_success: SuccessCallback, on_failure: FailureCallback) -> bool:
        """
        画像を取得

        Args:
            url: 画像URL
            on_success: QImage を受け取るコールバック
            on_failure: エラーメッセージを受け取るコールバック

        Returns:
            bool: ワーカーの起動に成功した場合はTrue
        """
        worker = ImageFetchWorker(self.api, url, worker_id=self._next_worker_id("image"))
        return self._submit(worker, on_success, on_failure)
