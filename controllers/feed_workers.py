"""
フィード用ワーカーモジュール

ページ取得、画像取得、キャッシュ削除をスレッドプール上で実行するワーカーを提供します。
"""
from typing import List, Sequence

from PySide6.QtGui import QImage

from models import FeedPage, ImageCache
from models.errors import FeedError, ImageFetchError
from utils import logger
from .flickr_api import FlickrAPI
from .workers import BaseWorker


class FeedPageWorker(BaseWorker):
    """フィードの1ページを取得するワーカー"""

    def __init__(self, api: FlickrAPI, page: int, per_page: int, worker_id: str = None):
        super().__init__(worker_id or f"feed_page_{page}")
        self.api = api
        self.page = page
        self.per_page = per_page

    def work(self) -> FeedPage:
        return self.api.fetch_recent(self.page, self.per_page)

    def describe_error(self, error: Exception) -> str:
        # FeedError messages are already meant for the user
        if isinstance(error, FeedError):
            return str(error)
        return super().describe_error(error)


class ImageFetchWorker(BaseWorker):
    """
    画像をダウンロードしてデコードするワーカー

    QImageはGUIスレッド以外でも安全に生成できるため、デコードまでをワーカー内で行います。
    """

    def __init__(self, api: FlickrAPI, url: str, worker_id: str = None):
        super().__init__(worker_id or f"image_{url}")
        self.api = api
        self.url = url

    def work(self) -> QImage:
        data = self.api.fetch_image_data(self.url)
        return decode_image(data, self.url)


def decode_image(data: bytes, source: str = "") -> QImage:
    """
    画像データをQImageにデコード

    Raises:
        ImageFetchError: デコードできない場合
    """
    image = QImage.fromData(data)
    if image.isNull():
        raise ImageFetchError(f"Unable to decode image: {source}")
    return image


class CacheEvictionWorker(BaseWorker):
    """
    画像キャッシュからエントリを削除するワーカー

    ユーザーの操作に直接影響しないため、低優先度で実行されます。
    キーは渡された順（コレクションの古い順）に削除されます。
    """

    def __init__(self, image_cache: ImageCache, cache_keys: Sequence[str], worker_id: str = None):
        super().__init__(worker_id)
        self.image_cache = image_cache
        self.cache_keys: List[str] = list(cache_keys)

    def work(self) -> int:
        removed = 0
        for cache_key in self.cache_keys:
            if self.image_cache.remove(cache_key):
                removed += 1
        logger.debug(f"Evicted {removed}/{len(self.cache_keys)} cached images")
        return removed
