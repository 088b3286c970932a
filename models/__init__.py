"""
モデルモジュールの初期化ファイル

フィードのデータ構造とキャッシュ・永続化を管理するクラスを提供します。
"""
from .errors import FeedError, FeedRequestError, FeedDecodeError, ImageFetchError, ConfigurationError
from .photo_item import PhotoItem
from .feed_page import FeedPage
from .pagination_state import PaginationState
from .image_cache import ImageCache, make_cache_key
from .snapshot_store import SnapshotStore

__all__ = [
    'FeedError',
    'FeedRequestError',
    'FeedDecodeError',
    'ImageFetchError',
    'ConfigurationError',
    'PhotoItem',
    'FeedPage',
    'PaginationState',
    'ImageCache',
    'make_cache_key',
    'SnapshotStore',
]
