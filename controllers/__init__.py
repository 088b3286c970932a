# --- START REFACTORED controllers/__init__.py ---
"""
コントローラーモジュールの初期化ファイル

フィードのビジネスロジック、非同期処理、
モデルと表示層の連携を担当するクラスを提供します。
"""
from .worker_manager import WorkerManager
from .workers import BaseWorker, WorkerSignals
from .flickr_api import FlickrAPI
from .feed_workers import FeedPageWorker, ImageFetchWorker, CacheEvictionWorker
from .feed_fetcher import FeedFetcher, ImageFetcher
from .feed_controller import FeedController

__all__ = [
    'WorkerManager',
    'BaseWorker',
    'WorkerSignals',
    'FlickrAPI',
    'FeedPageWorker',
    'ImageFetchWorker',
    'CacheEvictionWorker',
    'FeedFetcher',
    'ImageFetcher',
    'FeedController',
]
# --- END REFACTORED controllers/__init__.py ---
