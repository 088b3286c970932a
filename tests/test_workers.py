"""
ワーカーとフェッチャーのテストスクリプト

フィード用ワーカーの処理内容、WorkerManagerによる実行、
およびフェッチャーによる結果のコールバック配送をテストします。
"""
import os
import sys
import tempfile
import unittest
from unittest import mock

os.environ.setdefault("FLICKR_FEED_HOME", tempfile.mkdtemp(prefix="flickr_feed_test_"))

from PySide6.QtCore import QBuffer, QByteArray, QCoreApplication, QIODevice
from PySide6.QtGui import QColor, QImage

# プロジェクトルートディレクトリをパスに追加
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from controllers.feed_fetcher import FeedFetcher, ImageFetcher
from controllers.feed_workers import CacheEvictionWorker, FeedPageWorker, ImageFetchWorker, decode_image
from controllers.worker_manager import WorkerManager
from models import FeedPage, ImageCache, PhotoItem
from models.errors import FeedRequestError, ImageFetchError

# アプリケーションインスタンスを作成（Qtの要件）
app = QCoreApplication.instance() or QCoreApplication([])


def process_events():
    for _ in range(3):
        QCoreApplication.processEvents()


def png_bytes(width=4, height=3):
    image = QImage(width, height, QImage.Format.Format_ARGB32)
    image.fill(QColor(51, 102, 153))
    data = QByteArray()
    buffer = QBuffer(data)
    buffer.open(QIODevice.OpenModeFlag.WriteOnly)
    image.save(buffer, "PNG")
    buffer.close()
    return bytes(data)


class TestFeedWorkers(unittest.TestCase):
    """フィード用ワーカーのテストクラス"""

    def test_feed_page_worker_returns_page(self):
        api = mock.Mock()
        page = FeedPage(page=2, pages=3, per_page=40, total=100)
        api.fetch_recent.return_value = page

        worker = FeedPageWorker(api, 2, 40)

        self.assertIs(worker.work(), page)
        api.fetch_recent.assert_called_once_with(2, 40)

    def test_feed_page_worker_error_message(self):
        worker = FeedPageWorker(mock.Mock(), 1, 40)
        self.assertEqual(worker.describe_error(FeedRequestError("Unable to decode data")), "Unable to decode data")
        self.assertEqual(worker.describe_error(KeyError("x")), "KeyError: 'x'")

    def test_run_emits_result_then_finished(self):
        api = mock.Mock()
        page = FeedPage(page=1, pages=1, per_page=40, total=0)
        api.fetch_recent.return_value = page
        worker = FeedPageWorker(api, 1, 40, worker_id="page_worker")
        events = []
        worker.signals.result.connect(lambda worker_id, result: events.append(("result", worker_id, result)))
        worker.signals.error.connect(lambda worker_id, message: events.append(("error", worker_id, message)))
        worker.signals.finished.connect(lambda worker_id: events.append(("finished", worker_id)))

        # Run on the calling thread, signals are delivered directly
        worker.run()

        self.assertEqual(events, [("result", "page_worker", page), ("finished", "page_worker")])

    def test_run_emits_error_then_finished(self):
        api = mock.Mock()
        api.fetch_recent.side_effect = FeedRequestError("Unable to retrieve data from remote response")
        worker = FeedPageWorker(api, 1, 40, worker_id="failing_worker")
        events = []
        worker.signals.result.connect(lambda worker_id, result: events.append(("result", worker_id)))
        worker.signals.error.connect(lambda worker_id, message: events.append(("error", worker_id, message)))
        worker.signals.finished.connect(lambda worker_id: events.append(("finished", worker_id)))

        worker.run()

        self.assertEqual(events, [
            ("error", "failing_worker", "Unable to retrieve data from remote response"),
            ("finished", "failing_worker"),
        ])

    def test_image_fetch_worker_decodes_image(self):
        api = mock.Mock()
        api.fetch_image_data.return_value = png_bytes(4, 3)

        image = ImageFetchWorker(api, "https://example.test/a.png").work()

        self.assertFalse(image.isNull())
        self.assertEqual((image.width(), image.height()), (4, 3))

    def test_decode_image_rejects_garbage(self):
        with self.assertRaises(ImageFetchError):
            decode_image(b"definitely not an image", "https://example.test/a.jpg")

    def test_cache_eviction_worker_removes_keys(self):
        cache = ImageCache(memory_limit=10, memory_limit_mb=0)
        for key in ("a", "b", "c"):
            cache.put(key, b"data")

        removed = CacheEvictionWorker(cache, ["a", "c", "missing"]).work()

        self.assertEqual(removed, 2)
        self.assertFalse(cache.contains("a"))
        self.assertTrue(cache.contains("b"))
        self.assertFalse(cache.contains("c"))


class TestWorkerManager(unittest.TestCase):
    """WorkerManagerのテストクラス"""

    def setUp(self):
        self.worker_manager = WorkerManager(max_threads=4)

    def tearDown(self):
        self.worker_manager.wait_for_all()
        process_events()

    def test_runs_worker_and_tracks_completion(self):
        cache = ImageCache(memory_limit=10, memory_limit_mb=0)
        cache.put("a", b"data")
        finished = []
        self.worker_manager.signals.worker_finished.connect(lambda worker_id, elapsed: finished.append(worker_id))

        worker = CacheEvictionWorker(cache, ["a"], worker_id="evict")
        self.assertTrue(self.worker_manager.start_worker("evict", worker, priority=-1))
        self.assertTrue(self.worker_manager.wait_for_all(5000))
        process_events()

        self.assertFalse(cache.contains("a"))
        self.assertEqual(finished, ["evict"])
        self.assertFalse(self.worker_manager.is_worker_active("evict"))
        self.assertEqual(self.worker_manager.get_active_workers_count(), 0)

    def test_rejects_duplicate_active_id(self):
        cache = ImageCache(memory_limit=10, memory_limit_mb=0)
        first = CacheEvictionWorker(cache, [], worker_id="dup")
        second = CacheEvictionWorker(cache, [], worker_id="dup")

        self.assertTrue(self.worker_manager.start_worker("dup", first))
        # Stays registered until the finished signal is processed on this thread
        self.assertFalse(self.worker_manager.start_worker("dup", second))

    def test_rejects_non_worker(self):
        self.assertFalse(self.worker_manager.start_worker("bogus", object()))

    def test_status(self):
        status = self.worker_manager.get_status()
        self.assertEqual(status["active_workers"], 0)
        self.assertEqual(status["max_threads"], 4)


class TestFetchers(unittest.TestCase):
    """フェッチャーのテストクラス"""

    def setUp(self):
        self.worker_manager = WorkerManager(max_threads=4)
        self.api = mock.Mock()

    def tearDown(self):
        self.worker_manager.wait_for_all()
        process_events()

    def _drain(self):
        self.assertTrue(self.worker_manager.wait_for_all(5000))
        process_events()

    def test_feed_fetcher_delivers_page(self):
        page = FeedPage(page=1, pages=2, per_page=40, total=80)
        self.api.fetch_recent.return_value = page
        fetcher = FeedFetcher(self.api, self.worker_manager, priority=1)
        successes, failures = [], []

        self.assertTrue(fetcher.fetch_page(1, 40, successes.append, failures.append))
        self._drain()

        self.assertEqual(successes, [page])
        self.assertEqual(failures, [])
        self.assertEqual(fetcher.pending_count(), 0)
        self.api.fetch_recent.assert_called_once_with(1, 40)

    def test_feed_fetcher_delivers_failure_message(self):
        self.api.fetch_recent.side_effect = FeedRequestError("Unable to retrieve data from remote response")
        fetcher = FeedFetcher(self.api, self.worker_manager, priority=1)
        successes, failures = [], []

        fetcher.fetch_page(1, 40, successes.append, failures.append)
        self._drain()

        self.assertEqual(successes, [])
        self.assertEqual(failures, ["Unable to retrieve data from remote response"])

    def test_fetchers_sharing_a_manager_use_distinct_worker_ids(self):
        self.api.fetch_recent.return_value = FeedPage(page=1, pages=1, per_page=40, total=0)
        first = FeedFetcher(self.api, self.worker_manager, priority=1)
        second = FeedFetcher(self.api, self.worker_manager, priority=1)
        successes, failures = [], []

        self.assertTrue(first.fetch_page(1, 40, successes.append, failures.append))
        self.assertTrue(second.fetch_page(1, 40, successes.append, failures.append))
        self._drain()

        self.assertEqual(len(successes), 2)
        self.assertEqual(failures, [])

    def test_image_fetcher(self):
        self.api.fetch_image_data.return_value = png_bytes(2, 2)
        self.api.image_url.return_value = "https://example.test/p1.png"
        fetcher = ImageFetcher(self.api, self.worker_manager, priority=0)
        item = PhotoItem(id="p1", secret="s", server="1", farm=1, title="t")
        images, failures = [], []

        url = fetcher.image_url(item)
        fetcher.fetch_image(url, images.append, failures.append)
        self._drain()

        self.assertEqual(url, "https://example.test/p1.png")
        self.assertEqual(len(images), 1)
        self.assertEqual(images[0].width(), 2)
        self.assertEqual(failures, [])


if __name__ == '__main__':
    unittest.main()
