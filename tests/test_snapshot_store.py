"""
SnapshotStoreのテストスクリプト

スナップショットの保存・読み込み・削除と、不正なデータの扱いをテストします。
"""
import os
import sys
import json
import shutil
import tempfile
import unittest

os.environ.setdefault("FLICKR_FEED_HOME", tempfile.mkdtemp(prefix="flickr_feed_test_"))

# プロジェクトルートディレクトリをパスに追加
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from models.photo_item import PhotoItem
from models.snapshot_store import SnapshotStore


def make_item(n):
    return PhotoItem(id=f"p{n}", secret=f"s{n}", server="7372", farm=8, title=f"Photo {n}")


class TestSnapshotStore(unittest.TestCase):
    """SnapshotStoreのテストクラス"""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp(prefix="test_snapshot_")
        self.file_path = os.path.join(self.temp_dir, "snapshot.json")
        self.store = SnapshotStore(self.file_path)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_raw(self, text):
        with open(self.file_path, 'w', encoding='utf-8') as f:
            f.write(text)

    def test_save_then_load_preserves_order_and_fields(self):
        items = [make_item(n) for n in range(5)]
        self.assertTrue(self.store.save(items))

        loaded = self.store.load()
        self.assertEqual([item.id for item in loaded], [item.id for item in items])
        self.assertEqual([item.to_record() for item in loaded], [item.to_record() for item in items])

    def test_load_absent_returns_empty(self):
        self.assertEqual(self.store.load(), [])

    def test_clear_removes_snapshot(self):
        self.store.save([make_item(1)])
        self.store.clear()
        self.assertFalse(os.path.exists(self.file_path))
        self.assertEqual(self.store.load(), [])

    def test_clear_without_snapshot_is_noop(self):
        self.store.clear()
        self.assertFalse(os.path.exists(self.file_path))

    def test_save_leaves_no_temp_file(self):
        self.store.save([make_item(1)])
        self.assertEqual(os.listdir(self.temp_dir), ["snapshot.json"])

    def test_save_creates_missing_directory(self):
        store = SnapshotStore(os.path.join(self.temp_dir, "nested", "dir", "snapshot.json"))
        self.assertTrue(store.save([make_item(1)]))
        self.assertEqual(len(store.load()), 1)

    def test_corrupt_file_is_treated_as_empty(self):
        self._write_raw("{not json")
        self.assertEqual(self.store.load(), [])

    def test_unexpected_structure_is_treated_as_empty(self):
        self._write_raw(json.dumps([1, 2, 3]))
        self.assertEqual(self.store.load(), [])

        self._write_raw(json.dumps({"photos": "nope"}))
        self.assertEqual(self.store.load(), [])

    def test_malformed_records_are_dropped(self):
        good = make_item(1).to_record()
        missing_title = {k: v for k, v in make_item(2).to_record().items() if k != "title"}
        string_farm = dict(make_item(3).to_record(), farm="8")
        bool_farm = dict(make_item(4).to_record(), farm=True)
        int_id = dict(make_item(5).to_record(), id=5)
        self._write_raw(json.dumps({
            "version": 1,
            "photos": [good, missing_title, string_farm, bool_farm, int_id, "garbage", None],
        }))

        loaded = self.store.load()
        self.assertEqual(loaded, [make_item(1)])


if __name__ == '__main__':
    unittest.main()
