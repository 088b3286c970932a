"""
Configのテストスクリプト
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

from utils.config import Config


class TestConfig(unittest.TestCase):
    """Configのテストクラス"""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp(prefix="test_config_")

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_creates_default_file(self):
        config = Config(data_dir=self.temp_dir)
        self.assertTrue(os.path.exists(config.config_file))
        self.assertEqual(config.get("feed.page_size"), 40)
        self.assertEqual(config.get("snapshot.file"), os.path.join(self.temp_dir, "session_snapshot.json"))

    def test_get_missing_returns_default(self):
        config = Config(data_dir=self.temp_dir)
        self.assertIsNone(config.get("feed.missing"))
        self.assertEqual(config.get("nope.nothing", 7), 7)

    def test_set_does_not_leak_into_defaults(self):
        config = Config(data_dir=self.temp_dir)
        config.set("feed.page_size", 10)
        self.assertEqual(config.get("feed.page_size"), 10)
        self.assertEqual(Config.DEFAULT_CONFIG["feed"]["page_size"], 40)

    def test_set_creates_sections(self):
        config = Config(data_dir=self.temp_dir)
        self.assertTrue(config.set("extra.section.value", 1))
        self.assertEqual(config.get("extra.section.value"), 1)
        self.assertFalse(config.set("feed.page_size.nested", 1))

    def test_saved_values_are_merged_on_load(self):
        config_file = os.path.join(self.temp_dir, "config.json")
        with open(config_file, 'w', encoding='utf-8') as f:
            json.dump({"feed": {"page_size": 25}, "flickr": {"api_key": "k"}}, f)

        config = Config(config_file=config_file, data_dir=self.temp_dir)
        self.assertEqual(config.get("feed.page_size"), 25)
        self.assertEqual(config.get("flickr.api_key"), "k")
        # Keys absent from the file keep their defaults
        self.assertEqual(config.get("flickr.image_size"), "m")

    def test_corrupt_file_keeps_defaults(self):
        config_file = os.path.join(self.temp_dir, "config.json")
        with open(config_file, 'w', encoding='utf-8') as f:
            f.write("{broken")

        config = Config(config_file=config_file, data_dir=self.temp_dir)
        self.assertEqual(config.get("feed.page_size"), 40)

    def test_get_page_size_validates(self):
        config = Config(data_dir=self.temp_dir)
        for bad in (0, -5, "40", None, True):
            with self.subTest(page_size=bad):
                config.set("feed.page_size", bad)
                self.assertEqual(config.get_page_size(), 40)
        config.set("feed.page_size", 12)
        self.assertEqual(config.get_page_size(), 12)

    def test_reset(self):
        config = Config(data_dir=self.temp_dir)
        config.set("feed.page_size", 10)
        config.reset()
        self.assertEqual(config.get("feed.page_size"), 40)


if __name__ == '__main__':
    unittest.main()
