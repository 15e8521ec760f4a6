"""
Unit tests for the command line entry point.
"""

import io
import json
import logging
import os
import shutil
import tempfile
import unittest
from contextlib import redirect_stdout
from unittest.mock import patch

from feed_bouncer.config_manager import ConfigManager
from feed_bouncer.database import Database
from feed_bouncer.feed import Feed
from feed_bouncer.feed_items import RssItem
from feed_bouncer.main import FeedBouncerApp, main


class TestMain(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        self.storage_dir = os.path.join(self.test_dir, 'storage')
        self.settings_path = os.path.join(self.test_dir, 'settings.json')
        with open(self.settings_path, 'w', encoding='utf-8') as f:
            json.dump({"logging": {"log_dir": os.path.join(self.test_dir, 'logs')}}, f)

        db = Database.init(self.storage_dir)
        feed_id = db.insert(Feed(name="Tech Blog", feed_url="https://tech.example.com/rss"))
        with db.write_locked():
            db.get_mut(feed_id).extend_items([
                RssItem(title="Tech Blog - First", pub_date="01 Jan 2024 00:00:00 GMT"),
                RssItem(title="Tech Blog: Second", pub_date="02 Jan 2024 00:00:00 GMT"),
                RssItem(title="Third", pub_date="03 Jan 2024 00:00:00 GMT"),
            ])
        db.save()

    def tearDown(self):
        root = logging.getLogger()
        for handler in list(root.handlers):
            if getattr(handler, '_feed_bouncer', False):
                root.removeHandler(handler)
                handler.close()
        shutil.rmtree(self.test_dir)

    def test_recent_items_newest_first_without_prefixes(self):
        app = FeedBouncerApp(ConfigManager(self.settings_path, load_env=False), storage_path=self.storage_dir)
        try:
            recent = app.recent_items(2)
        finally:
            app.close()

        self.assertEqual([entry["title"] for entry in recent], ["Third", "Second"])
        self.assertEqual(recent[0]["feed"], "Tech Blog")

    def test_recent_zero(self):
        app = FeedBouncerApp(ConfigManager(self.settings_path, load_env=False), storage_path=self.storage_dir)
        try:
            self.assertEqual(app.recent_items(0), [])
        finally:
            app.close()

    @patch('feed_bouncer.config_manager.load_dotenv')
    def test_cli_recent(self, mock_load_dotenv):
        out = io.StringIO()
        with redirect_stdout(out):
            code = main(["--settings", self.settings_path, "--storage-path", self.storage_dir, "--recent", "10"])

        self.assertEqual(code, 0)
        lines = [line for line in out.getvalue().splitlines() if not line.startswith("    ")]
        self.assertEqual(len(lines), 3)
        self.assertTrue(lines[0].endswith("Third"))
        self.assertTrue(lines[2].endswith("First"))

    @patch('feed_bouncer.config_manager.load_dotenv')
    def test_cli_run_now_refreshes(self, mock_load_dotenv):
        with patch.object(FeedBouncerApp, 'run_refresh', return_value={'committed': True}) as mock_refresh:
            code = main(["--settings", self.settings_path, "--storage-path", self.storage_dir,
                         "--run-now", "--no-import"])

        self.assertEqual(code, 0)
        mock_refresh.assert_called_once()

    @patch('feed_bouncer.config_manager.load_dotenv')
    def test_cli_corrupt_storage(self, mock_load_dotenv):
        with open(os.path.join(self.storage_dir, 'feeds', 'broken.json'), 'w', encoding='utf-8') as f:
            f.write('{')

        code = main(["--settings", self.settings_path, "--storage-path", self.storage_dir, "--recent", "1"])

        self.assertEqual(code, 1)

    def test_cli_missing_settings(self):
        code = main(["--settings", os.path.join(self.test_dir, 'missing.json'), "--recent", "1"])
        self.assertEqual(code, 1)


if __name__ == '__main__':
    unittest.main()
