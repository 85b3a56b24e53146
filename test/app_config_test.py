import logging
import os
import tempfile
import unittest

from nodecache.app_config import AppConfig
from nodecache.backend.store.object_store import ObjectStore
from nodecache.constants import PROJECT_DIR
from nodecache.model.partition import NodesPage

logger = logging.getLogger(__name__)

CUSTOM_CFG = """
cache: {
  gc_after_evict: false
  enable_fetch_sequencing: false
}
logging: {
  configure_on_load: false
}
"""


class AppConfigTest(unittest.TestCase):

    def test_default_config(self):
        app_config = AppConfig()
        self.assertTrue(app_config.get_config('cache.gc_after_evict'))
        self.assertEqual('INFO', app_config.get_config('logging.console.level'))

    def test_project_dir_is_substituted(self):
        app_config = AppConfig()
        log_dir = app_config.get_config('logging.debug_log.log_dir')
        self.assertTrue(log_dir.startswith(PROJECT_DIR))

    def test_missing_path(self):
        app_config = AppConfig()
        self.assertEqual(7, app_config.get_config('cache.no_such_entry', 7, is_required=False))
        with self.assertRaises(RuntimeError):
            app_config.get_config('cache.no_such_entry')

    def test_unreadable_file(self):
        with self.assertRaises(RuntimeError):
            AppConfig('/nonexistent/nodecache.cfg')

    def test_store_reads_config(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            cfg_path = os.path.join(tmp_dir, 'custom.cfg')
            with open(cfg_path, 'w') as f:
                f.write(CUSTOM_CFG)
            app_config = AppConfig(cfg_path)

        store = ObjectStore(app_config, store_id='app_config_test')
        self.assertFalse(store.gc_after_evict)
        self.assertEqual([], store.gc_if_enabled())

        # sequencing disabled: no tickets, every page is accepted
        self.assertIsNone(store.begin_fetch(None, 'findNodes', {'flagged': True}))
        self.assertTrue(store.write_field(None, 'findNodes', NodesPage([], None), args={'flagged': True}, ticket=1))


if __name__ == '__main__':
    unittest.main()
