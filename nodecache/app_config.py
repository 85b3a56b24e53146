import logging
from typing import Any

import config

from nodecache import logging_config
from nodecache.constants import DEFAULT_CONFIG_PATH, PROJECT_DIR, PROJECT_DIR_TOKEN

logger = logging.getLogger(__name__)


class AppConfig:
    """
    ▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼▼
    CLASS AppConfig

    Read-only view of a CFG file. Entries are addressed by dotted path, e.g. "cache.gc_after_evict".
    ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼ ▼
    """
    def __init__(self, config_file_path: str = None):
        if not config_file_path:
            config_file_path = DEFAULT_CONFIG_PATH

        try:
            logger.debug(f'Reading config file: "{config_file_path}"')
            self._cfg = config.Config(config_file_path)
        except Exception as err:
            raise RuntimeError(f'Could not read config file ({config_file_path})') from err

        self.config_file_path: str = config_file_path

        if self.get_config('logging.configure_on_load', False, is_required=False):
            logging_config.configure_logging(self)

    def get_config(self, cfg_path: str, default_val: Any = None, is_required: bool = True) -> Any:
        try:
            val = self._cfg[cfg_path]
            if val is None and default_val is None and is_required:
                raise RuntimeError(f'Config entry not found but is required: "{cfg_path}"')

            if val is not None and type(val) == str:
                val = val.replace(PROJECT_DIR_TOKEN, PROJECT_DIR)
            logger.debug(f'Read config entry "{cfg_path}" = "{val}"')
            return val
        except (KeyError, config.ConfigError):
            logger.debug(f'Path not found: {cfg_path}')

        # throw this outside the except block above (putting it in the block seems to print out 2 extra exceptions):
        if is_required:
            raise RuntimeError(f'Path not found but is required: "{cfg_path}"')
        return default_val
