import logging
import os
from datetime import datetime, timezone
from logging import handlers

from nodecache.util.ensure import ensure_bool

logger = logging.getLogger(__name__)

_configured_handlers = []


class TimeOfLaunchRotatingFileHandler(handlers.RotatingFileHandler):

    def __init__(self, log_dir: str, filename_base: str, mode='a', maxbytes=0, backupcount=0, encoding=None, delay=0):
        """Names the log file after the time of launch, e.g. "nodecache_2024-01-31_235959.log"."""
        self.log_dir = log_dir
        self.filename_base = filename_base

        self.logfile_path = self._generate_logfile_path()

        handlers.RotatingFileHandler.__init__(self, self.logfile_path, mode, maxbytes, backupcount, encoding, delay)

    def _generate_logfile_path(self):
        timestamp_str = datetime.now(tz=timezone.utc).strftime("%Y-%m-%d_%H%M%S")
        filename = f'{self.filename_base}{timestamp_str}.log'
        return os.path.join(self.log_dir, filename)

    def shouldRollover(self, record):
        """Never rollover: one file per launch."""
        return 0


def configure_logging(app_config):
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Loading a second config must not stack a second set of handlers onto the root logger
    while _configured_handlers:
        root_logger.removeHandler(_configured_handlers.pop())

    # --- DEBUG LOG FILE ---
    debug_log_enabled = ensure_bool(app_config.get_config('logging.debug_log.enable'))
    if debug_log_enabled:
        log_dir = app_config.get_config('logging.debug_log.log_dir')
        filename_base: str = app_config.get_config('logging.debug_log.filename_base')
        debug_log_mode = app_config.get_config('logging.debug_log.filemode')
        debug_log_fmt = app_config.get_config('logging.debug_log.format')
        debug_log_datetime_fmt = app_config.get_config('logging.debug_log.datetime_format')

        try:
            os.makedirs(name=log_dir, exist_ok=True)
        except Exception:
            logger.error(f'Exception while making log dir: {log_dir}')
            raise

        debug_file_handler = TimeOfLaunchRotatingFileHandler(log_dir=log_dir, filename_base=filename_base, mode=debug_log_mode)
        debug_file_level = logging.getLevelName(app_config.get_config('logging.debug_log.level'))
        debug_file_handler.setLevel(debug_file_level)

        debug_file_formatter = logging.Formatter(fmt=debug_log_fmt, datefmt=debug_log_datetime_fmt)
        debug_file_handler.setFormatter(debug_file_formatter)

        root_logger.addHandler(debug_file_handler)
        _configured_handlers.append(debug_file_handler)

    # --- CONSOLE ---
    console_enabled = ensure_bool(app_config.get_config('logging.console.enable'))
    if console_enabled:
        console_fmt = app_config.get_config('logging.console.format')
        console_datetime_fmt = app_config.get_config('logging.console.datetime_format')

        console_handler = logging.StreamHandler()
        console_level = logging.getLevelName(app_config.get_config('logging.console.level'))
        console_handler.setLevel(console_level)

        console_formatter = logging.Formatter(fmt=console_fmt, datefmt=console_datetime_fmt)
        console_handler.setFormatter(console_formatter)

        root_logger.addHandler(console_handler)
        _configured_handlers.append(console_handler)

    info_loggers = app_config.get_config('logging.loglevel_info', [], is_required=False)
    for logger_name in info_loggers:
        logging.getLogger(logger_name).setLevel(logging.INFO)

    warning_loggers = app_config.get_config('logging.loglevel_warning', [], is_required=False)
    for logger_name in warning_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
