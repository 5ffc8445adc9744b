import logging
import logging.handlers
import traceback
from pathlib import Path

from shop_ledger.config import config


class Logger:
    """Logging manager for the shop ledger."""

    _instance = None
    _loggers = {}

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super(Logger, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize the logger if not already initialized."""
        if self._initialized:
            return

        self._log_config = config.log_config
        self._log_dir = Path(self._log_config['directory'])

        # Set up the package logger every module logger propagates to
        self._configure_package_logger()

        self._app_logger = self.get_logger('shop_ledger.app')

        self._initialized = True

    def _level(self):
        level_name = self._log_config['level'].upper()
        return getattr(logging, level_name, logging.INFO)

    def _configure_package_logger(self):
        """Configure the ``shop_ledger`` logger."""
        package_logger = logging.getLogger('shop_ledger')
        package_logger.setLevel(self._level())

        # Remove existing handlers
        for handler in package_logger.handlers[:]:
            package_logger.removeHandler(handler)

        if self._log_config['console_output']:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(logging.Formatter(self._log_config['format']))
            package_logger.addHandler(console_handler)

        if self._log_config['file_output']:
            package_logger.addHandler(self._file_handler('shop_ledger'))

    def _file_handler(self, name):
        """Create a rotating file handler for ``name``."""
        if not self._log_dir.exists():
            self._log_dir.mkdir(parents=True)

        log_file = self._log_dir / f"{name}.log"
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=self._log_config['max_size_mb'] * 1024 * 1024,
            backupCount=self._log_config['backup_count']
        )
        file_handler.setFormatter(logging.Formatter(self._log_config['format']))
        return file_handler

    def get_logger(self, name):
        """Get a logger with the specified name.

        Names outside the ``shop_ledger`` namespace are nested under it so
        they share the package handlers.

        Args:
            name: Name of the logger

        Returns:
            Configured logger instance
        """
        if name in self._loggers:
            return self._loggers[name]

        full_name = name if name.startswith('shop_ledger') else f"shop_ledger.{name}"
        logger = logging.getLogger(full_name)
        logger.setLevel(self._level())

        self._loggers[name] = logger
        return logger

    def log_exception(self, logger_name, exception, message=None):
        """Log an exception with stack trace.

        Args:
            logger_name: Logger name
            exception: Exception object
            message: Optional message to include
        """
        logger = self.get_logger(logger_name)

        if message:
            logger.error(f"{message}: {str(exception)}")
        else:
            logger.error(str(exception))

        logger.error(traceback.format_exc())

    @property
    def app_logger(self):
        """Get the application logger."""
        return self._app_logger

# Global logger instance
logger = Logger()

def get_logger(name):
    """Get a logger with the specified name."""
    return logger.get_logger(name)

def log_exception(logger_name, exception, message=None):
    """Log an exception with stack trace."""
    logger.log_exception(logger_name, exception, message)
