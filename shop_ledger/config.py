import os
import configparser
from pathlib import Path


class Config:
    """Configuration manager for the shop ledger."""

    _instance = None

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize the configuration if not already initialized."""
        if self._initialized:
            return

        self._config_dir = Path(os.getenv('SHOP_LEDGER_CONFIG_DIR', 'config'))
        self._config_path = self._config_dir / 'settings.ini'
        self._config = configparser.ConfigParser(interpolation=None)

        # Defaults stay in memory until something is set explicitly
        self._load_defaults()
        if self._config_path.exists():
            self._config.read(self._config_path)

        self._initialized = True

    def _load_defaults(self):
        """Populate default configuration values."""
        self._config['STORE'] = {
            'type': 'memory',
            'sqlite_path': 'shop_ledger.db'
        }

        self._config['DATABASE'] = {
            'engine': 'postgresql',
            'host': 'localhost',
            'port': '5432',
            'database': 'shop_ledger',
            'username': 'postgres',
            'password': 'postgres',
            'pool_size': '5',
            'echo': 'False'
        }

        self._config['SUPABASE'] = {
            'url': '',
            'key': ''
        }

        self._config['AUTH'] = {
            'owner_id': 'local-owner'
        }

        self._config['LOGGING'] = {
            'level': 'INFO',
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'directory': 'logs',
            'max_size_mb': '10',
            'backup_count': '5',
            'console_output': 'True',
            'file_output': 'False'
        }

        self._config['BUSINESS_RULES'] = {
            'default_low_stock_threshold': '5',
            'low_stock_limit': '5',
            'low_stock_candidate_window': '10',
            'stock_update_retries': '3',
            'timezone': 'UTC',
            'default_currency': 'NGN'
        }

    def reload(self):
        """Re-read defaults and the settings file."""
        self._config = configparser.ConfigParser(interpolation=None)
        self._load_defaults()
        if self._config_path.exists():
            self._config.read(self._config_path)

    def _save_config(self):
        """Save configuration to file."""
        if not self._config_dir.exists():
            self._config_dir.mkdir(parents=True)

        with open(self._config_path, 'w') as configfile:
            self._config.write(configfile)

    def get(self, section, key, default=None):
        """Get configuration value."""
        try:
            return self._config.get(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError):
            return default

    def get_int(self, section, key, default=None):
        """Get configuration value as integer."""
        try:
            return self._config.getint(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def get_float(self, section, key, default=None):
        """Get configuration value as float."""
        try:
            return self._config.getfloat(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def get_boolean(self, section, key, default=None):
        """Get configuration value as boolean."""
        try:
            return self._config.getboolean(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def set(self, section, key, value):
        """Set configuration value."""
        if not self._config.has_section(section):
            self._config.add_section(section)

        self._config.set(section, key, str(value))
        self._save_config()

    def get_db_url(self):
        """Generate SQLAlchemy database URL."""
        store_type = self.get('STORE', 'type', 'memory').lower()
        if store_type == 'sqlite':
            return f"sqlite:///{self.get('STORE', 'sqlite_path', 'shop_ledger.db')}"

        engine = self.get('DATABASE', 'engine', 'postgresql')
        username = self.get('DATABASE', 'username', 'postgres')
        password = self.get('DATABASE', 'password', 'postgres')
        host = self.get('DATABASE', 'host', 'localhost')
        port = self.get('DATABASE', 'port', '5432')
        database = self.get('DATABASE', 'database', 'shop_ledger')

        return f"{engine}://{username}:{password}@{host}:{port}/{database}"

    @property
    def store_config(self):
        """Get record store configuration."""
        return {
            'type': self.get('STORE', 'type', 'memory').split('#')[0].strip().lower(),
            'sqlite_path': self.get('STORE', 'sqlite_path', 'shop_ledger.db'),
            'owner_id': self.get('AUTH', 'owner_id', 'local-owner'),
            'pool_size': self.get_int('DATABASE', 'pool_size', 5),
            'echo': self.get_boolean('DATABASE', 'echo', False)
        }

    @property
    def log_config(self):
        """Get logging configuration."""
        return {
            'level': self.get('LOGGING', 'level', 'INFO'),
            'format': self.get('LOGGING', 'format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
            'directory': self.get('LOGGING', 'directory', 'logs'),
            'max_size_mb': self.get_int('LOGGING', 'max_size_mb', 10),
            'backup_count': self.get_int('LOGGING', 'backup_count', 5),
            'console_output': self.get_boolean('LOGGING', 'console_output', True),
            'file_output': self.get_boolean('LOGGING', 'file_output', False)
        }

    @property
    def business_rules(self):
        """Get business rules configuration."""
        return {
            'default_low_stock_threshold': self.get_int('BUSINESS_RULES', 'default_low_stock_threshold', 5),
            'low_stock_limit': self.get_int('BUSINESS_RULES', 'low_stock_limit', 5),
            'low_stock_candidate_window': self.get_int('BUSINESS_RULES', 'low_stock_candidate_window', 10),
            'stock_update_retries': self.get_int('BUSINESS_RULES', 'stock_update_retries', 3),
            'timezone': self.get('BUSINESS_RULES', 'timezone', 'UTC'),
            'default_currency': self.get('BUSINESS_RULES', 'default_currency', 'NGN')
        }

# Global config instance
config = Config()
