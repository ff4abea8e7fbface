import os
import configparser
import urllib.parse
from pathlib import Path

DEFAULT_CONFIG_PATH = Path('config') / 'settings.ini'


class Config:
    """Configuration manager for the Warehouse Geolocation System."""

    def __init__(self, config_path=None):
        """Load configuration from an INI file, falling back to defaults.

        Args:
            config_path: Optional path to the settings file. Defaults to the
                         WAREHOUSE_GEO_CONFIG environment variable, then
                         config/settings.ini.
        """
        if config_path is None:
            config_path = os.getenv('WAREHOUSE_GEO_CONFIG', DEFAULT_CONFIG_PATH)

        self._config_path = Path(config_path)
        self._config = configparser.ConfigParser(interpolation=None)
        self._load_defaults()

        if self._config_path.exists():
            self._config.read(self._config_path)

    def _load_defaults(self):
        """Populate default configuration values."""
        self._config['DATABASE'] = {
            'engine': 'postgresql',
            'host': 'localhost',
            'port': '5432',
            'database': 'warehouse_geo',
            'username': 'postgres',
            'password': 'postgres',
            'echo': 'False',
            'pool_size': '10',
            'max_overflow': '20',
            'pool_timeout': '30',
            'pool_recycle': '1800'
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

        self._config['GEOLOCATION'] = {
            'coordinate_max_length': '20',
            'sku_code_min_length': '2',
            'sku_code_max_length': '50',
            'warehouse_name_max_length': '100'
        }

    def save(self):
        """Save configuration to file."""
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
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
        """Set configuration value in memory. Call save() to persist it."""
        if not self._config.has_section(section):
            self._config.add_section(section)

        self._config.set(section, key, str(value))

    def get_db_url(self):
        """Generate SQLAlchemy database URL.

        WAREHOUSE_GEO_DB_URL takes precedence over the DATABASE section.
        """
        env_url = os.getenv('WAREHOUSE_GEO_DB_URL')
        if env_url:
            return env_url

        engine = self.get('DATABASE', 'engine', 'postgresql')
        username = self.get('DATABASE', 'username', 'postgres')
        password = urllib.parse.quote_plus(self.get('DATABASE', 'password', ''))
        host = self.get('DATABASE', 'host', 'localhost')
        port = self.get('DATABASE', 'port', '5432')
        database = self.get('DATABASE', 'database', 'warehouse_geo')

        return f"{engine}://{username}:{password}@{host}:{port}/{database}"

    @property
    def pool_config(self):
        """Get connection pool configuration."""
        return {
            'pool_size': self.get_int('DATABASE', 'pool_size', 10),
            'max_overflow': self.get_int('DATABASE', 'max_overflow', 20),
            'pool_timeout': self.get_int('DATABASE', 'pool_timeout', 30),
            'pool_recycle': self.get_int('DATABASE', 'pool_recycle', 1800)
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
    def geolocation_rules(self):
        """Get validation limits for coordinates, SKU codes and warehouse names."""
        return {
            'coordinate_max_length': self.get_int('GEOLOCATION', 'coordinate_max_length', 20),
            'sku_code_min_length': self.get_int('GEOLOCATION', 'sku_code_min_length', 2),
            'sku_code_max_length': self.get_int('GEOLOCATION', 'sku_code_max_length', 50),
            'warehouse_name_max_length': self.get_int('GEOLOCATION', 'warehouse_name_max_length', 100)
        }

# Global config instance
config = Config()
