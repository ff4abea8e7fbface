from .config import config, Config
from .logging_setup import logger, get_logger
from .exceptions import (
    GeolocationError,
    ValidationError,
    NotFoundError,
    ConflictError,
    StorageError,
    ConfigError
)

__all__ = [
    'config',
    'Config',
    'logger',
    'get_logger',
    'GeolocationError',
    'ValidationError',
    'NotFoundError',
    'ConflictError',
    'StorageError',
    'ConfigError'
]
