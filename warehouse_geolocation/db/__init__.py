# warehouse_geolocation/db/__init__.py
from .connection import DatabaseConnection

__all__ = [
    'DatabaseConnection'
]
