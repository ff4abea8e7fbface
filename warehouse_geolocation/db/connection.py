# warehouse_geolocation/db/connection.py
from typing import Optional
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from warehouse_geolocation.config import config as default_config
from warehouse_geolocation.exceptions import GeolocationError, StorageError
from warehouse_geolocation.models import Base

import logging
logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseConnection:
    """Database connection handler.

    One instance is built per process (or per test) and handed to the
    services that need it. It owns the engine and the session factory.
    """

    def __init__(self, connection_string: Optional[str] = None, settings=None):
        """Create the engine and session factory.

        Args:
            connection_string: Optional SQLAlchemy URL. If not provided,
                               the configured URL is used.
            settings: Optional Config instance. Defaults to the global config.
        """
        self._config = settings or default_config
        self._url = connection_string or self._config.get_db_url()
        self._engine = self._create_engine(self._url)
        self._SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self._engine
        )

    def _create_engine(self, url: str) -> Engine:
        echo = self._config.get_boolean('DATABASE', 'echo', False)

        try:
            if url.startswith('sqlite'):
                engine = create_engine(
                    url,
                    echo=echo,
                    connect_args={'check_same_thread': False},
                    poolclass=StaticPool
                )
                event.listen(engine, 'connect', _enable_sqlite_foreign_keys)
                return engine

            pool = self._config.pool_config
            return create_engine(
                url,
                echo=echo,
                pool_size=pool['pool_size'],
                max_overflow=pool['max_overflow'],
                pool_timeout=pool['pool_timeout'],
                pool_recycle=pool['pool_recycle']
            )
        except (SQLAlchemyError, ImportError) as e:
            raise StorageError(f"Failed to create database engine: {str(e)}")

    def test_connection(self):
        """Run a trivial query against the database."""
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StorageError(f"Database connection test failed: {str(e)}")

    @contextmanager
    def session_scope(self) -> Session:
        """Provide a transactional scope around a series of operations.

        Commits on success and rolls back on any error. Storage failures are
        raised as StorageError; domain errors pass through unchanged.
        """
        session = self._SessionLocal()
        try:
            yield session
            session.commit()
        except GeolocationError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Storage failure, transaction rolled back: {str(e)}")
            raise StorageError(f"Storage failure: {str(e)}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get_session(self) -> Session:
        """Get a new session. The caller is responsible for closing it."""
        return self._SessionLocal()

    def create_all_tables(self):
        """Create all tables defined in the models."""
        Base.metadata.create_all(bind=self._engine)

    def drop_all_tables(self):
        """Drop all tables defined in the models."""
        Base.metadata.drop_all(bind=self._engine)

    def dispose(self):
        """Release pooled connections."""
        self._engine.dispose()

    @property
    def engine(self) -> Engine:
        """Get SQLAlchemy engine."""
        return self._engine

    @property
    def url(self) -> str:
        return self._url
