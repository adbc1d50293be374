"""Dependency injection container for Form 3115 Preparer.

Services are created lazily on first access and cached for reuse, so the
API, the CLI and tests all share one wiring.

Usage:
    from form3115_preparer.container import Container, get_container

    container = get_container()
    service = container.filing_service
    pdf = container.pdf_generator.generate(filing, client)
"""

from functools import cached_property, lru_cache
from typing import TYPE_CHECKING

from form3115_preparer.config import Settings, get_settings
from form3115_preparer.logging_config import get_logger

if TYPE_CHECKING:
    from form3115_preparer.repositories.sqlite import SQLiteDatabase
    from form3115_preparer.services.dcn import DcnResolver
    from form3115_preparer.services.filings import FilingService
    from form3115_preparer.services.pdf_generator import FieldMap, PdfGenerator

logger = get_logger(__name__)


class Container:
    """Dependency injection container.

    The container can be configured with custom settings for testing:

        test_settings = Settings(sqlite_path=":memory:")
        container = Container(settings=test_settings)
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        logger.debug(
            "container_created",
            environment=self._settings.environment.value,
            sqlite_path=str(self._settings.sqlite_path),
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @cached_property
    def database(self) -> "SQLiteDatabase":
        """The SQLite database, initialized on first access."""
        from form3115_preparer.repositories.sqlite import SQLiteDatabase

        db_path = str(self._settings.sqlite_path)
        logger.info("initializing_sqlite_database", path=db_path)

        # The API serves requests from a thread pool
        db = SQLiteDatabase(db_path, check_same_thread=False)
        db.initialize()
        return db

    @cached_property
    def dcn_resolver(self) -> "DcnResolver":
        from form3115_preparer.repositories.sqlite import SQLiteDcnReferenceRepository
        from form3115_preparer.services.dcn import DcnResolver

        return DcnResolver(SQLiteDcnReferenceRepository(self.database))

    @cached_property
    def filing_service(self) -> "FilingService":
        from form3115_preparer.repositories.sqlite import (
            SQLiteClientRepository,
            SQLiteFilingRepository,
        )
        from form3115_preparer.services.filings import FilingService

        return FilingService(
            client_repo=SQLiteClientRepository(self.database),
            filing_repo=SQLiteFilingRepository(self.database),
            resolver=self.dcn_resolver,
        )

    @cached_property
    def field_map(self) -> "FieldMap":
        from form3115_preparer.services.pdf_generator import FieldMap

        return FieldMap.load(self._settings.field_map_path)

    @cached_property
    def pdf_generator(self) -> "PdfGenerator":
        from form3115_preparer.services.pdf_generator import PdfGenerator

        return PdfGenerator(
            template_path=self._settings.pdf_template_path,
            field_map=self.field_map,
            attach_statement=self._settings.attach_statement,
        )

    def close(self) -> None:
        """Close all resources held by the container."""
        if "database" in self.__dict__:
            logger.info("closing_database_connection")
            self.database.close()

    def __enter__(self) -> "Container":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


# Module-level container instance
_container: Container | None = None


@lru_cache
def get_container() -> Container:
    """Get the global container singleton.

    For testing, create a Container directly with custom settings instead
    of using this function.
    """
    global _container
    if _container is None:
        _container = Container()
    return _container


def reset_container() -> None:
    """Reset the global container."""
    global _container
    if _container is not None:
        _container.close()
        _container = None
    get_container.cache_clear()


# FastAPI dependency functions
def get_database() -> "SQLiteDatabase":
    """FastAPI dependency for database access."""
    return get_container().database


def get_pdf_generator() -> "PdfGenerator":
    """FastAPI dependency for the Form 3115 PDF generator."""
    return get_container().pdf_generator
