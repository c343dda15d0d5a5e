"""Dependency injection container for services."""

from dependency_injector import containers, providers
from sqlalchemy.orm import sessionmaker

from breakpad_server.config import Settings
from breakpad_server.services.analysis_cache import AnalysisCache
from breakpad_server.services.blob_store import BlobStore
from breakpad_server.services.crash_report_service import CrashReportService
from breakpad_server.services.stackwalk_service import StackwalkService
from breakpad_server.services.storage_migration_service import StorageMigrationService
from breakpad_server.services.symbol_service import SymbolService


class ServiceContainer(containers.DeclarativeContainer):
    """Container for service dependency injection."""

    # Configuration providers
    config = providers.Dependency(instance_of=Settings)
    session_maker = providers.Dependency(instance_of=sessionmaker)
    db_session = providers.ContextLocalSingleton(
        session_maker.provided.call()
    )

    # Filesystem stores for symbol text and crash report uploads
    symbol_blob_store = providers.Singleton(
        BlobStore,
        root=config.provided.symbols_dir,
    )
    upload_blob_store = providers.Singleton(
        BlobStore,
        root=config.provided.uploads_dir,
    )

    # AnalysisCache - Singleton shared by all requests for the process lifetime
    analysis_cache = providers.Singleton(
        AnalysisCache,
        max_entries=config.provided.analysis_cache_max_entries,
        ttl_seconds=config.provided.analysis_cache_ttl_seconds,
    )

    # StackwalkService - Singleton, holds no per-request state
    stackwalk_service = providers.Singleton(
        StackwalkService,
        executable=config.provided.stackwalk_executable,
        timeout_seconds=config.provided.stackwalk_timeout_seconds,
    )

    # SymbolService - Factory creates new instance per request with database session
    symbol_service = providers.Factory(
        SymbolService,
        db=db_session,
        config=config,
        blob_store=symbol_blob_store,
        analysis_cache=analysis_cache,
    )

    # CrashReportService - Factory creates new instance per request with database session
    crash_report_service = providers.Factory(
        CrashReportService,
        db=db_session,
        config=config,
        blob_store=upload_blob_store,
        symbol_blob_store=symbol_blob_store,
        analysis_cache=analysis_cache,
        stackwalk_service=stackwalk_service,
    )

    # StorageMigrationService - run at startup and from the CLI
    storage_migration_service = providers.Factory(
        StorageMigrationService,
        db=db_session,
        config=config,
        symbol_service=symbol_service,
    )
