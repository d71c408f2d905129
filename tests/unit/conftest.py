"""Fixtures for unit tests."""

from pathlib import Path
from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio
import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from github_volunteer_manager.configuration.models import MaintainerModel, ProjectModel, ProjectsYAMLModel
from github_volunteer_manager.configuration.projects import ProjectRegistry
from github_volunteer_manager.store.database import create_engine, create_session_factory, init_db
from github_volunteer_manager.store.record_store import RecordStore
from github_volunteer_manager.synchronize.indexing import IndexingScheduler
from github_volunteer_manager.synchronize.items import ItemReconciler
from tests.unit.utils import REPO_URL, FakeRemoteItemClient, RecordingIndexer


@pytest.fixture(autouse=True)
def configure_structlog_for_caplog() -> Generator[None, None, None]:
    """Configure structlog for use with caplog."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    yield
    structlog.reset_defaults()


@pytest.fixture
def projects() -> ProjectRegistry:
    """A registry monitoring one repository of the 'demo' project."""
    return ProjectRegistry(
        ProjectsYAMLModel(
            maintainers=(MaintainerModel(id="root", github="root-maintainer", slack="U_ROOT"),),
            projects=(
                ProjectModel(
                    name="demo",
                    repositories=(REPO_URL,),
                    maintainers=(MaintainerModel(id="mia", github="mia", slack="U_MIA"),),
                ),
            ),
        )
    )


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """A record store database in a temporary file."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'records.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the temporary database."""
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory: async_sessionmaker[AsyncSession]) -> RecordStore:
    """Record store backed by the temporary database."""
    return RecordStore(session_factory)


@pytest.fixture
def indexer() -> RecordingIndexer:
    """Indexer that records calls."""
    return RecordingIndexer()


@pytest.fixture
def indexing(indexer: RecordingIndexer) -> IndexingScheduler:
    """Indexing scheduler around the recording indexer."""
    return IndexingScheduler(indexer)


@pytest.fixture
def reconciler(store: RecordStore, projects: ProjectRegistry, indexing: IndexingScheduler) -> ItemReconciler:
    """Reconciler wired to the temporary database."""
    return ItemReconciler(store, projects, indexing)


@pytest.fixture
def remote() -> FakeRemoteItemClient:
    """Fake remote item client."""
    return FakeRemoteItemClient()
