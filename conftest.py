"""Root pytest configuration and fixtures.

This module provides:
- Environment setup (loads .env)
- Temporary record and artifact stores
- A planned session ready for generation
"""

from __future__ import annotations

from collections.abc import Generator
from typing import TYPE_CHECKING

import pytest
from dotenv import load_dotenv

if TYPE_CHECKING:
    from vibe.artifacts import LocalArtifactStore
    from vibe.records import Session, SQLiteRecordStore, VariantPlan
    from vibe.services import VibeServices

# Load environment variables from .env file
load_dotenv()


# =============================================================================
# Configuration Constants
# =============================================================================

SOURCE_HTML = """<!DOCTYPE html>
<html>
<head><title>Pricing</title></head>
<body>
<header><h1>Pricing</h1></header>
<main><div class="plan">Basic</div><div class="plan">Pro</div></main>
<button class="cta">Start trial</button>
</body>
</html>"""

PLAN_TITLES = ["Minimal", "Bold", "Editorial", "Dense"]


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture
def record_store(tmp_path) -> Generator[SQLiteRecordStore, None, None]:
    """Create an initialized SQLite record store in a temp directory.

    Yields:
        SQLiteRecordStore instance, closed after the test.
    """
    from vibe.records import SQLiteRecordStore

    store = SQLiteRecordStore(tmp_path / "records.db")
    store.initialize()
    yield store
    store.close()


@pytest.fixture
def artifact_store(tmp_path) -> LocalArtifactStore:
    """Create a local artifact store in a temp directory."""
    from vibe.artifacts import LocalArtifactStore

    return LocalArtifactStore(tmp_path / "artifacts")


# =============================================================================
# Session Fixtures
# =============================================================================


@pytest.fixture
def source_html() -> str:
    """Sample source screen."""
    return SOURCE_HTML


@pytest.fixture
def planned_session(
    record_store: SQLiteRecordStore,
) -> tuple[Session, list[VariantPlan]]:
    """Create a four-variant session with its plans stored.

    Returns:
        (session, plans) with the session in plan_ready.
    """
    from vibe.records import VariantPlan
    from vibe.session import SessionLifecycle

    lifecycle = SessionLifecycle(record_store, default_variant_count=4)
    session = lifecycle.create_session(SOURCE_HTML, user_id="user-1")
    plans = lifecycle.create_plans(
        session.id,
        [
            VariantPlan.create(
                session.id,
                i,
                title,
                description=f"{title} take on the pricing page",
                key_changes=[f"{title.lower()} layout"],
            )
            for i, title in enumerate(PLAN_TITLES, start=1)
        ],
    )
    return lifecycle.get_session(session.id), plans


# =============================================================================
# Service Fixtures
# =============================================================================


class RecordingBackendFactory:
    """Backend factory returning scripted mock backends.

    Attributes:
        requests: (user_id, provider, model) per backend created.
        backend_kwargs: Arguments for each MockLLMBackend.
    """

    def __init__(self, **backend_kwargs):
        self.requests: list[tuple[str | None, str | None, str | None]] = []
        self.backend_kwargs = backend_kwargs

    def __call__(self, user_id, provider, model):
        from vibe.llm.conftest import MockLLMBackend

        self.requests.append((user_id, provider, model))
        return MockLLMBackend(**self.backend_kwargs)


@pytest.fixture
def backend_factory() -> RecordingBackendFactory:
    """Factory handing out MockLLMBackend instances."""
    return RecordingBackendFactory()


@pytest.fixture
def services(
    record_store: SQLiteRecordStore,
    artifact_store: LocalArtifactStore,
    backend_factory: RecordingBackendFactory,
) -> VibeServices:
    """Services over the temp stores with mocked providers."""
    from vibe.services import VibeServices

    return VibeServices(record_store, artifact_store, backend_factory=backend_factory)
