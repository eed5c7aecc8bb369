"""Test configuration and fixtures for text store tests."""

import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add src to path for development testing
_src_dir = Path(__file__).parent.parent / "src"
if _src_dir.exists():
    sys.path.insert(0, str(_src_dir))

from text_store.languages import LanguageCode  # noqa: E402
from text_store.models import LocalizedEntry, TextRecord  # noqa: E402
from text_store.persistence import JsonSnapshotGateway, MemoryGateway  # noqa: E402
from text_store.store import TextStore  # noqa: E402


# ==============================================================================
# Helpers
# ==============================================================================

class TickingClock:
    """Clock that advances one second per call, starting at a fixed instant."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


def make_entry(code: str, text: str) -> LocalizedEntry:
    """Build an entry candidate."""
    return LocalizedEntry(language_code=LanguageCode.parse(code), text=text)


# ==============================================================================
# Shared pytest fixtures
# ==============================================================================

@pytest.fixture
def entry():
    """Factory for entry candidates: entry("EN", "Hello")."""
    return make_entry


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def gateway() -> MemoryGateway:
    return MemoryGateway()


@pytest.fixture
def store(gateway, clock) -> TextStore:
    """A persistent store writing to an in-memory gateway."""
    return TextStore(gateway=gateway, actor_provider=lambda: "alice", clock=clock)


@pytest.fixture
def memory_store(clock) -> TextStore:
    """A store without any gateway."""
    return TextStore(actor_provider=lambda: "alice", clock=clock)


@pytest.fixture
def snapshot_path(tmp_path) -> Path:
    return tmp_path / "data" / "texts.json"


@pytest.fixture
def json_store(snapshot_path, clock) -> TextStore:
    """A persistent store writing to a JSON file under tmp_path."""
    return TextStore(
        gateway=JsonSnapshotGateway(snapshot_path),
        actor_provider=lambda: "alice",
        clock=clock,
    )


@pytest.fixture
def greeting(store) -> TextRecord:
    """A stored text titled 'Greeting'."""
    return store.create(TextRecord(title="Greeting"))


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo logging reconfiguration done by a test (CLI runs call setup_logging)."""
    root = logging.getLogger()
    level = root.level
    package_level = logging.getLogger("text_store").level
    yield
    for handler in root.handlers[:]:
        if type(handler) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    logging.getLogger("text_store").setLevel(package_level)
