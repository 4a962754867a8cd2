"""Graph memory test configuration."""
from datetime import datetime, timedelta, timezone

import pytest

from graph_memory.services.memory_service import MemoryService
from graph_memory.utils.config import MemoryConfig, SearchConfig, load_config
from graph_memory.utils.networkx_store import NetworkXGraphStore


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def app_config():
    """Defaults only, so local environment variables cannot change scores or policies."""
    cfg = load_config()
    cfg.store.backend = 'networkx'
    cfg.store.retry_attempts = 3
    cfg.store.retry_delay = 0.0
    cfg.memory = MemoryConfig()
    cfg.search = SearchConfig()
    return cfg


@pytest.fixture
def store():
    return NetworkXGraphStore(timeout_ms=1000)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def service(store, app_config, clock, sleeps):
    return MemoryService(store=store, app_config=app_config, clock=clock, sleep=sleeps.append)


@pytest.fixture
def movie_graph(service):
    """Three linked movie preferences plus one unrelated memory.

    action -[LIKES]-> marvel -[RELATED_TO]-> director ; gardening is isolated.
    """
    ids = {}
    ids['action'] = service.store_memory('User loves action movies and sci-fi films',
                                         category='user_preference',
                                         importance=0.8,
                                         confidence=0.9,
                                         tags=['movies', 'action', 'sci-fi', 'entertainment'],
                                         context='entertainment preferences')
    ids['marvel'] = service.store_memory('User enjoys watching Marvel superhero films',
                                         category='user_preference',
                                         importance=0.7,
                                         confidence=0.8,
                                         tags=['superhero', 'marvel'])
    ids['director'] = service.store_memory('Favorite director is James Cameron', category='fact', importance=0.6)
    ids['gardening'] = service.store_memory('User dislikes gardening', category='user_preference', importance=0.4)
    ids['likes'] = service.create_relationship(ids['action'], ids['marvel'], type='LIKES', weight=0.8)
    ids['related'] = service.create_relationship(ids['marvel'], ids['director'], type='RELATED_TO', weight=0.5)
    return ids
