"""Tests for memory node lifecycle."""
import math

import pytest

from graph_memory.models.errors import ConflictingWrite, InvalidMemory, InvalidSchemaIdentifier, NotFound
from graph_memory.services.memory_repository import MemoryRepository, unit_interval
from graph_memory.utils.config import MemoryConfig
from graph_memory.utils.schema_guard import SchemaGuard


class TestStoreMemory:

    def test_store_and_get(self, service, clock):
        memory_id = service.store_memory('User loves action movies and sci-fi films',
                                         category='user_preference',
                                         importance=0.8,
                                         confidence=0.9,
                                         tags=['movies', 'action'],
                                         context='entertainment preferences',
                                         properties={'genre': 'action', 'rating': 5})
        node = service.get_memory(memory_id)
        assert node is not None
        assert node.id == memory_id
        assert node.content == 'User loves action movies and sci-fi films'
        assert node.category == 'user_preference'
        assert node.importance == 0.8
        assert node.confidence == 0.9
        assert node.tags == ['movies', 'action']
        assert node.properties == {'genre': 'action', 'rating': 5}
        assert node.access_count == 1
        assert node.created_at == clock.now
        assert node.last_accessed == clock.now

    def test_defaults(self, service):
        node = service.get_memory(service.store_memory('A plain fact'))
        assert node.label == 'Memory'
        assert node.category == 'fact'
        assert node.importance == 0.5
        assert node.confidence == 1.0
        assert node.tags == []
        assert node.properties == {}
        assert node.context == ''

    @pytest.mark.parametrize('label, expected', [
        (None, 'Memory'),
        ('', 'Memory'),
        ('Person', 'Person'),
        ('bad label!', 'Memory'),
        ('Person\n', 'Memory'),
    ])
    def test_label_normalized(self, service, label, expected):
        node = service.get_memory(service.store_memory('Labelled memory', label=label))
        assert node.label == expected

    def test_strict_label(self, service):
        with pytest.raises(InvalidSchemaIdentifier):
            service.store_memory('Strict memory', label='bad label!', strict_label=True)
        assert service.get_memory_stats().total_memories == 0

    @pytest.mark.parametrize('raw, expected', [(1.7, 1.0), (-0.3, 0.0), (0.42, 0.42), ('0.6', 0.6)])
    def test_importance_and_confidence_clamped(self, service, raw, expected):
        node = service.get_memory(service.store_memory('Clamped', importance=raw, confidence=raw))
        assert node.importance == expected
        assert node.confidence == expected

    @pytest.mark.parametrize('content', ['', '   ', None])
    def test_empty_content_rejected(self, service, content):
        with pytest.raises(InvalidMemory) as exc:
            service.store_memory(content)
        assert exc.value.field == 'content'

    @pytest.mark.parametrize('value', [math.nan, math.inf, 'high', True])
    def test_unclampable_importance_rejected(self, service, value):
        with pytest.raises(InvalidMemory) as exc:
            service.store_memory('Bad number', importance=value)
        assert exc.value.field == 'importance'

    def test_tags_must_be_a_list(self, service):
        with pytest.raises(InvalidMemory):
            service.store_memory('Bad tags', tags='movies')

    def test_caller_supplied_id(self, service):
        assert service.store_memory('Named', memory_id='pref-1') == 'pref-1'
        assert service.get_memory('pref-1').content == 'Named'

    def test_duplicate_id_conflicts(self, service):
        service.store_memory('First', memory_id='dup')
        with pytest.raises(ConflictingWrite):
            service.store_memory('Second', memory_id='dup')
        assert service.get_memory('dup').content == 'First'

    def test_generated_ids_are_unique(self, service):
        ids = {service.store_memory(f'Memory {i}') for i in range(20)}
        assert len(ids) == 20


class TestGetMemory:

    def test_missing_returns_none(self, service):
        assert service.get_memory('nope') is None

    def test_read_does_not_touch_access(self, service, clock):
        memory_id = service.store_memory('Pure read')
        clock.advance(days=2)
        service.get_memory(memory_id)
        node = service.get_memory(memory_id)
        assert node.access_count == 1
        assert node.last_accessed < clock.now


class TestUpdateMemory:

    def test_merges_fields(self, service):
        memory_id = service.store_memory('Movies', importance=0.8, tags=['movies'], context='chat')
        updated = service.update_memory(memory_id, importance=0.9, tags=['movies', 'favorite'])
        assert updated.importance == 0.9
        assert updated.tags == ['movies', 'favorite']
        assert updated.content == 'Movies'
        assert updated.context == 'chat'
        assert service.get_memory(memory_id).tags == ['movies', 'favorite']

    def test_reclamps(self, service):
        memory_id = service.store_memory('Clamp me')
        assert service.update_memory(memory_id, confidence=3).confidence == 1.0

    def test_missing_memory(self, service):
        with pytest.raises(NotFound) as exc:
            service.update_memory('ghost', importance=0.1)
        assert exc.value.item_id == 'ghost'

    @pytest.mark.parametrize('field', ['id', 'label', 'created_at', 'access_count', 'last_accessed'])
    def test_immutable_fields(self, service, field):
        memory_id = service.store_memory('Fixed')
        with pytest.raises(InvalidMemory) as exc:
            service.update_memory(memory_id, **{field: 'x'})
        assert exc.value.field == field

    def test_unknown_field(self, service):
        memory_id = service.store_memory('Fixed')
        with pytest.raises(InvalidMemory):
            service.update_memory(memory_id, colour='blue')

    def test_empty_content_rejected(self, service):
        memory_id = service.store_memory('Keep me')
        with pytest.raises(InvalidMemory):
            service.update_memory(memory_id, content='  ')
        assert service.get_memory(memory_id).content == 'Keep me'


class TestUpdateMemoryAccess:

    def test_monotonic(self, service, clock):
        memory_id = service.store_memory('Touched')
        previous = service.get_memory(memory_id).last_accessed
        for _ in range(3):
            clock.advance(hours=1)
            node = service.update_memory_access(memory_id)
            assert node.last_accessed >= previous
            previous = node.last_accessed
        node = service.get_memory(memory_id)
        assert node.access_count == 4
        assert node.last_accessed == clock.now

    def test_last_accessed_never_moves_back(self, service, clock):
        memory_id = service.store_memory('Clock skew')
        stored_at = clock.now
        clock.advance(hours=-5)
        node = service.update_memory_access(memory_id)
        assert node.access_count == 2
        assert node.last_accessed == stored_at

    def test_missing_memory(self, service):
        with pytest.raises(NotFound):
            service.update_memory_access('ghost')


class TestDeleteMemory:

    def test_delete(self, service):
        memory_id = service.store_memory('Short lived')
        assert service.delete_memory(memory_id) == 0
        assert service.get_memory(memory_id) is None

    def test_delete_missing(self, service):
        with pytest.raises(NotFound):
            service.delete_memory('ghost')

    def test_detach_removes_edges(self, service, movie_graph):
        before = service.get_memory_stats().total_relationships
        removed = service.delete_memory(movie_graph['marvel'])
        assert removed == 2
        assert service.get_relationships_of(movie_graph['marvel']) == []
        assert service.get_relationships_of(movie_graph['action']) == []
        assert service.get_memory_stats().total_relationships == before - 2

    def test_reject_policy(self, store, clock):
        repo = MemoryRepository(store, SchemaGuard(), MemoryConfig(delete_policy='reject'), clock)
        a = repo.store_memory('A')
        b = repo.store_memory('B')
        with store.session(write=True) as session:
            session.add_edge('LINKS', 'e1', a, b, {'created_at': clock.now.isoformat()})
        with pytest.raises(ConflictingWrite):
            repo.delete_memory(a)
        assert repo.get_memory(a) is not None
        with store.session(write=True) as session:
            session.delete_edge('e1')
        assert repo.delete_memory(a) == 0

    def test_unknown_policy(self, store):
        with pytest.raises(ValueError):
            MemoryRepository(store, SchemaGuard(), MemoryConfig(delete_policy='cascade'))


class TestListMemories:

    def test_filters(self, service):
        service.store_memory('Alice is a friend', label='Person', category='fact', importance=0.9)
        service.store_memory('Likes tea', label='Preference', category='user_preference', importance=0.3)
        service.store_memory('Plain', importance=0.6)

        people = service.memories.list_memories(label='Person')
        assert [node.content for node in people] == ['Alice is a friend']

        important = service.memories.list_memories(min_importance=0.5)
        assert {node.content for node in important} == {'Alice is a friend', 'Plain'}

        prefs = service.memories.list_memories(categories=['user_preference'])
        assert [node.content for node in prefs] == ['Likes tea']


def test_unit_interval_bounds():
    assert unit_interval('x', 0) == 0.0
    assert unit_interval('x', 1) == 1.0
    assert unit_interval('x', 12) == 1.0
