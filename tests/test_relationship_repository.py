"""Tests for relationship CRUD."""
import pytest

from graph_memory.models.core import Direction
from graph_memory.models.errors import InvalidMemory, InvalidSchemaIdentifier, NotFound


@pytest.fixture
def pair(service):
    return service.store_memory('Source memory'), service.store_memory('Target memory')


class TestCreateRelationship:

    def test_create_and_read_both_directions(self, service, pair, clock):
        source, target = pair
        rel_id = service.create_relationship(source,
                                             target,
                                             type='related_to',
                                             weight=0.8,
                                             context='both are movie preferences',
                                             confidence=0.9,
                                             properties={'strength': 'strong'})

        outgoing = service.get_relationships_of(source, 'outgoing')
        incoming = service.get_relationships_of(target, Direction.INCOMING)
        assert [rel.id for rel in outgoing] == [rel_id]
        assert [rel.id for rel in incoming] == [rel_id]

        rel = outgoing[0]
        assert rel.source_id == source
        assert rel.target_id == target
        assert rel.type == 'related_to'
        assert rel.weight == 0.8
        assert rel.context == 'both are movie preferences'
        assert rel.confidence == 0.9
        assert rel.properties == {'strength': 'strong'}
        assert rel.created_at == clock.now

    def test_direction_is_significant(self, service, pair):
        source, target = pair
        service.create_relationship(source, target)
        assert service.get_relationships_of(source, 'incoming') == []
        assert service.get_relationships_of(target, 'outgoing') == []
        assert len(service.get_relationships_of(source, 'both')) == 1

    def test_defaults(self, service, pair):
        rel_id = service.create_relationship(*pair)
        rel = service.get_relationship(rel_id)
        assert rel.type == 'RELATED_TO'
        assert rel.weight == 1.0
        assert rel.properties == {}

    def test_unsafe_type_normalized(self, service, pair):
        rel = service.get_relationship(service.create_relationship(*pair, type='LIKES]->(x) DELETE x'))
        assert rel.type == 'RELATED_TO'

    def test_strict_type(self, service, pair):
        with pytest.raises(InvalidSchemaIdentifier):
            service.create_relationship(*pair, type='not ok', strict_type=True)

    @pytest.mark.parametrize('missing_side', ['source', 'target'])
    def test_missing_endpoint(self, service, pair, missing_side):
        source, target = pair
        if missing_side == 'source':
            source = 'ghost'
        else:
            target = 'ghost'
        with pytest.raises(NotFound) as exc:
            service.create_relationship(source, target)
        assert exc.value.item_id == 'ghost'
        assert service.get_memory_stats().total_relationships == 0

    def test_invalid_weight(self, service, pair):
        with pytest.raises(InvalidMemory) as exc:
            service.create_relationship(*pair, weight=float('nan'))
        assert exc.value.field == 'weight'

    def test_parallel_edges_allowed(self, service, pair):
        service.create_relationship(*pair, type='LIKES')
        service.create_relationship(*pair, type='MENTIONS')
        assert len(service.get_relationships_of(pair[0], 'outgoing')) == 2


class TestDeleteRelationship:

    def test_delete(self, service, pair):
        rel_id = service.create_relationship(*pair)
        service.delete_relationship(rel_id)
        assert service.get_relationship(rel_id) is None
        assert service.get_relationships_of(pair[0]) == []
        # endpoints survive
        assert service.get_memory(pair[0]) is not None

    def test_delete_missing(self, service):
        with pytest.raises(NotFound) as exc:
            service.delete_relationship('ghost')
        assert exc.value.kind == 'relationship'


class TestGetRelationshipsOf:

    def test_unknown_node_has_none(self, service):
        assert service.get_relationships_of('ghost') == []

    def test_invalid_direction(self, service, pair):
        with pytest.raises(InvalidMemory):
            service.get_relationships_of(pair[0], 'sideways')

    def test_self_loop_listed_once(self, service):
        memory_id = service.store_memory('Self referential')
        service.create_relationship(memory_id, memory_id)
        assert len(service.get_relationships_of(memory_id, 'both')) == 1
