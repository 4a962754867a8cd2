"""Tests for neighborhood search and path finding."""
import pytest

from graph_memory.models.errors import InvalidMemory, NotFound


class TestGraphSearch:

    def test_depth_zero_returns_seed_set(self, service, movie_graph):
        seeds = {r.node.id for r in service.search_memories('action', limit=10)}
        results = service.graph_search('action', max_depth=0, limit=10)
        assert {r.node.id for r in results} == seeds
        assert all(r.depth == 0 for r in results)

    def test_expands_by_hops(self, service, movie_graph):
        one_hop = {r.node.id for r in service.graph_search('action', max_depth=1)}
        assert one_hop == {movie_graph['action'], movie_graph['marvel']}

        two_hops = {r.node.id: r.depth for r in service.graph_search('action', max_depth=2)}
        assert two_hops == {movie_graph['action']: 0, movie_graph['marvel']: 1, movie_graph['director']: 2}

    def test_never_returns_unreachable_nodes(self, service, movie_graph):
        ids = {r.node.id for r in service.graph_search('action', max_depth=5)}
        assert movie_graph['gardening'] not in ids

    def test_follows_edges_backwards(self, service, movie_graph):
        # the director only has an incoming edge from marvel
        ids = {r.node.id for r in service.graph_search('james cameron', max_depth=2)}
        assert ids == {movie_graph['director'], movie_graph['marvel'], movie_graph['action']}

    def test_depth_penalty(self, service, movie_graph):
        results = {r.node.id: r for r in service.graph_search('action', max_depth=2)}
        marvel = results[movie_graph['marvel']]
        expected = service.ranker.score(marvel.node, 'action') - 0.05
        assert marvel.relevance_score == pytest.approx(expected)

    def test_better_match_can_outrank_closer_node(self, service):
        seed = service.store_memory('Hiking on weekends', importance=0.0, confidence=0.0)
        near = service.store_memory('Unrelated note', importance=0.0, confidence=0.0)
        far = service.store_memory('Mountain trip planning', importance=1.0, confidence=1.0)
        service.create_relationship(seed, near)
        service.create_relationship(near, far)
        ids = [r.node.id for r in service.graph_search('hiking', max_depth=2)]
        assert ids.index(far) < ids.index(near)

    def test_limit(self, service, movie_graph):
        assert len(service.graph_search('action', max_depth=2, limit=2)) == 2

    def test_cycles_terminate(self, service):
        a = service.store_memory('Cycle start')
        b = service.store_memory('Cycle middle')
        service.create_relationship(a, b)
        service.create_relationship(b, a)
        service.create_relationship(a, a)
        ids = [r.node.id for r in service.graph_search('cycle start', max_depth=10)]
        assert sorted(ids) == sorted([a, b])

    def test_no_seeds(self, service, movie_graph):
        assert service.graph_search('quantum chromodynamics') == []

    def test_negative_depth_rejected(self, service):
        with pytest.raises(InvalidMemory):
            service.graph_search('anything', max_depth=-1)


@pytest.fixture
def chain(service):
    """a -[:LIKES]-> c -[:RELATED_TO]-> b"""
    a = service.store_memory('Node a', memory_id='a')
    c = service.store_memory('Node c', memory_id='c')
    b = service.store_memory('Node b', memory_id='b')
    service.create_relationship(a, c, type='LIKES')
    service.create_relationship(c, b, type='RELATED_TO')
    return a, b, c


class TestFindPath:

    def test_three_node_path(self, service, chain):
        a, b, c = chain
        path = service.find_path(a, b, max_depth=2)
        assert [node.id for node in path.nodes] == [a, c, b]
        assert [rel.type for rel in path.relationships] == ['LIKES', 'RELATED_TO']
        assert path.hops == 2
        assert path.total_weight == pytest.approx(2.0)

    def test_out_of_bound_is_not_found(self, service, chain):
        a, b, _ = chain
        assert service.find_path(a, b, max_depth=1) is None

    def test_directed_by_default(self, service, chain):
        a, b, c = chain
        assert service.find_path(b, a, max_depth=3) is None
        path = service.find_path(b, a, max_depth=3, direction='both')
        assert [node.id for node in path.nodes] == [b, c, a]
        incoming = service.find_path(b, a, max_depth=3, direction='incoming')
        assert [node.id for node in incoming.nodes] == [b, c, a]

    def test_same_node(self, service, chain):
        path = service.find_path('a', 'a', max_depth=0)
        assert [node.id for node in path.nodes] == ['a']
        assert path.relationships == []

    @pytest.mark.parametrize('from_id, to_id', [('ghost', 'b'), ('a', 'ghost')])
    def test_missing_endpoint(self, service, chain, from_id, to_id):
        with pytest.raises(NotFound) as exc:
            service.find_path(from_id, to_id)
        assert exc.value.item_id == 'ghost'

    def test_fewer_hops_beat_lower_weight(self, service):
        for name in ('s', 't', 'm'):
            service.store_memory(f'Node {name}', memory_id=name)
        service.create_relationship('s', 't', weight=10.0)
        service.create_relationship('s', 'm', weight=0.1)
        service.create_relationship('m', 't', weight=0.1)
        path = service.find_path('s', 't', max_depth=3)
        assert [node.id for node in path.nodes] == ['s', 't']

    def test_equal_hops_prefer_lower_weight(self, service):
        for name in ('s', 't', 'heavy', 'light'):
            service.store_memory(f'Node {name}', memory_id=name)
        service.create_relationship('s', 'heavy', weight=1.0)
        service.create_relationship('heavy', 't', weight=1.0)
        service.create_relationship('s', 'light', weight=0.2)
        service.create_relationship('light', 't', weight=0.3)
        path = service.find_path('s', 't', max_depth=2)
        assert [node.id for node in path.nodes] == ['s', 'light', 't']
        assert path.total_weight == pytest.approx(0.5)

    def test_equal_cost_prefers_smaller_id_sequence(self, service):
        for name in ('s', 't', 'a', 'z'):
            service.store_memory(f'Node {name}', memory_id=name)
        service.create_relationship('s', 'z', weight=0.5)
        service.create_relationship('z', 't', weight=0.5)
        service.create_relationship('s', 'a', weight=0.75)
        service.create_relationship('a', 't', weight=0.25)
        path = service.find_path('s', 't', max_depth=2)
        assert [node.id for node in path.nodes] == ['s', 'a', 't']
        assert path.total_weight == pytest.approx(1.0)

    def test_disconnected(self, service, chain):
        service.store_memory('Island', memory_id='island')
        assert service.find_path('a', 'island', max_depth=5) is None
