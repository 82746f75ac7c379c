import itertools
import numpy as np
import pytest

from cellcluster import metrics


def brute_force_pairs(locations, spatial_range):
    """ Returns every pair of indices closer than spatial_range with the
        distance of the pair.
    """
    pairs = dict()
    for i, j in itertools.combinations(range(len(locations)), 2):
        distance = np.linalg.norm(locations[i] - locations[j])
        if distance < spatial_range:
            pairs[(i, j)] = distance
    return pairs


def cluster(rng, center, number, spread=0.005):
    """ Returns locations packed around the center.
    """
    return np.asarray(center) + rng.uniform(-spread, spread, (number, 3))


def test_subvolume_selects_central_cube():
    locations = np.array([[0.5, 0.5, 0.5], [0.74, 0.26, 0.5], [0.76, 0.5, 0.5], [0.5, 0.5, 0.24]])
    types = np.array([1, -1, 1, -1])

    # 4 cells with a target of 0.5 gives a cube of side 0.5
    sub_locations, sub_types, half_width = metrics.subvolume(locations, types, 0.5)

    assert half_width == pytest.approx(0.25)
    np.testing.assert_allclose(sub_locations, locations[:2])
    np.testing.assert_array_equal(sub_types, [1, -1])


def test_close_pairs_match_brute_force():
    rng = np.random.default_rng(11)
    locations = rng.random((300, 3))
    types = rng.choice([1, -1], 300)

    graph = metrics.close_pairs(locations, types, 0.1)
    expected = brute_force_pairs(locations, 0.1)

    found = {tuple(sorted(edge)): distance for edge, distance in zip(graph.get_edgelist(), graph.es["distance"])}
    assert set(found) == set(expected)
    for pair, distance in expected.items():
        assert found[pair] == pytest.approx(distance)
    assert graph.vs["type"] == [int(cell_type) for cell_type in types]


def test_close_pairs_with_large_range():
    rng = np.random.default_rng(2)
    locations = rng.random((40, 3))

    graph = metrics.close_pairs(locations, np.ones(40), 2.0)

    # every pair in the unit cube is closer than 2
    assert graph.ecount() == 40 * 39 // 2


def test_energy_of_separated_opposite_clusters_has_no_extra_cluster_term():
    rng = np.random.default_rng(4)
    locations = np.concatenate([cluster(rng, [0.4, 0.5, 0.5], 10), cluster(rng, [0.6, 0.5, 0.5], 10)])
    types = np.array([1] * 10 + [-1] * 10)
    spatial_range = 0.05

    # only pairs within a cluster are close, which all have matching types
    pairs = brute_force_pairs(locations, spatial_range)
    assert all(types[i] == types[j] for i, j in pairs)
    intra = sum(min(100, spatial_range / distance) for distance in pairs.values())

    energy = metrics.energy(locations, types, spatial_range, len(locations))

    assert energy == pytest.approx(-intra / (1 + 100 * len(pairs)))
    assert energy < 0


def test_energy_of_mixed_cluster_counts_extra_cluster_term():
    locations = np.array([[0.5, 0.5, 0.5], [0.52, 0.5, 0.5]])
    types = np.array([1, -1])

    energy = metrics.energy(locations, types, 0.05, 2)

    # spatial_range / distance = 2.5 for the single pair of differing types
    assert energy == pytest.approx(2.5 / 101)


def test_energy_caps_zero_distance_pairs():
    locations = np.array([[0.5, 0.5, 0.5], [0.5, 0.5, 0.5]])
    types = np.array([-1, -1])

    assert metrics.energy(locations, types, 0.05, 2) == pytest.approx(-100 / 101)


def test_energy_without_close_pairs():
    locations = np.array([[0.3, 0.3, 0.3], [0.7, 0.7, 0.7]])

    assert metrics.energy(locations, np.array([1, -1]), 0.05, 2) == 0.0


def test_criterion_fails_when_too_sparse():
    rng = np.random.default_rng(0)
    locations = rng.random((1000, 3))
    types = rng.choice([1, -1], 1000)

    # the whole cube is used and holds a tenth of the target
    passed, message, details = metrics.check_criterion(locations, types, 0.05, 10000)

    assert not passed
    assert "not enough cells" in message
    assert details == {"number_cells": 1000, "coefficient": None, "average_neighbors": None}
    assert not metrics.criterion(locations, types, 0.05, 10000)


def test_criterion_fails_when_too_dense():
    rng = np.random.default_rng(1)
    locations = rng.uniform(0.45, 0.55, (1000, 3))
    types = rng.choice([1, -1], 1000)

    # every cell is in the subvolume, five times the target
    passed, message, _ = metrics.check_criterion(locations, types, 0.05, 200)

    assert not passed
    assert "too many cells" in message


def test_criterion_fails_when_types_are_mixed():
    rng = np.random.default_rng(3)
    locations = cluster(rng, [0.5, 0.5, 0.5], 400)
    types = np.where(np.arange(400) % 2 == 0, 1, -1)

    passed, message, _ = metrics.check_criterion(locations, types, 0.05, 400)

    assert not passed
    assert "not well-clustered" in message


def test_criterion_fails_when_clusters_are_small():
    rng = np.random.default_rng(5)
    locations = np.concatenate([cluster(rng, [0.3, 0.5, 0.5], 20), cluster(rng, [0.7, 0.5, 0.5], 20)])
    types = np.array([1] * 20 + [-1] * 20)

    passed, message, _ = metrics.check_criterion(locations, types, 0.05, 40)

    assert not passed
    assert "enough neighbors" in message


def test_criterion_passes_for_large_separated_clusters():
    rng = np.random.default_rng(6)
    locations = np.concatenate([cluster(rng, [0.3, 0.5, 0.5], 300), cluster(rng, [0.7, 0.5, 0.5], 300)])
    types = np.array([1] * 300 + [-1] * 300)

    passed, message, details = metrics.check_criterion(locations, types, 0.05, 600)

    assert passed
    assert "correctness coefficient" in message
    assert "average neighbors in subvolume" in message

    # every cell is close to the other 299 of its cluster
    assert details["number_cells"] == 600
    assert details["coefficient"] == 0
    assert details["average_neighbors"] == pytest.approx(299 / 2)
    assert metrics.criterion(locations, types, 0.05, 600)


def test_criterion_with_no_close_pairs():
    # a 3 x 3 x 3 lattice with a spacing larger than the spatial range
    points = [0.3, 0.5, 0.7]
    locations = np.array([[x, y, z] for x in points for y in points for z in points])
    types = np.where(np.arange(27) % 2 == 0, 1, -1)

    passed, message, details = metrics.check_criterion(locations, types, 0.05, 27)

    # the +1 in the denominator keeps the coefficient defined without close pairs
    assert details["number_cells"] == 27
    assert details["coefficient"] == 0
    assert details["average_neighbors"] == 0
    assert not passed
    assert "enough neighbors" in message


def test_pair_types_reads_vertex_types():
    locations = np.array([[0.5, 0.5, 0.5], [0.51, 0.5, 0.5], [0.5, 0.52, 0.5]])
    graph = metrics.close_pairs(locations, np.array([1, 1, -1]), 0.05)

    # changing the vertex attribute changes which pairs match
    same = dict(zip(graph.get_edgelist(), metrics.pair_types(graph)))
    assert same[(0, 1)] and not same[(0, 2)] and not same[(1, 2)]

    graph.vs["type"] = [1, 1, 1]
    assert metrics.pair_types(graph).all()
