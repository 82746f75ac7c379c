""" Measures of how well the two cell types have separated into clusters.
    Both measures only look at a cube in the center of the space that is
    sized to hold about target_n cells if the cells were spread evenly.
"""
import numpy as np

from cellcluster.backend import get_neighbors


# the largest contribution of a single close pair to the energy
MAX_PAIR_ENERGY = 100.0

# limits for the number of cells in the subvolume relative to target_n
MIN_DENSITY = 0.25
MAX_DENSITY = 4

# the highest allowed fraction of close pairs with different types
MAX_MIXED_FRACTION = 0.1

# the lowest allowed average number of close same type pairs per cell
MIN_NEIGHBORS = 100


def subvolume_half_width(number_cells, target_n):
    """ Returns half the side length of the central cube that should hold
        about target_n of the number_cells cells.
    """
    return (target_n / number_cells) ** (1 / 3) / 2


def subvolume(locations, types, target_n):
    """ Returns the locations and types of the cells in the central cube
        along with half its side length.
    """
    number_cells = locations.shape[0]
    if number_cells == 0:
        return locations, types, 0.0

    # a cell is inside if every coordinate is within the half width of the center
    half_width = subvolume_half_width(number_cells, target_n)
    inside = np.all(np.abs(locations - 0.5) < half_width, axis=1)

    return locations[inside], types[inside], half_width


def close_pairs(locations, types, spatial_range):
    """ Returns a graph with an edge for each pair of cells closer than
        spatial_range. Vertices carry the "type" attribute and edges carry
        the "distance" attribute.
    """
    graph = get_neighbors(np.ascontiguousarray(locations, dtype=float), spatial_range)
    if graph.vcount() > 0:
        graph.vs["type"] = [int(cell_type) for cell_type in types]
    return graph


def pair_types(graph):
    """ Returns a boolean array saying if the cells of each edge have the
        same type, read from the "type" vertex attribute.
    """
    if graph.ecount() == 0:
        return np.zeros(0, dtype=bool)

    types = np.array(graph.vs["type"])
    edges = np.array(graph.get_edgelist())
    return types[edges[:, 0]] * types[edges[:, 1]] > 0


def energy(locations, types, spatial_range, target_n):
    """ Returns the energy of the cells in the subvolume. Each close pair
        adds min(100, spatial_range / distance) to the intra-cluster sum if
        the types match and to the extra-cluster sum otherwise. Lower values
        mean better clustering.
    """
    sub_locations, sub_types, _ = subvolume(locations, types, target_n)
    graph = close_pairs(sub_locations, sub_types, spatial_range)

    # no close pairs, nothing to add
    number_close = graph.ecount()
    if number_close == 0:
        return 0.0

    # get the contribution of each pair, a pair at the same location takes the maximum
    distances = np.array(graph.es["distance"])
    ratios = np.full(number_close, np.inf)
    np.divide(spatial_range, distances, out=ratios, where=distances > 0)
    contributions = np.minimum(MAX_PAIR_ENERGY, ratios)

    # split the pairs by whether the types match
    same = pair_types(graph)
    intra_cluster = np.sum(contributions[same])
    extra_cluster = np.sum(contributions[~same])

    return float((extra_cluster - intra_cluster) / (1 + MAX_PAIR_ENERGY * number_close))


def check_criterion(locations, types, spatial_range, target_n):
    """ Decides if the cells in the subvolume are clustered. Returns a
        tuple of the result, a message describing it, and a dict with the
        number of cells in the subvolume, the correctness coefficient and
        the average number of same type neighbors. The last two are None
        if the density check fails first.
    """
    sub_locations, sub_types, _ = subvolume(locations, types, target_n)
    number_sub = sub_locations.shape[0]
    details = {"number_cells": number_sub, "coefficient": None, "average_neighbors": None}

    # the subvolume should hold about target_n cells
    density = number_sub / target_n
    if density < MIN_DENSITY:
        return False, f"not enough cells in subvolume: {number_sub}", details
    if density > MAX_DENSITY:
        return False, f"too many cells in subvolume: {number_sub}", details

    # count the close pairs of matching and differing types
    graph = close_pairs(sub_locations, sub_types, spatial_range)
    same = pair_types(graph)
    number_close = graph.ecount()
    same_type_close = int(np.sum(same))
    diff_type_close = number_close - same_type_close

    # many close pairs of opposite types means the cells are mixed
    coefficient = diff_type_close / (number_close + 1)
    details["coefficient"] = coefficient
    if coefficient > MAX_MIXED_FRACTION:
        return False, f"cells in subvolume are not well-clustered: {coefficient:f}", details

    # clusters should be large enough to give each cell many neighbors of the same type
    average_neighbors = same_type_close / number_sub
    details["average_neighbors"] = average_neighbors
    if average_neighbors < MIN_NEIGHBORS:
        return False, f"cells in subvolume do not have enough neighbors: {average_neighbors:f}", details

    message = f"average neighbors in subvolume: {average_neighbors:f}, correctness coefficient: {coefficient:f}"
    return True, message, details


def criterion(locations, types, spatial_range, target_n):
    """ Returns True if the cells in the subvolume are clustered.
    """
    return check_criterion(locations, types, spatial_range, target_n)[0]
