import numpy as np
import time
import os
import sys
import platform
import yaml
import igraph
import numba
from numba import jit, prange
from functools import wraps


class Graph(igraph.Graph):
    """ This class extends the Graph class from iGraph adding
        instance variables for the bin/bucket sort algorithm.
    """
    def __init__(self, *args, **kwargs):
        # call the origin constructor from iGraph
        super().__init__(*args, **kwargs)

        # the current number of neighbors that can be stored in a holder array (value changes frequently)
        self.max_neighbors = 1


@jit(nopython=True, cache=True)
def assign_bins_jit(number_agents, bin_locations, bins, bins_start, bins_help):
    """ This just-in-time compiled method performs the actual
        calculations for the assign_bins() method.
    """
    for index in range(number_agents):
        # get the indices of the bin location
        x, y, z = bin_locations[index, 0], bin_locations[index, 1], bin_locations[index, 2]

        # put the agent index at the next open place of the bin
        place = bins_start[x, y, z] + bins_help[x, y, z]
        bins[place] = index

        # update the number of agents placed in the bin
        bins_help[x, y, z] += 1

    return bins, bins_help


@jit(nopython=True, parallel=True, cache=True)
def get_neighbors_cpu(number_agents, locations, bin_locations, bins, bins_start, bins_help, distance, edges,
                      edge_distances, if_edge, edge_count, max_neighbors):
    """ This just-in-time compiled method performs the actual
        calculations for the get_neighbors() method.
    """
    for index in prange(number_agents):
        # get the starting index for writing edges to the holder array
        start = index * max_neighbors

        # hold the total amount of edges for the agent
        agent_edge_count = 0

        # get the indices of the bin location
        x, y, z = bin_locations[index, 0], bin_locations[index, 1], bin_locations[index, 2]

        # go through the 27 bins that could hold potential neighbors
        for i in range(-1, 2):
            for j in range(-1, 2):
                for k in range(-1, 2):
                    # get the count of agents and the first place for the current bin
                    bin_count = bins_help[x + i, y + j, z + k]
                    bin_start = bins_start[x + i, y + j, z + k]

                    # go through the current bin determining if an agent is a neighbor
                    for l in range(bin_count):
                        # get the index of the current potential neighbor
                        current = bins[bin_start + l]

                        # prevent duplicates with index condition
                        if index < current:
                            # get the distance between the pair
                            total = 0.0
                            for m in range(3):
                                total += (locations[current, m] - locations[index, m]) ** 2
                            magnitude = total ** 0.5

                            # check to see if the agent is a neighbor
                            if magnitude < distance:
                                # if there is room, add the edge
                                if agent_edge_count < max_neighbors:
                                    # get the index for the edge
                                    edge_index = start + agent_edge_count

                                    # update the edge arrays and identify that this edge exists
                                    edges[edge_index, 0] = index
                                    edges[edge_index, 1] = current
                                    edge_distances[edge_index] = magnitude
                                    if_edge[edge_index] = True

                                # increase the count of edges for an agent
                                agent_edge_count += 1

        # update the array with number of edges for the agent
        edge_count[index] = agent_edge_count

    return edges, edge_distances, if_edge, edge_count


def assign_bins(locations, distance, max_bins=64):
    """ Generalizes agent locations in the unit cube to bins, used for
        accelerating neighbor searches. Each bin is at least as wide as
        the search distance.

        - locations: the agent locations
        - distance: the radius of search length
        - max_bins: the most bins along an axis
    """
    number_agents = locations.shape[0]

    # the number of bins along each axis and the width of a bin
    bins_per_axis = max(1, min(int(1 / distance), max_bins))
    bin_width = 1 / bins_per_axis

    # include an extra bin on each side so the search never leaves the array
    bins_help_size = np.full(3, bins_per_axis + 2)

    # generalize the agent locations to bin indices and offset by 1 for the padding
    bin_locations = np.floor_divide(locations, bin_width).astype(np.int64) + 1
    bin_locations = np.clip(bin_locations, 1, bins_per_axis)

    # count the agents per bin and get the first place of each bin in the sorted agent array
    counts = np.zeros(bins_help_size, dtype=np.int64)
    np.add.at(counts, (bin_locations[:, 0], bin_locations[:, 1], bin_locations[:, 2]), 1)
    bins_start = (np.cumsum(counts) - counts.ravel()).reshape(bins_help_size)

    # create the bins arrays and use JIT function to place the agents
    bins = np.zeros(number_agents, dtype=np.int64)    # holds the indices of the agents sorted by bin
    bins_help = np.zeros(bins_help_size, dtype=np.int64)    # holds the number of agents in each bin
    bins, bins_help = assign_bins_jit(number_agents, bin_locations, bins, bins_start, bins_help)

    return bins, bins_start, bins_help, bin_locations


def get_neighbors(locations, distance):
    """ Finds all pairs of agents closer than a fixed radius and returns
        them as a graph with the pair distance as the "distance" edge
        attribute.

        - locations: the agent locations inside the unit cube
        - distance: the radius of search length
    """
    # make a graph with a vertex for each agent
    number_agents = locations.shape[0]
    graph = Graph(number_agents)

    # no pairs can exist, the compiled function also needs at least one agent
    if number_agents < 2:
        return graph

    # assign each of the agents to bins
    bins, bins_start, bins_help, bin_locations = assign_bins(locations, distance)

    # run until all edges are accounted for
    while True:
        # get the total amount of edges able to be stored and make the following arrays
        length = number_agents * graph.max_neighbors
        edge_holder = np.zeros((length, 2), dtype=np.int64)    # hold all edges
        distance_holder = np.zeros(length, dtype=float)    # hold the distance of each edge
        if_edge = np.zeros(length, dtype=np.bool_)    # say if each edge exists
        edge_count = np.zeros(number_agents, dtype=np.int64)    # hold count of edges per agent

        edge_holder, distance_holder, if_edge, edge_count = get_neighbors_cpu(
            number_agents, locations, bin_locations, bins, bins_start, bins_help, distance, edge_holder,
            distance_holder, if_edge, edge_count, graph.max_neighbors)

        # break the loop if all neighbors were accounted for or revalue the maximum number of neighbors
        max_neighbors = np.amax(edge_count)
        if graph.max_neighbors >= max_neighbors:
            break
        else:
            graph.max_neighbors = max_neighbors * 2    # double to prevent continual updating

    # reduce the edges to edges that actually exist and add those edges to graph
    if np.any(if_edge):
        graph.add_edges(edge_holder[if_edge].tolist())
        graph.es["distance"] = distance_holder[if_edge].tolist()

    return graph


def check_direct(path):
    """ Makes sure directory exists.
    """
    if not os.path.isdir(path):
        os.makedirs(path)

    return path


def progress_bar(progress, maximum):
    """ Makes a progress bar to show progress of output.
    """
    # length of the bar
    length = 60

    # calculate bar and percent
    progress += 1    # start at 1 not 0
    fill = int(length * progress / maximum)
    bar = '#' * fill + '.' * (length - fill)
    percent = int(100 * progress / maximum)

    # output the progress bar
    print(f"\r[{bar}] {percent}%", end="")


def record_time(function):
    """ This is a decorator used to time individual methods. The
        time is added to the method_times dictionary of the object,
        keeping a running total for each method.
    """
    @wraps(function)
    def wrap(instance, *args, **kwargs):    # args and kwargs are for additional arguments
        # call the method and get the start/end time
        start = time.perf_counter()
        result = function(instance, *args, **kwargs)
        end = time.perf_counter()

        # add the method time to the dictionary holding these times
        name = function.__name__
        instance.method_times[name] = instance.method_times.get(name, 0) + end - start

        return result

    return wrap


# ---------------------------------------- helper methods for user-interface ------------------------------------------
def commandline_param(flag, dtype, args=None):
    """ Returns the value for option passed at the
        command line.
    """
    # get list of command line arguments
    if args is None:
        args = sys.argv

    # go through the arguments
    for i in range(len(args)):
        # if argument matches flag
        if args[i] == flag:
            # try to return value of
            try:
                return dtype(args[i + 1])
            # otherwise raise error
            except IndexError:
                raise ValueError(f"No value for option: {args[i]}")

    # return NoneType if no value passed
    return None


def commandline_count(flags, args=None):
    """ Returns how many times any of the flags were passed at the
        command line.
    """
    if args is None:
        args = sys.argv

    return sum(1 for arg in args if arg in flags)


def template_params(path):
    """ Return parameters as dict from YAML template file.
    """
    with open(path, "r") as file:
        return yaml.safe_load(file)


def system_config():
    """ Returns lines describing the interpreter, libraries, and threads
        used for the simulation.
    """
    return [
        f"{'PYTHON_VERSION':<35} = {platform.python_version()}",
        f"{'NUMPY_VERSION':<35} = {np.__version__}",
        f"{'NUMBA_VERSION':<35} = {numba.__version__}",
        f"{'IGRAPH_VERSION':<35} = {igraph.__version__}",
        f"{'PLATFORM':<35} = {platform.platform()}",
        f"{'NUM_THREADS':<35} = {numba.get_num_threads()}",
    ]
