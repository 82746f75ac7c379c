import math
import numpy as np
from numba import jit, prange


@jit(nopython=True, cache=True)
def voxel_indices(location, voxel_size, last):
    """ Returns the indices of the voxel holding the location, clamped
        to the last index of the grid.
    """
    x = min(max(int(math.floor(location[0] / voxel_size)), 0), last)
    y = min(max(int(math.floor(location[1] / voxel_size)), 0), last)
    z = min(max(int(math.floor(location[2] / voxel_size)), 0), last)
    return x, y, z


@jit(nopython=True, cache=True)
def count_deposits_jit(number_agents, locations, types, voxel_size, counts):
    """ This just-in-time compiled method counts how many cells deposit
        into each voxel. It runs serially so that cells sharing a voxel
        are all counted.
    """
    last = counts.shape[1] - 1
    for index in range(number_agents):
        # get the voxel of the cell
        x, y, z = voxel_indices(locations[index], voxel_size, last)

        # type +1 cells produce substance 0, type -1 cells produce substance 1
        if types[index] == 1:
            counts[0, x, y, z] += 1
        else:
            counts[1, x, y, z] += 1

    return counts


@jit(nopython=True, parallel=True, cache=True)
def apply_deposits_jit(values, counts, amount, maximum):
    """ This just-in-time compiled method adds the counted deposits to
        the concentrations in parallel, capping each voxel at the maximum.
    """
    resolution = values.shape[1]
    for i in prange(resolution):
        for j in range(resolution):
            for k in range(resolution):
                for substance in range(2):
                    if counts[substance, i, j, k] > 0:
                        value = values[substance, i, j, k] + amount * counts[substance, i, j, k]
                        if value > maximum:
                            value = maximum
                        values[substance, i, j, k] = value

    return values


@jit(nopython=True, parallel=True, cache=True)
def diffuse_jit(values, snapshot, factor):
    """ This just-in-time compiled method performs one explicit finite
        difference step of diffusion. Neighbors are only read from the
        snapshot, and neighbors outside the grid add nothing.
    """
    resolution = values.shape[1]
    for i in prange(resolution):
        for j in range(resolution):
            for k in range(resolution):
                for substance in range(2):
                    # the concentration of the voxel at the start of the step
                    center = snapshot[substance, i, j, k]
                    change = 0.0

                    # x direction
                    if i + 1 < resolution:
                        change += snapshot[substance, i + 1, j, k] - center
                    if i - 1 >= 0:
                        change += snapshot[substance, i - 1, j, k] - center

                    # y direction
                    if j + 1 < resolution:
                        change += snapshot[substance, i, j + 1, k] - center
                    if j - 1 >= 0:
                        change += snapshot[substance, i, j - 1, k] - center

                    # z direction
                    if k + 1 < resolution:
                        change += snapshot[substance, i, j, k + 1] - center
                    if k - 1 >= 0:
                        change += snapshot[substance, i, j, k - 1] - center

                    values[substance, i, j, k] += change * factor

    return values


@jit(nopython=True, cache=True)
def gradient_jit(values, location, voxel_size):
    """ This just-in-time compiled method returns the gradients of both
        substances at the location as a (2, 3) array. At the edge of the
        grid the difference becomes one-sided.
    """
    last = values.shape[1] - 1
    i1, i2, i3 = voxel_indices(location, voxel_size, last)

    # get the neighboring indices, staying inside the grid
    x_up, x_down = min(i1 + 1, last), max(i1 - 1, 0)
    y_up, y_down = min(i2 + 1, last), max(i2 - 1, 0)
    z_up, z_down = min(i3 + 1, last), max(i3 - 1, 0)

    gradients = np.empty((2, 3))
    for substance in range(2):
        gradients[substance, 0] = ((values[substance, x_up, i2, i3] - values[substance, x_down, i2, i3]) /
                                   (voxel_size * (x_up - x_down)))
        gradients[substance, 1] = ((values[substance, i1, y_up, i3] - values[substance, i1, y_down, i3]) /
                                   (voxel_size * (y_up - y_down)))
        gradients[substance, 2] = ((values[substance, i1, i2, z_up] - values[substance, i1, i2, z_down]) /
                                   (voxel_size * (z_up - z_down)))

    return gradients


@jit(nopython=True, parallel=True, cache=True)
def cluster_movement_jit(number_agents, locations, types, values, voxel_size, speed, movements):
    """ This just-in-time compiled method calculates the movement of each
        cell along the gradients of the two substances.
    """
    for index in prange(number_agents):
        # get the gradients at the location of the cell
        gradients = gradient_jit(values, locations[index], voxel_size)

        # the L2 norm of each gradient
        norm_0 = (gradients[0, 0] ** 2 + gradients[0, 1] ** 2 + gradients[0, 2] ** 2) ** 0.5
        norm_1 = (gradients[1, 0] ** 2 + gradients[1, 1] ** 2 + gradients[1, 2] ** 2) ** 0.5

        # move up the gradient of the own substance and down the other, or stay without both gradients
        if norm_0 > 0 and norm_1 > 0:
            for j in range(3):
                direction = gradients[0, j] / norm_0 - gradients[1, j] / norm_1
                movements[index, j] = types[index] * speed * direction
        else:
            for j in range(3):
                movements[index, j] = 0.0

    return movements


@jit(nopython=True, cache=True)
def duplication_jit(number_agents, locations, path_traveled, types, division_counts, offsets, path_threshold,
                    div_threshold, offset_radius):
    """ This just-in-time compiled method divides the cells that have
        traveled far enough. It runs serially as each daughter cell takes
        the next free index. Daughters added here are not checked again.
    """
    capacity = locations.shape[0]
    current = number_agents
    for index in range(number_agents):
        # divide if below the division limit and past the path threshold with room left
        if division_counts[index] < div_threshold and path_traveled[index] > path_threshold and current < capacity:
            # update the mother cell
            path_traveled[index] -= path_threshold
            division_counts[index] += 1

            # the daughter takes the opposite type and the division count of the mother
            division_counts[current] = division_counts[index]
            types[current] = -types[index]
            path_traveled[current] = 0.0

            # place the daughter cell next to the mother cell
            for j in range(3):
                locations[current, j] = locations[index, j] + offset_radius * offsets[index, j]

            current += 1

    return current


@jit(nopython=True, parallel=True, cache=True)
def clamp_locations_jit(number_agents, locations):
    """ This just-in-time compiled method returns cells that left the unit
        cube to its faces.
    """
    for index in prange(number_agents):
        for j in range(3):
            if locations[index, j] < 0:
                locations[index, j] = 0.0
            elif locations[index, j] > 1:
                locations[index, j] = 1.0

    return locations
