import numpy as np

from cellcluster.backend import record_time
from cellcluster.cell_backend import count_deposits_jit, apply_deposits_jit, diffuse_jit, gradient_jit


class ConcentrationField:
    """ Holds the concentrations of the two substances over an L x L x L
        grid of voxels covering the unit cube. The values are one
        contiguous array indexed as values[substance, x, y, z].
    """
    # the amount a cell adds to its voxel each step and the cap on a voxel
    production = 0.1
    max_concentration = 1.0

    def __init__(self, resolution, method_times=None):
        # a grid needs two voxels per axis for the gradients to be defined
        if resolution < 2:
            raise ValueError(f"Grid resolution must be at least 2, got {resolution}")

        self.resolution = resolution
        self.voxel_size = 1 / resolution
        self.values = np.zeros((2, resolution, resolution, resolution), dtype=float)

        # shared holder for the runtimes of methods with @record_time decorator
        self.method_times = method_times if method_times is not None else dict()

    @record_time
    def produce(self, locations, types, number_agents):
        """ Each cell adds its substance to the voxel it sits in, type +1
            cells make substance 0 and type -1 cells make substance 1.
        """
        # count the deposits for each voxel first so cells sharing a voxel are all included
        counts = np.zeros(self.values.shape, dtype=np.int64)
        counts = count_deposits_jit(number_agents, locations, types, self.voxel_size, counts)

        # add the deposits in parallel
        self.values = apply_deposits_jit(self.values, counts, self.production, self.max_concentration)

    @record_time
    def diffuse(self, diffuse_const):
        """ Diffuses both substances with one explicit step of the
            7-point Laplacian, using a copy of the concentrations from
            the start of the step.
        """
        snapshot = self.values.copy()
        self.values = diffuse_jit(self.values, snapshot, diffuse_const / 6)

    @record_time
    def decay(self, mu):
        """ Degrades both substances by the fraction mu.
        """
        self.values *= 1 - mu

    def gradient_at(self, location):
        """ Returns the gradients of substance 0 and substance 1 at the
            location.
        """
        gradients = gradient_jit(self.values, np.asarray(location, dtype=float), self.voxel_size)
        return gradients[0], gradients[1]

    def total(self, substance):
        """ Returns the summed concentration of a substance.
        """
        return float(np.sum(self.values[substance]))
