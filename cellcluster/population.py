import numpy as np

from cellcluster.backend import record_time
from cellcluster.cell_backend import duplication_jit, cluster_movement_jit, clamp_locations_jit


class CellPopulation:
    """ Holds the cell arrays for a population that grows up to a fixed
        capacity. The arrays are made once at full capacity and only the
        first number_agents entries are in use, so an index never changes.
    """
    # the length of a random walk step and the distance a daughter cell is placed from its mother
    step_size = 0.1
    offset_radius = 0.05

    def __init__(self, capacity, seed=None, method_times=None):
        if capacity < 1:
            raise ValueError(f"Population capacity must be at least 1, got {capacity}")

        self.capacity = capacity
        self.number_agents = 0

        # hold the names of the agent arrays
        self.agent_array_names = list()

        # random number generator for the random walk and the placement of daughter cells
        self.rng = np.random.default_rng(seed)

        # shared holder for the runtimes of methods with @record_time decorator
        self.method_times = method_times if method_times is not None else dict()

    def add_agents(self, number):
        """ Adds number of agents to the population and returns the slice
            of indices they take.

            - number: the number of agents being added
        """
        # determine bounds for array slice and increase total agents
        begin = self.number_agents
        if begin + number > self.capacity:
            raise ValueError(f"Cannot add {number} agents, the population holds at most {self.capacity}")
        self.number_agents += number

        return begin, self.number_agents

    def agent_array(self, array_name, dtype=float, vector=None, func=None):
        """ Adds an agent array, sized to the capacity, used to hold values
            for all agents.

            - array_name: the name of the variable made for the agent array
            - dtype: the data type of the array
            - vector: if 2-dimensional, the length of the vector for each agent
            - func: a function called for each current agent to specify initial
              values
        """
        # only make a new array if the instance variable doesn't exist
        if not hasattr(self, array_name):
            # add array name to holder
            self.agent_array_names.append(array_name)

            # get the dimensions of the array
            if vector is None:
                size = self.capacity    # 1-dimensional array
            else:
                size = (self.capacity, vector)    # 2-dimensional array (1-dimensional of vectors)

            self.__dict__[array_name] = np.zeros(size, dtype=dtype)

        # apply the initial condition to the current agents
        if func is not None:
            for i in range(self.number_agents):
                self.__dict__[array_name][i] = func()

    def seed_cell(self):
        """ Starts the population with a single type +1 cell in the center
            of the cube that has not traveled or divided yet.
        """
        self.add_agents(1)
        self.agent_array("locations", vector=3, func=lambda: np.array([0.5, 0.5, 0.5]))
        self.agent_array("types", dtype=np.int64, func=lambda: 1)
        self.agent_array("path_traveled")
        self.agent_array("division_counts", dtype=np.int64)
        self.agent_array("movements", vector=3)

    def random_vectors(self, number):
        """ Returns random vectors of length one pointing in uniformly
            distributed directions.
        """
        vectors = self.rng.standard_normal((number, 3))
        magnitudes = np.linalg.norm(vectors, axis=1, keepdims=True)

        # a zero vector stays zero
        magnitudes[magnitudes == 0] = 1
        return vectors / magnitudes

    @record_time
    def growth_step(self, path_threshold, div_threshold):
        """ Moves every cell one random step and divides the cells that
            traveled past the path threshold while below the division
            threshold. Returns the new number of cells.
        """
        # only the cells present at the start of the step move and may divide
        number_agents = self.number_agents

        # random walk for each cell, independent of the others
        self.locations[:number_agents] += self.step_size * self.random_vectors(number_agents)
        self.path_traveled[:number_agents] += self.step_size

        # the direction to place each possible daughter cell
        offsets = self.random_vectors(number_agents)

        # division takes the next free index, so this runs in order
        self.number_agents = duplication_jit(number_agents, self.locations, self.path_traveled, self.types,
                                             self.division_counts, offsets, path_threshold, div_threshold,
                                             self.offset_radius)

        return self.number_agents

    @record_time
    def cluster_step(self, field, speed):
        """ Calculates the movement of every cell up the gradient of its own
            substance and down the gradient of the other. The locations are
            not changed until apply_movement() is called.
        """
        self.movements = cluster_movement_jit(self.number_agents, self.locations, self.types, field.values,
                                              field.voxel_size, speed, self.movements)

    def apply_movement(self):
        """ Moves the cells by the movements from cluster_step().
        """
        self.locations[:self.number_agents] += self.movements[:self.number_agents]

    def clamp_locations(self):
        """ Keeps every cell in the unit cube.
        """
        self.locations = clamp_locations_jit(self.number_agents, self.locations)

    def snapshot(self):
        """ Returns copies of the locations and types of the current cells.
        """
        return self.locations[:self.number_agents].copy(), self.types[:self.number_agents].copy()
