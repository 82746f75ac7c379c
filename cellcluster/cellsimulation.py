import time
import numba

from cellcluster.backend import record_time
from cellcluster.simulation import Simulation
from cellcluster.celloutputs import CellOutputs
from cellcluster.field import ConcentrationField
from cellcluster.population import CellPopulation
from cellcluster import metrics


class CellSimulation(CellOutputs, Simulation):
    """ This class inherits a base Simulation class with additional methods from CellOutputs.
        The cells first grow from a single cell by random walks and division, then cluster
        by moving along the gradients of the substances they produce.
    """
    def __init__(self, params, name="cellcluster", output_path=None, quiet=1):
        Simulation.__init__(self, params, name=name, output_path=output_path, quiet=quiet)

        # ------------- general template file ------------------------------
        self.speed = params["speed"]
        self.end_step = params["T"]
        self.resolution = params["L"]
        self.diffuse_const = params["D"]
        self.decay_const = params["mu"]
        self.div_thresh = params["divThreshold"]
        self.final_number_cells = params["finalNumberCells"]
        self.spatial_range = params["spatialRange"]
        self.path_thresh = params["pathThreshold"]
        self.target_n = params["targetN"]
        self.seed = params["seed"]
        self.num_threads = params["num_threads"]

        # limit the threads used by the parallel kernels
        if self.num_threads is not None:
            numba.set_num_threads(min(self.num_threads, numba.config.NUMBA_NUM_THREADS))

    def agent_initials(self):
        """ Creates the concentration field and the population, which starts
            with one cell.
        """
        self.field = ConcentrationField(self.resolution, method_times=self.method_times)
        self.population = CellPopulation(self.final_number_cells, seed=self.seed, method_times=self.method_times)
        self.population.seed_cell()
        self.number_agents = self.population.number_agents

    def steps(self):
        """ Runs the growth phase and the clustering phase, reading the metrics
            before and after the clustering phase.
        """
        self.print_params()
        self.report_time("INITIALIZATION_TIME", self.phase_times["initialization"])
        compute_start = time.perf_counter()

        # Phase 1: cells move randomly and divide until the final number of cells is reached
        start = time.perf_counter()
        self.growth_phase()
        self.phase_times["phase1"] = time.perf_counter() - start
        self.report_time("PHASE1_TIME", self.phase_times["phase1"])

        # Phase 2: cells move along the substance gradients and cluster
        start = time.perf_counter()
        self.measure("initial")
        self.cluster_phase()
        self.measure("final")
        self.phase_times["phase2"] = time.perf_counter() - start
        self.phase_times["compute"] = time.perf_counter() - compute_start
        self.report_time("PHASE2_TIME", self.phase_times["phase2"])

        # report the time of each stage and save the summary
        self.report_times()
        self.data()

    def growth_phase(self):
        """ Repeats production, diffusion, decay, and growth until the
            population reaches the final number of cells.
        """
        while self.number_agents < self.final_number_cells:
            self.field.produce(self.population.locations, self.population.types, self.number_agents)
            self.field.diffuse(self.diffuse_const)
            self.field.decay(self.decay_const)
            self.number_agents = self.population.growth_step(self.path_thresh, self.div_thresh)
            self.population.clamp_locations()

        self.say(f"number of cells after growth: {self.number_agents}")

    def cluster_phase(self):
        """ Repeats production, diffusion, decay, and gradient-based movement
            for the number of clustering steps.
        """
        for self.current_step in range(self.end_step):
            self.info()

            self.field.produce(self.population.locations, self.population.types, self.number_agents)
            self.field.diffuse(self.diffuse_const)
            self.field.decay(self.decay_const)
            self.population.cluster_step(self.field, self.speed)
            self.population.apply_movement()
            self.population.clamp_locations()

        # end the progress bar line
        if self.end_step > 0 and self.quiet == 1:
            print()

    def measure(self, label):
        """ Reads the criterion and the energy of the current cells and
            reports them.
        """
        locations, types = self.population.snapshot()
        energy = self.get_energy(locations, types)
        passed = self.get_criterion(locations, types)

        self.readings[label] = (passed, energy)
        self.report_metrics(label)

    @record_time
    def get_energy(self, locations, types):
        """ Returns the energy of the cells in the subvolume.
        """
        half_width = metrics.subvolume_half_width(locations.shape[0], self.target_n)
        self.say(f"subVolMax: {half_width:f}")

        return metrics.energy(locations, types, self.spatial_range, self.target_n)

    @record_time
    def get_criterion(self, locations, types):
        """ Returns whether the cells in the subvolume are clustered, printing
            the reason.
        """
        passed, message, details = metrics.check_criterion(locations, types, self.spatial_range, self.target_n)
        self.say(f"number of cells in subvolume: {details['number_cells']}")

        # a failure is shown by default, the details of a success only when verbose
        self.say(message, level=1 if passed else 2)

        return passed
