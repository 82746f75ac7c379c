import sys
import time
from abc import ABC, abstractmethod

from cellcluster.backend import commandline_param, commandline_count, system_config
from cellcluster.parameters import get_params, parse_value


USAGE = "USAGE:\t%s [-h] [-V] [-q] [-v] [-n <name>] [-o <directory>] [--<param>=<value>]* [<parameter file>]\n"

DESCRIPTION = """DESCRIPTION
\t Clustering of cells in 3D space by movements along substance gradients.
\t In the first phase, a single cell moves randomly in the unit cube and
\t recursively gives rise to daughter cells by division. In the second
\t phase, cells move along the gradients of their preferred substance.
\t There are two substances, each cell type produces the substance it
\t prefers, and the substances diffuse and decay in 3D space.
PARAMETERS
\t <parameter file> is a YAML file with <param>: <value> pairs, the packaged
\t templates/general.yaml is used if none is given.
\t speed, T, L, D, mu, divThreshold, finalNumberCells, spatialRange,
\t pathThreshold, targetN, seed, num_threads
OPTIONS
\t-h,--help\n\t    print this help message
\t-V,--version\n\t    print configuration information
\t-q,--quiet\n\t    lower output to stdout, multiples accepted
\t-v,--verbose\n\t    increase output to stdout, multiples accepted
\t-n <name>\n\t    name of the simulation
\t-o <directory>\n\t    directory for the CSV summary of the simulation
\t--<param>=<value>\n\t    override param/value from the parameter file
"""

# flags without a value and options followed by a value
FLAGS = ("-h", "--help", "-V", "--version", "-q", "--quiet", "-v", "--verbose")
OPTIONS = ("-n", "-o")


def split_args(args):
    """ Returns the parameter file path (or None) and a dict of the
        --<param>=<value> overrides from the command line arguments.
    """
    path = None
    overrides = dict()

    i = 0
    while i < len(args):
        arg = args[i]

        # skip options along with their values
        if arg in OPTIONS:
            i += 2
            continue

        if arg in FLAGS:
            pass

        # parameter override
        elif arg.startswith("--"):
            if "=" not in arg:
                raise ValueError(f"Unknown option: {arg}")
            name, value = arg[2:].split("=", 1)
            overrides[name] = parse_value(value)

        elif arg.startswith("-"):
            raise ValueError(f"Unknown option: {arg}")

        # the parameter file
        elif path is None:
            path = arg
        else:
            raise ValueError(f"Only one parameter file can be given, got \"{path}\" and \"{arg}\"")

        i += 1

    return path, overrides


class Simulation(ABC):
    """ This abstract class makes sure any subclasses have the necessary
        simulation attributes.
    """
    def __init__(self, params, name="cellcluster", output_path=None, quiet=1):
        self.params = params    # the validated parameters
        self.name = name    # name of the simulation
        self.output_path = output_path    # directory for the CSV summary, None for no file
        self.quiet = quiet    # 0: verbose, 1: default, 2 or more: quiet

        # the running number of agents and the current step
        self.number_agents = 0
        self.current_step = 0

        # store the runtimes of methods with @record_time decorator and the runtimes of the phases
        self.method_times = dict()
        self.phase_times = dict()

        # hold the (criterion, energy) readings taken during the simulation
        self.readings = dict()

    @abstractmethod
    def agent_initials(self):
        """ Make sure subclass has agent_initials method. """
        pass

    @abstractmethod
    def steps(self):
        """ Make sure subclass has steps method. """
        pass

    def run(self):
        """ Creates the agents, runs all of the steps, and returns the
            results of the simulation.
        """
        # time the creation of the agents separately from the steps
        start = time.perf_counter()
        self.agent_initials()
        self.phase_times["initialization"] = time.perf_counter() - start

        self.steps()

        return self.results()

    def results(self):
        """ Returns a dict with the final number of agents, the metric
            readings, and the times of phases and methods.
        """
        return {
            "name": self.name,
            "number_agents": self.number_agents,
            "readings": dict(self.readings),
            "phase_times": dict(self.phase_times),
            "method_times": dict(self.method_times),
        }

    @classmethod
    def start(cls, args=None):
        """ Configures a simulation from the command line arguments and runs
            it. Returns the exit status.
        """
        # get list of command line arguments
        if args is None:
            args = sys.argv[1:]

        # print the help or the configuration and stop
        if "-h" in args or "--help" in args:
            print(USAGE % cls.__name__, file=sys.stderr)
            print(DESCRIPTION, file=sys.stderr)
            return 0
        if "-V" in args or "--version" in args:
            print("\n".join(system_config()), file=sys.stderr)
            return 0

        # each -q raises and each -v lowers the quiet level
        quiet = 1 + commandline_count(("-q", "--quiet"), args) - commandline_count(("-v", "--verbose"), args)

        # any mistake in the configuration stops the simulation before it starts
        try:
            name = commandline_param("-n", str, args) or "cellcluster"
            output_path = commandline_param("-o", str, args)
            path, overrides = split_args(args)
            params = get_params(path, overrides)
        except ValueError as error:
            print(f"Error: {error}", file=sys.stderr)
            print(USAGE % cls.__name__, file=sys.stderr)
            return 2

        simulation = cls(params, name=name, output_path=output_path, quiet=quiet)
        simulation.run()
        return 0
