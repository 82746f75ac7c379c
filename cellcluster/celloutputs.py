import os
import sys
import csv
import psutil

from cellcluster.backend import check_direct, progress_bar, system_config


# the stages timed with the @record_time decorator and the names used when reporting them
STAGES = [
    ("produce", "produceSubstances_TIME"),
    ("diffuse", "runDiffusionStep_TIME"),
    ("decay", "runDecayStep_TIME"),
    ("growth_step", "cellMovementAndDuplication_TIME"),
    ("cluster_step", "runDiffusionClusterStep_TIME"),
    ("get_energy", "getEnergy_TIME"),
    ("get_criterion", "getCriterion_TIME"),
]


class CellOutputs:
    """ The methods in this class are meant to provide output
        functionality to the CellSimulation class. Messages go to stdout
        depending on the quiet level (0: verbose, 1: default, 2: quiet),
        the report of parameters, metrics, and times always goes to stderr.
    """
    def say(self, message, level=1):
        """ Prints the message if the quiet level is below the level.

            - level: 1 for verbose messages, 2 for default messages
        """
        if self.quiet < level:
            print(message)

    def report(self, label, value):
        """ Writes a line of the report.
        """
        print(f"{label:<35} = {value}", file=sys.stderr)

    def report_time(self, label, seconds, total=None):
        """ Writes a time to the report, with the percentage of the total
            time if one is given.
        """
        if total is None:
            self.report(label, f"{seconds:e} s")
        else:
            percent = 100 * seconds / total if total > 0 else 0.0
            self.report(label, f"{seconds:e} s ({percent:3.2f} %)")

    def print_params(self):
        """ Writes the system configuration and the parameters at the start
            of the report.
        """
        print("=" * 50, file=sys.stderr)
        for line in system_config():
            print(line, file=sys.stderr)
        for name, value in self.params.items():
            self.report(name, value)

    def info(self):
        """ Prints the progress of the clustering phase every 10 steps.
        """
        if self.current_step % 10 == 0:
            if self.quiet < 1:
                print(f"step {self.current_step}")
            elif self.quiet < 2:
                progress_bar(self.current_step, self.end_step)

    def report_metrics(self, label):
        """ Writes a reading of the criterion and the energy.
        """
        passed, energy = self.readings[label]
        self.report(f"{label.upper()}_CRITERION", int(passed))
        self.report(f"{label.upper()}_ENERGY", f"{energy:e}")

    def report_times(self):
        """ Writes the time of each stage with the percentage of the total
            compute time.
        """
        total = self.phase_times["compute"]
        for method, label in STAGES:
            self.report_time(label, self.method_times.get(method, 0.0), total)
        self.report_time("TOTAL_COMPUTE_TIME", total, total)

        # memory of the process in megabytes
        self.report("MEMORY_MB", f"{self.memory():.2f}")
        print("=" * 50, file=sys.stderr)

    def memory(self):
        """ Returns the memory of the process in megabytes.
        """
        process = psutil.Process(os.getpid())
        return process.memory_info()[0] / 1024 ** 2

    def data(self):
        """ Adds a line to a CSV holding the results of the simulation such
            as the number of cells, the metric readings, memory, and method
            profiling. Only written if an output directory was given.
        """
        if self.output_path is None:
            return None

        # make sure directory exists and get file name
        check_direct(self.output_path)
        file_path = os.path.join(self.output_path, f"{self.name}_data.csv")
        new_file = not os.path.isfile(file_path)

        # get the readings in a fixed order
        initial_passed, initial_energy = self.readings["initial"]
        final_passed, final_energy = self.readings["final"]

        with open(file_path, "a", newline="") as file_object:
            # create CSV object
            csv_object = csv.writer(file_object)

            # create header if the file is new
            main_header = ["Number Cells", "Initial Criterion", "Initial Energy", "Final Criterion", "Final Energy",
                           "Phase 1 Time", "Phase 2 Time", "Compute Time", "Memory (MB)"]
            methods_header = [method for method, _ in STAGES]
            if new_file:
                csv_object.writerow(main_header + methods_header)

            # write the row with the corresponding values
            columns = [self.number_agents, int(initial_passed), initial_energy, int(final_passed), final_energy,
                       self.phase_times["phase1"], self.phase_times["phase2"], self.phase_times["compute"],
                       self.memory()]
            function_times = [self.method_times.get(method, 0.0) for method in methods_header]
            csv_object.writerow(columns + function_times)

        return file_path
