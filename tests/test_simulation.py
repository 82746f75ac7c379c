import csv
import numba
import pytest

from cellcluster import metrics
from cellcluster.cellsimulation import CellSimulation
from cellcluster.celloutputs import STAGES
from cellcluster.parameters import get_params
from cellcluster.simulation import split_args


SMALL = ["--L=8", "--T=5", "--finalNumberCells=8", "--divThreshold=3", "--pathThreshold=0.2", "--seed=1",
         "--targetN=8", "--spatialRange=0.1"]


def small_params():
    return get_params(overrides={"L": 8, "T": 5, "finalNumberCells": 8, "divThreshold": 3, "pathThreshold": 0.2,
                                 "seed": 1, "targetN": 8, "spatialRange": 0.1})


def test_small_simulation_runs():
    simulation = CellSimulation(small_params(), quiet=2)
    results = simulation.run()

    assert results["number_agents"] == 8
    assert simulation.current_step == 4

    # readings of the criterion and the energy before and after clustering
    assert set(results["readings"]) == {"initial", "final"}
    for passed, energy in results["readings"].values():
        assert isinstance(passed, bool)
        assert isinstance(energy, float)

    # every stage was timed
    for method, _ in STAGES:
        assert method in results["method_times"]
    for phase in ("initialization", "phase1", "phase2", "compute"):
        assert results["phase_times"][phase] >= 0

    # no output directory means no CSV
    assert simulation.data() is None


def test_simulation_is_reproducible_with_seed():
    first = CellSimulation(small_params(), quiet=2)
    second = CellSimulation(small_params(), quiet=2)
    first.run()
    second.run()

    assert (first.population.locations == second.population.locations).all()
    assert first.readings == second.readings


def test_simulation_without_clustering_steps():
    params = small_params()
    params["T"] = 0
    simulation = CellSimulation(params, quiet=2)

    results = simulation.run()

    # nothing moves in the clustering phase so both readings match
    assert results["readings"]["initial"] == results["readings"]["final"]


def test_start_prints_help(capsys):
    assert CellSimulation.start(["-h"]) == 0
    assert "USAGE" in capsys.readouterr().err


def test_start_prints_version(capsys):
    assert CellSimulation.start(["-V"]) == 0
    assert "NUMBA_VERSION" in capsys.readouterr().err


def test_start_rejects_bad_configuration(capsys):
    assert CellSimulation.start(["--L=1"]) == 2
    assert "Error" in capsys.readouterr().err

    assert CellSimulation.start(["--bogus"]) == 2
    assert CellSimulation.start(["-n"]) == 2


def test_start_writes_report_and_csv(tmp_path, capsys):
    status = CellSimulation.start(["-q", "-q", "-n", "small", "-o", str(tmp_path)] + SMALL)

    assert status == 0

    # the report goes to stderr, nothing is printed to stdout when quiet
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "PHASE1_TIME" in captured.err
    assert "FINAL_ENERGY" in captured.err

    with open(tmp_path / "small_data.csv", newline="") as file:
        rows = list(csv.reader(file))
    assert rows[0][0] == "Number Cells"
    assert len(rows) == 2
    assert rows[1][0] == "8"


def test_split_args():
    path, overrides = split_args(["-q", "-n", "name", "-o", "out", "--T=4", "--speed=0.5", "params.yaml"])

    assert path == "params.yaml"
    assert overrides == {"T": 4, "speed": 0.5}

    with pytest.raises(ValueError):
        split_args(["a.yaml", "b.yaml"])
    with pytest.raises(ValueError):
        split_args(["-x"])


def test_thread_count_is_limited():
    params = small_params()
    params["num_threads"] = 1

    simulation = CellSimulation(params, quiet=2)

    assert numba.get_num_threads() == 1
    assert simulation.run()["number_agents"] == 8

    # give the remaining tests every thread again
    numba.set_num_threads(numba.config.NUMBA_NUM_THREADS)


def test_start_rejects_infinite_path_threshold(capsys):
    assert CellSimulation.start(SMALL + ["--pathThreshold=.inf"]) == 2
    assert "finite" in capsys.readouterr().err


def test_verbose_output_reports_subvolume_once_per_reading(capsys):
    simulation = CellSimulation(small_params(), quiet=0)
    simulation.run()

    lines = capsys.readouterr().out.splitlines()

    # one line for each of the initial and final readings
    assert sum(line.startswith("subVolMax") for line in lines) == 2
    assert sum(line.startswith("number of cells in subvolume") for line in lines) == 2
    assert "step 0" in lines


def test_criterion_reading_selects_subvolume_once(monkeypatch):
    simulation = CellSimulation(small_params(), quiet=2)
    simulation.agent_initials()

    # count the subvolume selections made for one reading of the criterion
    calls = list()
    subvolume = metrics.subvolume

    def counted(*args):
        calls.append(args)
        return subvolume(*args)

    monkeypatch.setattr(metrics, "subvolume", counted)
    locations, types = simulation.population.snapshot()
    simulation.get_criterion(locations, types)

    assert len(calls) == 1
