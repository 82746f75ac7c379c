from cellcluster.field import ConcentrationField
from cellcluster.population import CellPopulation
from cellcluster.cellsimulation import CellSimulation
from cellcluster.parameters import get_params

__version__ = "1.0.0"
