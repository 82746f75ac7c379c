import sys

from cellcluster.cellsimulation import CellSimulation


def main():
    """ Entry point for the cellcluster command.
    """
    sys.exit(CellSimulation.start())


# only call start() if this file is being run directly
if __name__ == "__main__":
    main()
