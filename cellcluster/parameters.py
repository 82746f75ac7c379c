import os
import math
import yaml

from cellcluster.backend import template_params


# marks a parameter without a default
REQUIRED = object()

# the name of each parameter with its type and default value
PARAMETERS = {
    "speed": (float, REQUIRED),    # multiplicative factor for the speed of gradient-based movement
    "T": (int, REQUIRED),    # number of steps of the clustering phase
    "L": (int, REQUIRED),    # resolution of the diffusion grid along each axis
    "D": (float, REQUIRED),    # diffusion constant
    "mu": (float, REQUIRED),    # decay constant
    "divThreshold": (int, REQUIRED),    # number of divisions a cell can undergo
    "finalNumberCells": (int, REQUIRED),    # number of cells that ends the growth phase
    "spatialRange": (float, REQUIRED),    # distance for close pairs in the energy and the criterion
    "pathThreshold": (float, REQUIRED),    # path length a cell travels before it divides
    "targetN": (int, 10000),    # number of cells the central subvolume should hold
    "seed": (int, None),    # seed for the random number generator, None for a random seed
    "num_threads": (int, None),    # number of threads for the parallel kernels, None for all
}


def default_template():
    """ Returns the path to the general.yaml template that ships with the
        package.
    """
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates", "general.yaml")


def parse_value(text):
    """ Interprets a value given at the command line the same way as a
        value in a YAML template file.
    """
    return yaml.safe_load(text)


def convert_param(name, value, dtype, default):
    """ Converts a template or command line value to the data type of the
        parameter, raising ValueError if that isn't possible.
    """
    # optional parameters may be left empty
    if value is None:
        if default is REQUIRED:
            raise ValueError(f"Parameter \"{name}\" needs a value")
        return None

    # booleans are not accepted as numbers
    if isinstance(value, bool):
        raise ValueError(f"Invalid value for parameter \"{name}\": {value!r}")

    try:
        if dtype == int:
            number = float(value)
            if not number.is_integer():
                raise ValueError
            return int(number)
        return dtype(value)

    except (TypeError, ValueError):
        raise ValueError(f"Invalid value for parameter \"{name}\": {value!r} should be {dtype.__name__}")


def validate_params(params):
    """ Rejects parameters that the simulation cannot run with.
    """
    # inf or nan would stall the growth phase or break the kernels
    for name in ("speed", "D", "mu", "spatialRange", "pathThreshold"):
        if not math.isfinite(params[name]):
            raise ValueError(f"\"{name}\" must be a finite number, got {params[name]}")

    if params["L"] < 2:
        raise ValueError(f"\"L\" must be at least 2, got {params['L']}")
    if params["T"] < 0:
        raise ValueError(f"\"T\" must not be negative, got {params['T']}")
    if params["finalNumberCells"] < 1:
        raise ValueError(f"\"finalNumberCells\" must be at least 1, got {params['finalNumberCells']}")
    if params["divThreshold"] < 0:
        raise ValueError(f"\"divThreshold\" must not be negative, got {params['divThreshold']}")
    if params["pathThreshold"] <= 0:
        raise ValueError(f"\"pathThreshold\" must be positive, got {params['pathThreshold']}")
    if params["spatialRange"] <= 0:
        raise ValueError(f"\"spatialRange\" must be positive, got {params['spatialRange']}")
    if not 0 <= params["mu"] <= 1:
        raise ValueError(f"\"mu\" must be between 0 and 1, got {params['mu']}")
    if params["targetN"] < 1:
        raise ValueError(f"\"targetN\" must be at least 1, got {params['targetN']}")
    if params["num_threads"] is not None and params["num_threads"] < 1:
        raise ValueError(f"\"num_threads\" must be at least 1, got {params['num_threads']}")

    # each lineage divides at most divThreshold times, so no more than 2 ** divThreshold cells can exist
    if params["finalNumberCells"] > 2 ** params["divThreshold"]:
        raise ValueError(f"\"finalNumberCells\" ({params['finalNumberCells']}) can never be reached with "
                         f"\"divThreshold\" {params['divThreshold']}, at most {2 ** params['divThreshold']} "
                         f"cells are possible")


def get_params(path=None, overrides=None):
    """ Returns the validated parameters as a dict from a YAML template
        file, with any overrides taking precedence.

        - path: the YAML template file, if None the packaged general.yaml
        - overrides: dict of parameter names to values
    """
    if path is None:
        path = default_template()

    # load the template file
    try:
        values = template_params(path)
    except OSError as error:
        raise ValueError(f"Cannot read parameter file \"{path}\": {error}")
    except yaml.YAMLError as error:
        raise ValueError(f"Cannot parse parameter file \"{path}\": {error}")

    # an empty file gives NoneType
    if values is None:
        values = dict()
    elif not isinstance(values, dict):
        raise ValueError(f"Parameter file \"{path}\" should hold <param>: <value> pairs")

    # apply the overrides on top of the file
    if overrides:
        values.update(overrides)

    # make sure no unknown parameter is passed
    for name in values:
        if name not in PARAMETERS:
            raise ValueError(f"Unknown parameter: \"{name}\"")

    # convert each of the parameters, using the default when possible
    params = dict()
    for name, (dtype, default) in PARAMETERS.items():
        if name in values:
            params[name] = convert_param(name, values[name], dtype, default)
        elif default is REQUIRED:
            raise ValueError(f"Missing parameter: \"{name}\"")
        else:
            params[name] = default

    validate_params(params)
    return params
