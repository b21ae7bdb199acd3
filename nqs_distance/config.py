# nqs_distance/config.py
#
# Configuration-time constants and YAML experiment config loading.
#
# The maxima below bound the size of a wavefunction. They are checked once,
# when a Psi is constructed, so an oversized network fails immediately with a
# ConfigurationError instead of somewhere inside an evaluation.

import yaml


# ============================================================
# Size Limits
# ============================================================

# Spin configurations are bit-packed into an integer index, and the exact
# summation enumerates 2^N of them. 63 keeps indices non-negative in an int64.
MAX_SPINS = 63

# Upper bound on hidden units for any wavefunction.
MAX_HIDDEN_SPINS = 1024

# Default block size of the tree scheduler: the number of workers that
# share one reduction. Must be >= max(N, M) of every wavefunction it runs.
DEFAULT_CAPACITY = MAX_HIDDEN_SPINS

# Above this N, materializing the full 2^N amplitude vector is slow enough
# to deserve a warning.
VECTOR_WARN_SPINS = 20


# ============================================================
# Configuration Loading
# ============================================================

def load_config(path: str) -> dict:
    """
    Load a YAML experiment config file and return it as a dict.

    Configs describe the two wavefunctions, the operator and the ensemble of
    one distance evaluation (see configs/distance_small.yaml).
    """
    with open(path, 'r') as f:
        config = yaml.safe_load(f)
    return config
