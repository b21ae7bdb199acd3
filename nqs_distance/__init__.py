# nqs_distance/__init__.py
#
# RBM neural quantum states and the Hilbert-space distance between an
# operator-transformed state and a trainable one:
#
#   from nqs_distance import Psi, HilbertSpaceDistance, ExactSummation
#   from nqs_distance.operators import sigma_x
#
#   psi = Psi(n_spins=4, n_hidden=4, seed=0)
#   psi_prime = psi.copy()
#   hsd = HilbertSpaceDistance(n_spins=4, num_params=psi_prime.num_active_params)
#   grad, distance = hsd.gradient(psi, psi_prime, sigma_x(0), True, ExactSummation(4))

from .errors import ConfigurationError, ResourceError
from .spins import Spins
from .psi import Psi
from .ensembles import SpinEnsemble, ExactSummation, MonteCarloLoop
from .distance import HilbertSpaceDistance, DistanceResult
from .schedulers import SequentialScheduler, TreeScheduler

__all__ = [
    "ConfigurationError", "ResourceError",
    "Spins", "Psi",
    "SpinEnsemble", "ExactSummation", "MonteCarloLoop",
    "HilbertSpaceDistance", "DistanceResult",
    "SequentialScheduler", "TreeScheduler",
]
