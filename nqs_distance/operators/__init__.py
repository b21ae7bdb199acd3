# nqs_distance/operators/__init__.py
#
# Operators the distance estimator can apply to the reference wavefunction:
#
#   from nqs_distance.operators import PauliOperator, sigma_x, TransverseFieldIsing

from .base import Operator
from .pauli import PauliOperator, sigma_x, sigma_y, sigma_z
from .ising import TransverseFieldIsing

__all__ = [
    "Operator", "PauliOperator", "sigma_x", "sigma_y", "sigma_z",
    "TransverseFieldIsing",
]
