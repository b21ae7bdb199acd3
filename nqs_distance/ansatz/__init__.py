# nqs_distance/ansatz/__init__.py
#
# Wavefunction kernels. Two RBM variants share the PsiKernel interface:
#
#   from nqs_distance.ansatz import RBMKernel, FreeAxisKernel
#
# Most code should not build kernels directly; Psi picks one at construction.

from .base import PsiKernel
from .rbm import RBMKernel
from .free_axis import FreeAxisKernel
from .functions import logcosh

__all__ = ["PsiKernel", "RBMKernel", "FreeAxisKernel", "logcosh"]
