# nqs_distance/schedulers.py
#
# Execution drivers for the kernel math.
#
# The kernels (ansatz/) describe what to sum; a scheduler decides where the
# arrays live and how sums are formed:
#
#   SequentialScheduler  numpy on the host. A configuration's summands are
#                        added in one sequential reduction, and the ensemble
#                        is folded the same way. Fully deterministic.
#
#   TreeScheduler        torch on a device. Each configuration is a work
#                        group (one batch row) with one worker per summand
#                        (one column). Workers combine their summands in a
#                        binary tree: the block is zero-padded to a power of
#                        two and halved until one value is left. Work groups
#                        are combined by the same tree across the batch axis.
#
# The tree sums the same numbers as the sequential path in a different order,
# so the two agree to floating-point rounding, not bit for bit.

from abc import ABC, abstractmethod

import numpy as np
import torch

from .config import DEFAULT_CAPACITY
from .errors import ConfigurationError, ResourceError


# ============================================================
# Tree Reduction
# ============================================================

def tree_sum(values: torch.Tensor, dim: int = -1) -> torch.Tensor:
    """
    Binary tree reduction of `values` along `dim`.

    Any width is accepted: the axis is padded with zeros (the neutral element
    of addition) up to the next power of two before halving.
    """
    values = values.movedim(dim, -1)
    width = values.shape[-1]

    size = 1
    while size < width:
        size *= 2

    if size > width:
        padding = values.new_zeros(tuple(values.shape[:-1]) + (size - width,))
        values = torch.cat([values, padding], dim=-1)

    while size > 1:
        size //= 2
        values = values[..., :size] + values[..., size:]

    return values[..., 0]


def resolve_device(device=None) -> torch.device:
    """
    Turn a device name into a torch.device, defaulting to CUDA.

    Raises:
        ResourceError: if a CUDA device is requested but not available.
                       There is no fallback to the CPU.
    """
    device = torch.device(device if device is not None else 'cuda')
    if device.type == 'cuda' and not torch.cuda.is_available():
        raise ResourceError(
            f"Device '{device}' requested but CUDA is not available. "
            f"Pass gpu=False for host execution."
        )
    return device


# ============================================================
# Schedulers
# ============================================================

class Scheduler(ABC):
    """Where arrays live and how they are summed."""

    gpu = False
    xp = None

    @abstractmethod
    def asarray(self, values, dtype=np.complex128):
        """Convert host data into this scheduler's array type."""

    @abstractmethod
    def to_numpy(self, values) -> np.ndarray:
        """Copy an array of this scheduler back to a numpy array."""

    @abstractmethod
    def reduce(self, values, axis: int = -1):
        """Sum the summands of each work group (one configuration)."""

    @abstractmethod
    def accumulate(self, values):
        """Sum per-sample contributions over the ensemble (axis 0)."""

    def check_block(self, width: int) -> None:
        """Validate that a work group of `width` summands can be scheduled."""

    def same_backend(self, other: 'Scheduler') -> bool:
        return type(self) is type(other)


class SequentialScheduler(Scheduler):
    """Host execution with numpy."""

    gpu = False
    xp = np

    @property
    def device(self) -> str:
        return 'cpu'

    def asarray(self, values, dtype=np.complex128):
        return np.array(values, dtype=dtype)

    def to_numpy(self, values) -> np.ndarray:
        return np.asarray(values)

    def reduce(self, values, axis: int = -1):
        return np.sum(values, axis=axis)

    def accumulate(self, values):
        return np.sum(values, axis=0)

    def __repr__(self) -> str:
        return "SequentialScheduler()"


class TreeScheduler(Scheduler):
    """
    Data-parallel execution with torch.

    Args:
        capacity: maximum number of workers in one work group, i.e. the
                  block size of the tree reduction. Wavefunctions with more
                  summands per configuration than this cannot be scheduled.
        device:   torch device; defaults to 'cuda'.
    """

    gpu = True
    xp = torch

    _DTYPES = {
        np.dtype(np.complex128): torch.complex128,
        np.dtype(np.float64): torch.float64,
        np.dtype(np.int64): torch.int64,
    }

    def __init__(self, capacity: int = DEFAULT_CAPACITY, device=None):
        if capacity < 1:
            raise ConfigurationError(f"capacity must be >= 1, got {capacity}")
        self.capacity = int(capacity)
        self.device = resolve_device(device)

    def asarray(self, values, dtype=np.complex128):
        torch_dtype = self._DTYPES[np.dtype(dtype)]
        try:
            if isinstance(values, torch.Tensor):
                return values.to(device=self.device, dtype=torch_dtype)
            return torch.as_tensor(
                np.asarray(values, dtype=dtype), device=self.device
            ).clone()
        except RuntimeError as err:
            raise ResourceError(
                f"Could not place array of shape {np.shape(values)} on {self.device}"
            ) from err

    def to_numpy(self, values) -> np.ndarray:
        if isinstance(values, torch.Tensor):
            return values.detach().cpu().resolve_conj().resolve_neg().numpy()
        return np.asarray(values)

    def check_block(self, width: int) -> None:
        if width > self.capacity:
            raise ConfigurationError(
                f"Work group of {width} summands exceeds scheduler capacity "
                f"{self.capacity}"
            )

    def reduce(self, values, axis: int = -1):
        self.check_block(values.shape[axis])
        return tree_sum(values, dim=axis)

    def accumulate(self, values):
        return tree_sum(values, dim=0)

    def same_backend(self, other: Scheduler) -> bool:
        return isinstance(other, TreeScheduler) and other.device == self.device

    def __repr__(self) -> str:
        return f"TreeScheduler(capacity={self.capacity}, device='{self.device}')"


def make_scheduler(gpu: bool = False, device=None,
                   capacity: int = DEFAULT_CAPACITY) -> Scheduler:
    """Sequential host scheduler, or a tree scheduler when gpu=True."""
    if gpu:
        return TreeScheduler(capacity=capacity, device=device)
    if device is not None and torch.device(device).type != 'cpu':
        raise ConfigurationError(
            f"device='{device}' given with gpu=False; host execution runs on the CPU"
        )
    return SequentialScheduler()
