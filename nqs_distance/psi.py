# nqs_distance/psi.py
#
# Psi: the wavefunction container.
#
# Owns the parameter buffers of one RBM wavefunction, places them on the host
# (numpy) or on a device (torch) once at construction, and evaluates the
# kernel through the matching scheduler. The placement never changes
# afterwards: a host Psi cannot silently become a device Psi or vice versa.
#
#   psi(s)         = exp(log(prefactor) + log_psi(s))
#   probability(s) = exp(2 * (log(prefactor) + Re log_psi(s)))
#
# The flat parameter vector is the exchange format with the outside world
# (optimizers, checkpoints, the distance gradient):
#
#   fixed bias:  [a | b | W.flatten() | n]
#   free axis:   [alpha | beta | b | W.flatten() | n]
#
# The first num_active_params entries are variational; n is carried along
# but never differentiated.

import copy
import warnings

import numpy as np

from .ansatz import RBMKernel, FreeAxisKernel
from .config import MAX_SPINS, MAX_HIDDEN_SPINS, DEFAULT_CAPACITY, VECTOR_WARN_SPINS
from .errors import ConfigurationError
from .schedulers import make_scheduler
from .spins import all_configurations, as_spin_array


def _check_sizes(n_spins: int, n_hidden: int) -> None:
    if not 0 < n_spins <= MAX_SPINS:
        raise ConfigurationError(
            f"n_spins must be in [1, {MAX_SPINS}], got {n_spins}"
        )
    if not 0 < n_hidden <= MAX_HIDDEN_SPINS:
        raise ConfigurationError(
            f"n_hidden must be in [1, {MAX_HIDDEN_SPINS}], got {n_hidden}"
        )


class Psi:
    """
    RBM wavefunction with host or device resident parameters.

    Random construction draws small complex Gaussian parameters around the
    identity-like state (all amplitudes nearly equal). Use Psi.from_arrays
    to start from explicit parameters.
    """

    def __init__(self, n_spins: int, n_hidden: int, seed: int = 0,
                 noise: float = 1e-4, prefactor: float = 1.0,
                 gpu: bool = False, device=None, free_quaxis: bool = False,
                 capacity: int = DEFAULT_CAPACITY):
        """
        Args:
            n_spins:     Number of visible units N (physical spins).
            n_hidden:    Number of hidden units M.
            seed:        Seed of the random initialization.
            noise:       Scale of the random initialization.
            prefactor:   Global real normalization factor (> 0).
            gpu:         Evaluate on a torch device instead of numpy.
            device:      torch device for gpu=True (default 'cuda').
            free_quaxis: Use a free quantum axis per spin instead of a
                         visible bias.
            capacity:    Block capacity of the tree scheduler.
        """
        _check_sizes(n_spins, n_hidden)
        rng = np.random.default_rng(seed)

        def complex_noise(*shape):
            return noise * (rng.normal(size=shape) + 1j * rng.normal(size=shape))

        blocks = {}
        if free_quaxis:
            blocks['alpha'] = np.pi / 2 + noise * rng.normal(size=n_spins)
            blocks['beta'] = noise * rng.normal(size=n_spins)
        else:
            blocks['a'] = complex_noise(n_spins)
        blocks['b'] = complex_noise(n_hidden)
        blocks['W'] = complex_noise(n_spins, n_hidden)
        blocks['n'] = np.ones(n_hidden, dtype=np.complex128)

        self._setup(blocks, prefactor, gpu, device, free_quaxis, capacity)

    @classmethod
    def from_arrays(cls, b, W, a=None, n=None, alpha=None, beta=None,
                    prefactor: float = 1.0, gpu: bool = False, device=None,
                    capacity: int = DEFAULT_CAPACITY) -> 'Psi':
        """
        Build a Psi from explicit parameter arrays.

        Pass `a` for the fixed-bias RBM, or `alpha` and `beta` (real, shape
        (N,)) for the free-axis variant. A missing `a` is zero, a missing `n`
        is one.
        """
        W = np.asarray(W, dtype=np.complex128)
        if W.ndim != 2:
            raise ConfigurationError(f"W must be 2D (N, M), got shape {W.shape}")
        n_spins, n_hidden = W.shape
        _check_sizes(n_spins, n_hidden)

        free_quaxis = alpha is not None or beta is not None
        if free_quaxis and (alpha is None or beta is None):
            raise ConfigurationError("free axis needs both alpha and beta")
        if free_quaxis and a is not None:
            raise ConfigurationError("visible bias `a` is not used with a free axis")

        blocks = {}
        if free_quaxis:
            blocks['alpha'] = _real_block('alpha', alpha, n_spins)
            blocks['beta'] = _real_block('beta', beta, n_spins)
        else:
            blocks['a'] = _complex_block('a', np.zeros(n_spins) if a is None else a, n_spins)
        blocks['b'] = _complex_block('b', b, n_hidden)
        blocks['W'] = W
        blocks['n'] = _complex_block('n', np.ones(n_hidden) if n is None else n, n_hidden)

        psi = cls.__new__(cls)
        psi._setup(blocks, prefactor, gpu, device, free_quaxis, capacity)
        return psi

    def _setup(self, blocks: dict, prefactor: float, gpu: bool, device,
               free_quaxis: bool, capacity: int) -> None:
        if not prefactor > 0:
            raise ConfigurationError(f"prefactor must be positive, got {prefactor}")

        self.N, self.M = blocks['W'].shape
        self.prefactor = float(prefactor)
        self.free_quaxis = bool(free_quaxis)
        self.capacity = int(capacity)
        self.scheduler = make_scheduler(gpu, device, capacity)
        self.scheduler.check_block(self.N + self.M)

        s = self.scheduler
        log_prefactor = float(np.log(self.prefactor))
        b, W, n = s.asarray(blocks['b']), s.asarray(blocks['W']), s.asarray(blocks['n'])
        if self.free_quaxis:
            self.kernel = FreeAxisKernel(
                s.asarray(blocks['alpha'], np.float64),
                s.asarray(blocks['beta'], np.float64),
                b, W, n, log_prefactor, s.xp,
            )
        else:
            self.kernel = RBMKernel(s.asarray(blocks['a']), b, W, n, log_prefactor, s.xp)

    # ========================================================
    # Sizes and placement
    # ========================================================

    @property
    def n_spins(self) -> int:
        return self.N

    @property
    def n_hidden(self) -> int:
        return self.M

    @property
    def num_params(self) -> int:
        return self.kernel.num_params

    @property
    def num_active_params(self) -> int:
        return self.kernel.num_active_params

    @property
    def gpu(self) -> bool:
        return self.scheduler.gpu

    def on_gpu(self) -> bool:
        return self.scheduler.gpu

    @property
    def device(self):
        return self.scheduler.device

    @property
    def log_prefactor(self) -> float:
        return self.kernel.log_prefactor

    # ========================================================
    # Parameters
    # ========================================================

    @property
    def parameters(self) -> np.ndarray:
        """All parameters as one flat complex vector, in block order."""
        return np.concatenate([
            self.scheduler.to_numpy(block).astype(np.complex128).ravel()
            for _, block in self.kernel.param_blocks()
        ])

    @parameters.setter
    def parameters(self, values) -> None:
        values = np.asarray(values, dtype=np.complex128).ravel()
        if len(values) != self.num_params:
            raise ConfigurationError(
                f"Expected {self.num_params} parameters, got {len(values)}"
            )

        offset = 0
        updates = {}
        for name, block in self.kernel.param_blocks():
            shape = tuple(block.shape)
            size = int(np.prod(shape))
            chunk = values[offset:offset + size].reshape(shape)
            offset += size
            if name in ('alpha', 'beta'):
                if not np.allclose(chunk.imag, 0.0):
                    raise ConfigurationError(f"free-axis block '{name}' must be real")
                updates[name] = self.scheduler.asarray(chunk.real, np.float64)
            else:
                updates[name] = self.scheduler.asarray(chunk)

        for name, array in updates.items():
            setattr(self.kernel, name, array)

    def get_params(self) -> np.ndarray:
        return self.parameters

    def set_params(self, values) -> None:
        self.parameters = values

    def update_parameters(self, delta) -> None:
        """Apply a parameter update: theta <- theta + delta (flat, full length)."""
        delta = np.asarray(delta, dtype=np.complex128).ravel()
        if len(delta) != self.num_params:
            raise ConfigurationError(
                f"Expected {self.num_params} parameters, got {len(delta)}"
            )
        self.parameters = self.parameters + delta

    # ========================================================
    # Backend evaluation (arrays stay in the scheduler's namespace)
    # ========================================================

    def _backend(self, spins):
        """+/-1 configurations as complex arrays of the scheduler."""
        values = as_spin_array(spins)
        if values.shape[-1] != self.N:
            raise ConfigurationError(
                f"Configuration has {values.shape[-1]} spins, wavefunction has {self.N}"
            )
        return self.scheduler.asarray(values)

    def _log_psi(self, x, angles=None):
        return self.kernel.log_amplitude(x, self.scheduler.reduce, angles)

    def _O_k(self, x, include_visible: bool = True):
        tanh_angles = self.kernel.xp.tanh(self.kernel.angles(x))
        return self.kernel.derivative_vector(x, tanh_angles, include_visible)

    # ========================================================
    # Batched evaluation (numpy in, numpy out)
    # ========================================================

    def angles(self, spins) -> np.ndarray:
        """Hidden-unit angles, shape (..., M)."""
        return self.scheduler.to_numpy(self.kernel.angles(self._backend(spins)))

    def flip_spin_angle_update(self, angles, position: int, new_spins) -> np.ndarray:
        """Angles of new_spins from the angles before flipping `position`."""
        s = self.scheduler
        updated = self.kernel.flip_spin_angle_update(
            s.asarray(angles), position, self._backend(new_spins)
        )
        return s.to_numpy(updated)

    def log_psi(self, spins) -> np.ndarray:
        """log psi(s) without prefactor, shape (...,)."""
        return self.scheduler.to_numpy(self._log_psi(self._backend(spins)))

    def log_psi_from_angles(self, spins, angles) -> np.ndarray:
        """log psi(s) from precomputed angles (e.g. after a flip update)."""
        x = self._backend(spins)
        return self.scheduler.to_numpy(self._log_psi(x, self.scheduler.asarray(angles)))

    def probability(self, spins) -> np.ndarray:
        """Unnormalized |psi(s)|^2 including the prefactor."""
        return np.exp(2.0 * (self.log_prefactor + self.log_psi(spins).real))

    def O_k_matrix(self, spins) -> np.ndarray:
        """Log-derivatives for a batch, shape (..., num_active_params)."""
        return self.scheduler.to_numpy(self._O_k(self._backend(spins)))

    # ========================================================
    # Single configuration
    # ========================================================

    def log_psi_s(self, spins) -> complex:
        return complex(self.log_psi(spins))

    def psi_s(self, spins) -> complex:
        return complex(np.exp(self.log_prefactor + self.log_psi_s(spins)))

    def probability_s(self, spins) -> float:
        return float(np.exp(2.0 * (self.log_prefactor + self.log_psi_s(spins).real)))

    def O_k_vector(self, spins) -> np.ndarray:
        """O_k for every active parameter at one configuration."""
        return self.O_k_matrix(as_spin_array(spins).reshape(self.N))

    # ========================================================
    # Whole Hilbert space
    # ========================================================

    def as_vector(self) -> np.ndarray:
        """
        Amplitudes psi(s) of all 2^N configurations in canonical order.

        A debugging and testing aid: memory and time grow as 2^N.
        """
        if self.N > VECTOR_WARN_SPINS:
            warnings.warn(
                f"as_vector for N={self.N} spins materializes {2 ** self.N} amplitudes.",
                UserWarning, stacklevel=2
            )
        configurations = all_configurations(self.N)
        return np.exp(self.log_prefactor + self.log_psi(configurations))

    def norm(self, ensemble) -> float:
        """
        sum_s weight(s) * probability(s) over the ensemble's enumeration.

        With ExactSummation this is the exact squared norm <psi|psi>.
        """
        spins, weights = ensemble.enumerate()
        return float(np.sum(weights * self.probability(spins)))

    # ========================================================
    # Copies
    # ========================================================

    def copy(self) -> 'Psi':
        """Independent Psi with the same sizes, prefactor, variant and placement."""
        blocks = {}
        for name, block in self.kernel.param_blocks():
            blocks[name] = np.array(self.scheduler.to_numpy(block), copy=True)

        other = Psi.__new__(Psi)
        device = self.device if self.gpu else None
        other._setup(blocks, self.prefactor, self.gpu, device,
                     self.free_quaxis, self.capacity)
        return other

    def __copy__(self) -> 'Psi':
        return self.copy()

    def __deepcopy__(self, memo) -> 'Psi':
        return self.copy()

    def __repr__(self) -> str:
        variant = "free_quaxis" if self.free_quaxis else "rbm"
        return (
            f"Psi(N={self.N}, M={self.M}, variant={variant}, "
            f"n_params={self.num_params}, gpu={self.gpu})"
        )


def _complex_block(name: str, values, size: int) -> np.ndarray:
    values = np.asarray(values, dtype=np.complex128)
    if values.shape != (size,):
        raise ConfigurationError(f"{name} must have shape ({size},), got {values.shape}")
    return values


def _real_block(name: str, values, size: int) -> np.ndarray:
    values = np.asarray(values)
    if np.iscomplexobj(values):
        if not np.allclose(values.imag, 0.0):
            raise ConfigurationError(f"{name} must be real")
        values = values.real
    values = values.astype(np.float64)
    if values.shape != (size,):
        raise ConfigurationError(f"{name} must have shape ({size},), got {values.shape}")
    return values
