# nqs_distance/utils.py
#
# Infrastructure utilities: history recording, parameter checkpoints,
# progress bars and plotting for the command-line scripts.
#
# None of this is used by the numerical core; scripts/run_distance.py wires
# it around the estimator.

import os

import numpy as np
import matplotlib.pyplot as plt
from tqdm import tqdm


# ============================================================
# Distance History
# ============================================================

class DistanceLogger:
    """
    Records distance evaluations one step at a time.

    Tracked quantities:
      - steps:      step index (or scan position)
      - distances:  Hilbert-space distance D
      - grad_norms: ||grad D||_2 (nan when the gradient was not requested)
      - shifts:     how far psi' was moved from its starting parameters

    Uses Python lists internally (O(1) append) and converts to numpy on demand.
    """

    def __init__(self):
        self.steps      = []
        self.distances  = []
        self.grad_norms = []
        self.shifts     = []

    def record(self, step: int, distance: float, grad_norm: float = np.nan,
               shift: float = 0.0) -> None:
        """Record one evaluation."""
        self.steps.append(step)
        self.distances.append(distance)
        self.grad_norms.append(grad_norm)
        self.shifts.append(shift)

    @property
    def history(self) -> dict:
        """All metrics as a dict of numpy arrays (ready for plotting)."""
        return {
            'steps':      np.array(self.steps),
            'distances':  np.array(self.distances),
            'grad_norms': np.array(self.grad_norms),
            'shifts':     np.array(self.shifts),
        }

    def save(self, path: str) -> None:
        """Save the history to a .npz file."""
        np.savez(path, **self.history)

    @classmethod
    def load(cls, path: str) -> 'DistanceLogger':
        """Load a history saved with save()."""
        logger = cls()
        data = np.load(path)
        logger.steps      = list(data['steps'])
        logger.distances  = list(data['distances'])
        logger.grad_norms = list(data['grad_norms'])
        logger.shifts     = list(data['shifts'])
        return logger

    def summary(self, last_n: int = 10) -> None:
        """Print the last n recorded evaluations."""
        if not self.distances:
            print("DistanceLogger: no data recorded yet.")
            return
        n = min(last_n, len(self.distances))
        print(f"Distance summary (last {n} steps):")
        for i in range(-n, 0):
            print(
                f"  Step {self.steps[i]:4d} | "
                f"shift = {self.shifts[i]:+.4f} | "
                f"D = {self.distances[i]:.6e} | "
                f"|grad| = {self.grad_norms[i]:.2e}"
            )


# ============================================================
# Parameter Checkpointing
# ============================================================

class Checkpointer:
    """
    Saves and loads wavefunction parameters as .npy files.

    The file holds the flat complex parameter vector of Psi.parameters, so a
    checkpoint can only be loaded into a Psi of the same N, M and variant.
    """

    def __init__(self, save_dir: str):
        self.save_dir = save_dir
        os.makedirs(save_dir, exist_ok=True)

    def save(self, psi, tag: str) -> str:
        """Save psi's parameters as checkpoint_<tag>.npy and return the path."""
        path = os.path.join(self.save_dir, f"checkpoint_{tag}.npy")
        np.save(path, psi.parameters)
        return path

    def load(self, psi, path: str) -> None:
        """Load parameters from a checkpoint into psi."""
        psi.parameters = np.load(path)

    def latest(self) -> str | None:
        """Return path of the most recent checkpoint, or None."""
        files = [
            os.path.join(self.save_dir, f)
            for f in os.listdir(self.save_dir)
            if f.startswith("checkpoint_") and f.endswith(".npy")
        ]
        if not files:
            return None
        return max(files, key=os.path.getmtime)


# ============================================================
# Plotting
# ============================================================

def plot_distance_profile(history: dict, save_path: str = None) -> None:
    """
    Plot the distance and gradient norm against the scan shift.

    Left panel: D along the scan, with its minimum marked.
    Right panel: ||grad D|| along the scan (log scale).

    Args:
        history:   Dict from DistanceLogger.history.
        save_path: File path to save the figure. None = plt.show().
    """
    shifts    = history['shifts']
    distances = history['distances']

    fig, axes = plt.subplots(1, 2, figsize=(12, 4))

    ax = axes[0]
    ax.plot(shifts, distances, 'o-', color='royalblue', markersize=4, linewidth=1.5,
            label='D(psi\', O psi)')
    if len(distances) and np.any(np.isfinite(distances)):
        best = int(np.nanargmin(distances))
        ax.axvline(shifts[best], color='crimson', linestyle='--', alpha=0.8,
                   label=f'min D = {distances[best]:.3e}')
    ax.set_xlabel('Step along -grad D')
    ax.set_ylabel('Distance')
    ax.set_title('Hilbert Space Distance')
    ax.legend()
    ax.grid(True, alpha=0.3)

    ax = axes[1]
    grad_norms = history['grad_norms']
    if np.any(np.isfinite(grad_norms)):
        ax.semilogy(shifts, grad_norms, 'o-', color='seagreen', markersize=4,
                    linewidth=1.5)
    ax.set_xlabel('Step along -grad D')
    ax.set_ylabel('||grad D||')
    ax.set_title('Gradient Norm')
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"Saved plot: {save_path}")
    else:
        plt.show()

    plt.close(fig)


# ============================================================
# Progress Bar
# ============================================================

def make_progress_bar(iterable, desc: str = "", total: int = None, **kwargs):
    """Wrap an iterable with a tqdm progress bar."""
    return tqdm(iterable, desc=desc, total=total, **kwargs)
