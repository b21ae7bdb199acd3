#!/usr/bin/env python3
# scripts/run_distance.py
#
# ============================================================
# CLI ENTRY POINT: Evaluate a Hilbert-space distance from a YAML config
# ============================================================
#
# USAGE:
#   python scripts/run_distance.py configs/distance_small.yaml
#   python scripts/run_distance.py configs/distance_ising.yaml
#
# WHAT THIS SCRIPT DOES:
#   1. Loads the YAML config (wavefunctions, operator, ensemble, device)
#   2. Builds psi, psi', the operator and the configuration ensemble
#   3. Evaluates the distance D(O psi, psi') and its gradient
#   4. Scans D along the negative gradient direction of psi'
#   5. Saves the scan history, a profile plot and both parameter sets
#
# The scan is a diagnostic of the gradient, not an optimizer: D should drop
# for small steps along -grad D.
#
# ============================================================

import argparse
import sys
import os
import numpy as np

# Add project root to path so we can import nqs_distance/ regardless of where
# the script is called from
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from nqs_distance import Psi, HilbertSpaceDistance, ExactSummation, MonteCarloLoop
from nqs_distance.config import load_config
from nqs_distance.operators import PauliOperator, TransverseFieldIsing
from nqs_distance.utils import (
    Checkpointer, DistanceLogger, make_progress_bar, plot_distance_profile,
)


# ============================================================
# SECTION: Object Builders (Config → Python Objects)
# ============================================================

def build_psi(cfg: dict, section: str) -> Psi:
    """Construct a wavefunction from the 'psi' or 'psi_prime' section."""
    s = cfg['system']
    p = cfg[section]
    ex = cfg.get('execution', {})
    psi = Psi(
        n_spins     = s['n_spins'],
        n_hidden    = p.get('n_hidden', s['n_hidden']),
        seed        = p.get('seed', 0),
        noise       = p.get('noise', 1e-4),
        prefactor   = p.get('prefactor', 1.0),
        free_quaxis = p.get('free_quaxis', False),
        gpu         = ex.get('gpu', False),
        device      = ex.get('device', None),
    )
    if p.get('checkpoint'):
        psi.parameters = np.load(p['checkpoint'])
    return psi


def build_operator(cfg: dict):
    """Construct the operator from the 'operator' section."""
    o = cfg['operator']
    n = cfg['system']['n_spins']
    if o['type'] == 'identity':
        return PauliOperator.identity()
    elif o['type'] == 'pauli':
        terms = [(complex(c), string) for c, string in o['terms']]
        return PauliOperator(terms)
    elif o['type'] == 'ising':
        return TransverseFieldIsing(n_spins=n, J=o.get('J', 1.0), gamma=o.get('gamma', 1.0))
    else:
        raise ValueError(
            f"Unknown operator '{o['type']}'. "
            f"Choose 'identity', 'pauli', or 'ising'."
        )


def build_ensemble(cfg: dict):
    """Construct the configuration ensemble from the 'ensemble' section."""
    e = cfg['ensemble']
    n = cfg['system']['n_spins']
    if e['type'] == 'exact':
        return ExactSummation(n_spins=n)
    elif e['type'] == 'monte_carlo':
        return MonteCarloLoop(
            n_spins    = n,
            n_samples  = e.get('n_samples', 1000),
            n_chains   = e.get('n_chains', 16),
            sweep_size = e.get('sweep_size', None),
            n_burn     = e.get('n_burn', 100),
            seed       = e.get('seed', 42),
        )
    else:
        raise ValueError(
            f"Unknown ensemble '{e['type']}'. Choose 'exact' or 'monte_carlo'."
        )


# ============================================================
# SECTION: Experiment Summary Printer
# ============================================================

def print_experiment_summary(cfg: dict, psi: Psi, psi_prime: Psi) -> None:
    """Print a human-readable summary of the evaluation."""
    s = cfg['system']
    o = cfg['operator']
    e = cfg['ensemble']

    print("=" * 62)
    print("  Neural Quantum States: Hilbert Space Distance")
    print("=" * 62)
    print(f"  System:      N = {s['n_spins']} spins")
    print(f"  psi:         {psi}")
    print(f"  psi':        {psi_prime}")
    print(f"  Operator:    {o['type'].upper()}  |  unitary = {o.get('is_unitary', False)}")
    print(f"  Ensemble:    {e['type'].upper()}")
    print(f"  Output:      {cfg.get('output', {}).get('results_dir', 'None')}")
    print("=" * 62)
    print()


# ============================================================
# SECTION: Main Entry Point
# ============================================================

def main():
    parser = argparse.ArgumentParser(
        description='Evaluate the Hilbert-space distance from a YAML config file.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/run_distance.py configs/distance_small.yaml
  python scripts/run_distance.py configs/distance_ising.yaml
        """
    )
    parser.add_argument(
        'config',
        help='Path to a YAML config file (e.g. configs/distance_small.yaml)'
    )
    args = parser.parse_args()

    # ---- Load config ----------------------------------------------------------
    cfg = load_config(args.config)
    out = cfg.get('output', {})
    results_dir = out.get('results_dir', 'results/default/')

    # ---- Build all objects ----------------------------------------------------
    psi        = build_psi(cfg, 'psi')
    psi_prime  = build_psi(cfg, 'psi_prime')
    operator   = build_operator(cfg)
    is_unitary = cfg['operator'].get('is_unitary', False)
    ensemble   = build_ensemble(cfg)
    ex         = cfg.get('execution', {})
    hsd = HilbertSpaceDistance(
        n_spins    = psi.n_spins,
        num_params = psi_prime.num_active_params,
        gpu        = ex.get('gpu', False),
        device     = ex.get('device', None),
    )

    print_experiment_summary(cfg, psi, psi_prime)

    # ---- Distance and gradient ------------------------------------------------
    result = hsd.evaluate(psi, psi_prime, operator, is_unitary, ensemble)
    grad_norm = float(np.linalg.norm(result.gradient))
    print(f"  D(O psi, psi')          = {result.distance:.6e}")
    print(f"  ||grad D||              = {grad_norm:.6e}")
    print(f"  <omega>                 = {result.omega_avg:.6f}")
    print(f"  <probability ratio>     = {result.probability_ratio_avg:.6f}")
    print(f"  log ratio shift         = {result.log_ratio_shift:.6f}")
    print(f"  <next state norm>       = {result.next_state_norm_avg:.6f}")
    if psi_prime.free_quaxis:
        print(f"  sum sin(alpha)          = {result.sin_sum_alpha:.6f}")
        print(f"  sum cos(alpha)          = {result.cos_sum_alpha:.6f}")
    print()

    # ---- Scan along -grad D ---------------------------------------------------
    scan = cfg.get('scan', {})
    n_points = scan.get('n_points', 21)
    max_step = scan.get('max_step', 0.5)

    logger = DistanceLogger()
    start = psi_prime.parameters
    direction = np.zeros(psi_prime.num_params, dtype=np.complex128)
    if grad_norm > 0:
        direction[:psi_prime.num_active_params] = -result.gradient / grad_norm

    moved = psi_prime.copy()
    steps = np.linspace(0.0, max_step, n_points)
    for k, t in enumerate(make_progress_bar(steps, desc="Distance scan")):
        moved.parameters = start + t * direction
        grad, distance = hsd.gradient(psi, moved, operator, is_unitary, ensemble)
        logger.record(step=k, distance=distance,
                      grad_norm=float(np.linalg.norm(grad)), shift=float(t))

    logger.summary(last_n=5)

    # ---- Save ------------------------------------------------------------------
    os.makedirs(results_dir, exist_ok=True)
    history_path = os.path.join(results_dir, 'distance_scan.npz')
    logger.save(history_path)
    print(f"\n  History saved:  {history_path}")

    checkpointer = Checkpointer(save_dir=results_dir)
    checkpointer.save(psi, tag='psi')
    checkpointer.save(psi_prime, tag='psi_prime')

    plot_distance_profile(
        history   = logger.history,
        save_path = os.path.join(results_dir, 'distance_profile.png'),
    )

    print("\nDone.")


if __name__ == '__main__':
    main()
