# nqs_distance/operators/ising.py
#
# 1D Transverse Field Ising Model (TFIM) as an operator.
#
# H = -J * sum_i(sigma_i^z * sigma_{i+1}^z) - Gamma * sum_i(sigma_i^x)
#
# Two competing terms:
#   - J term (diagonal): neighboring spins want to align (ferromagnetic)
#   - Gamma term (off-diagonal): transverse field flips spins into superpositions
#
# Here H is not minimized but applied: it is the standard example of a
# non-unitary operator for the distance estimator (e.g. one step
# (1 - tau * H) of imaginary-time evolution is built from it).

from .pauli import PauliOperator


class TransverseFieldIsing(PauliOperator):
    """
    1D Transverse Field Ising Model with periodic boundary conditions.

    H = -J * sum_i (sigma_i^z * sigma_{i+1}^z) - Gamma * sum_i (sigma_i^x)
    """

    def __init__(self, n_spins: int, J: float = 1.0, gamma: float = 1.0):
        """
        Args:
            n_spins: Number of spins in the chain.
            J:       Ferromagnetic coupling strength (J > 0).
            gamma:   Transverse field strength. Phase transition at gamma/J = 1.0.
        """
        self.n_spins = n_spins
        self.J = J
        self.gamma = gamma

        terms = []
        for i in range(n_spins):
            j = (i + 1) % n_spins
            if j != i:
                terms.append((-J, {i: 'z', j: 'z'}))
            else:
                # A single periodic spin couples to itself: sigma^z sigma^z = 1
                terms.append((-J, {}))
        for i in range(n_spins):
            terms.append((-gamma, {i: 'x'}))

        super().__init__(terms)

    def __repr__(self) -> str:
        return f"TransverseFieldIsing(n_spins={self.n_spins}, J={self.J}, gamma={self.gamma})"
