"""Dense statevector reference used by the tests (small qubit counts only).

Basis index convention: bit q of the index is qubit q.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from pauliprop import CliffordGate, PauliNoise, PauliRotation, PauliString, PauliSum

# ── Numpy gate matrices ───────────────────────────────────────────────────────

_I2 = np.eye(2, dtype=complex)
_X = np.array([[0, 1], [1, 0]], dtype=complex)
_Y = np.array([[0, -1j], [1j, 0]], dtype=complex)
_Z = np.diag([1.0, -1.0]).astype(complex)
_H = np.array([[1, 1], [1, -1]], dtype=complex) / np.sqrt(2)
_S = np.diag([1.0, 1j]).astype(complex)
_SX = 0.5 * np.array([[1 + 1j, 1 - 1j], [1 - 1j, 1 + 1j]], dtype=complex)

PAULI_MATRICES = {"I": _I2, "X": _X, "Y": _Y, "Z": _Z}


def _two_qubit_perm(fn) -> np.ndarray:
    # Local index l = b0 + 2 * b1, b0 being the first listed qubit.
    m = np.zeros((4, 4), dtype=complex)
    for l in range(4):
        b0, b1 = l & 1, l >> 1
        o0, o1 = fn(b0, b1)
        m[o0 | (o1 << 1), l] = 1.0
    return m


LOCAL_CLIFFORDS = {
    "H": _H,
    "S": _S,
    "SDG": _S.conj().T,
    "SX": _SX,
    "X": _X,
    "Y": _Y,
    "Z": _Z,
    "CNOT": _two_qubit_perm(lambda b0, b1: (b0, b1 ^ b0)),
    "CZ": np.diag([1.0, 1.0, 1.0, -1.0]).astype(complex),
    "SWAP": _two_qubit_perm(lambda b0, b1: (b1, b0)),
}


def embed(matrix: np.ndarray, qubits: Sequence[int], n_qubits: int) -> np.ndarray:
    """Lift a local operator on `qubits` to the full register."""
    dim = 1 << n_qubits
    qmask = 0
    for q in qubits:
        qmask |= 1 << q

    def local(i: int) -> int:
        return sum(((i >> q) & 1) << k for k, q in enumerate(qubits))

    full = np.zeros((dim, dim), dtype=complex)
    for i in range(dim):
        for j in range(dim):
            if (i & ~qmask) == (j & ~qmask):
                full[i, j] = matrix[local(i), local(j)]
    return full


def pauli_matrix(pstr: PauliString) -> np.ndarray:
    n = pstr.n_qubits
    out = np.eye(1 << n, dtype=complex)
    for q in range(n):
        sym = pstr.pauli_at(q)
        if sym != "I":
            out = out @ embed(PAULI_MATRICES[sym], [q], n)
    return out


def observable_matrix(psum: PauliSum) -> np.ndarray:
    out = np.zeros((1 << psum.n_qubits, 1 << psum.n_qubits), dtype=complex)
    for pstr, coeff in psum.terms.items():
        out = out + float(coeff) * pauli_matrix(pstr)
    return out


def gate_unitary(gate, n_qubits: int, thetas=None) -> np.ndarray:
    if isinstance(gate, CliffordGate):
        return embed(LOCAL_CLIFFORDS[gate.symbol], gate.qubits, n_qubits)
    if isinstance(gate, PauliRotation):
        theta = float(gate.theta(thetas))
        p = pauli_matrix(gate.to_pauli_string(n_qubits))
        return np.cos(theta / 2) * np.eye(1 << n_qubits) - 1j * np.sin(theta / 2) * p
    raise TypeError(f"No dense unitary for {gate!r}")


def dense_expectation(circuit, observable: PauliSum, thetas=None, reference_bits: int = 0) -> float:
    """<b|U† O U|b> for a computational basis state |b>."""
    if any(isinstance(g, PauliNoise) for g in circuit):
        raise TypeError("Noise channels are not supported by the dense reference")
    n = observable.n_qubits
    state = np.zeros(1 << n, dtype=complex)
    state[reference_bits] = 1.0
    for gate in circuit:
        state = gate_unitary(gate, n, thetas) @ state
    return float(np.real(np.vdot(state, observable_matrix(observable) @ state)))


def random_circuit(n_qubits: int, n_layers: int, seed: int = 0):
    """Layered circuit mixing Cliffords with parametrized and frozen rotations."""
    rng = np.random.default_rng(seed)
    circuit = []
    param_idx = 0
    singles = ["H", "S", "SDG", "SX", "X", "Y", "Z"]
    pairs = ["CNOT", "CZ", "SWAP"]
    for _ in range(n_layers):
        for q in range(n_qubits):
            circuit.append(CliffordGate(str(rng.choice(singles)), [q]))
            circuit.append(PauliRotation(str(rng.choice(["X", "Y", "Z"])), [q], param_idx=param_idx))
            param_idx += 1
        for q in range(n_qubits - 1):
            circuit.append(CliffordGate(str(rng.choice(pairs)), [q, q + 1]))
            circuit.append(PauliRotation("ZZ", [q, q + 1], param_idx=param_idx))
            param_idx += 1
        circuit.append(PauliRotation("XY", [0, n_qubits - 1], angle=float(rng.uniform(-np.pi, np.pi))))
    thetas = rng.uniform(-np.pi, np.pi, size=param_idx)
    return circuit, thetas
