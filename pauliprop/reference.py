"""Exact reference expectation values via PennyLane (small circuits only).

Used to validate truncated propagation. PennyLane is an optional dependency
(`pip install pauliprop[reference]`).
"""

from __future__ import annotations

from typing import Any, List, Sequence

import numpy as np

torch: Any
try:
    import torch as _torch

    torch = _torch
    _TORCH_AVAILABLE = True
except Exception:  # pragma: no cover - optional dependency
    torch = None
    _TORCH_AVAILABLE = False

from .gates import CliffordGate, DephasingNoise, DepolarizingNoise, Gate, PauliRotation, count_parameters
from .paulisum import PauliSum
from .errors import DimensionMismatchError


def _require_pennylane():
    try:
        import pennylane as qml  # type: ignore
    except Exception as e:  # pragma: no cover - optional dependency
        raise RuntimeError("PennyLane is required for this API path.") from e
    return qml


def _thetas_to_numpy(thetas: Any) -> np.ndarray:
    if thetas is None:
        return np.zeros((0,), dtype=np.float64)
    if _TORCH_AVAILABLE and isinstance(thetas, torch.Tensor):
        arr = thetas.detach().cpu().numpy()
    else:
        arr = np.asarray(thetas)
    return np.asarray(arr, dtype=np.float64).reshape(-1)


def _validate_small_n(n_qubits: int, max_qubits: int) -> None:
    n = int(n_qubits)
    if n < 1:
        raise ValueError("n_qubits must be >= 1")
    if n > int(max_qubits):
        raise ValueError(
            f"PennyLane conversion path is limited to <= {int(max_qubits)} qubits; got n_qubits={n}"
        )


def _apply_circuit_pennylane(circuit: Sequence[Gate], thetas_np: np.ndarray, qml: Any) -> None:
    for gate in circuit:
        if isinstance(gate, CliffordGate):
            symbol = gate.symbol
            if symbol == "H":
                qml.Hadamard(wires=gate.qubits[0])
            elif symbol == "S":
                qml.S(wires=gate.qubits[0])
            elif symbol == "SDG":
                qml.adjoint(qml.S)(wires=gate.qubits[0])
            elif symbol == "X":
                qml.PauliX(wires=gate.qubits[0])
            elif symbol == "Y":
                qml.PauliY(wires=gate.qubits[0])
            elif symbol == "Z":
                qml.PauliZ(wires=gate.qubits[0])
            elif symbol == "SX":
                qml.SX(wires=gate.qubits[0])
            elif symbol == "CNOT":
                qml.CNOT(wires=gate.qubits)
            elif symbol == "CZ":
                qml.CZ(wires=gate.qubits)
            elif symbol == "SWAP":
                qml.SWAP(wires=gate.qubits)
            else:
                raise ValueError(f"Unsupported CliffordGate symbol for PennyLane conversion: {symbol}")
            continue

        if isinstance(gate, PauliRotation):
            if gate.is_parametrized:
                pidx = int(gate.param_idx)
                if pidx >= int(thetas_np.shape[0]):
                    raise ValueError(
                        f"Invalid param_idx={pidx} for theta length {int(thetas_np.shape[0])}"
                    )
                angle = float(thetas_np[pidx])
            else:
                angle = float(gate.angle)
            qml.PauliRot(angle, str(gate.pauli), wires=list(gate.qubits))
            continue

        # Pauli-transfer damping (1 - p) corresponds to these channel strengths.
        if isinstance(gate, DepolarizingNoise):
            qml.DepolarizingChannel(0.75 * gate.p, wires=gate.qubit)
            continue
        if isinstance(gate, DephasingNoise):
            qml.PhaseFlip(0.5 * gate.p, wires=gate.qubit)
            continue

        raise TypeError(f"Unsupported gate type for PennyLane conversion: {type(gate).__name__}")


def _qml_op_from_paulistring(pstr: Any, qml: Any):
    ops: List[Any] = []
    for q in range(int(pstr.n_qubits)):
        symbol = pstr.pauli_at(q)
        if symbol == "X":
            ops.append(qml.X(q))
        elif symbol == "Y":
            ops.append(qml.Y(q))
        elif symbol == "Z":
            ops.append(qml.Z(q))
    if len(ops) == 0:
        return qml.Identity(0)
    if len(ops) == 1:
        return ops[0]
    return qml.prod(*ops)


def _qml_obs_from_paulisum(obs: PauliSum, qml: Any):
    terms = list(obs.terms.items())
    if len(terms) == 0:
        raise ValueError("Observable has no terms")
    op_sum: Any = None
    for p, c in terms:
        term = float(c) * _qml_op_from_paulistring(p, qml)
        op_sum = term if op_sum is None else (op_sum + term)
    return op_sum


def pennylane_expvals_small(
    circuit: Sequence[Gate],
    observables: Sequence[PauliSum],
    thetas: Any = None,
    *,
    max_qubits: int = 20,
) -> np.ndarray:
    """Exact <0|U† O_j U|0> for each observable using PennyLane."""
    qml = _require_pennylane()
    if len(observables) == 0:
        raise ValueError("observables must be non-empty")
    n_qubits = int(observables[0].n_qubits)
    if any(int(obs.n_qubits) != n_qubits for obs in observables):
        raise DimensionMismatchError("All observables must have the same n_qubits")
    _validate_small_n(n_qubits, max_qubits)

    thetas_np = _thetas_to_numpy(thetas)
    if int(thetas_np.shape[0]) != count_parameters(circuit):
        raise DimensionMismatchError(
            f"Parameter vector has length {int(thetas_np.shape[0])} but the circuit declares "
            f"{count_parameters(circuit)} parameters"
        )

    noisy = any(isinstance(g, (DepolarizingNoise, DephasingNoise)) for g in circuit)
    dev = qml.device("default.mixed" if noisy else "default.qubit", wires=n_qubits)
    obs_ops = [_qml_obs_from_paulisum(obs, qml) for obs in observables]

    @qml.qnode(dev)
    def qnode(params):
        _apply_circuit_pennylane(circuit, params, qml)
        return [qml.expval(op) for op in obs_ops]

    return np.asarray(qnode(thetas_np), dtype=np.float64).reshape(-1)


def pennylane_expval_small(
    circuit: Sequence[Gate],
    observable: PauliSum,
    thetas: Any = None,
    *,
    max_qubits: int = 20,
) -> float:
    """Exact <0|U† O U|0> using PennyLane."""
    return float(pennylane_expvals_small(circuit, [observable], thetas, max_qubits=max_qubits)[0])


__all__ = [
    "pennylane_expvals_small",
    "pennylane_expval_small",
]
