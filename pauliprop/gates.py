"""
Gate descriptors consumed by the propagation engine.

Circuits are plain ordered lists of gates, applied in Schrödinger order. The
engine walks them backwards and maps each Pauli string P to U† P U.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .errors import DimensionMismatchError
from .paulis import (
    PAULI_SYMBOLS,
    PauliString,
    get_local_pauli,
    identity,
    make_pauli_string,
    pauli_product,
)


# ============================================================================
# 1. Gates (structure only)
# ============================================================================

@dataclass
class Gate:
    """Base gate class"""

    @property
    def support(self) -> List[int]:
        return []


@dataclass
class CliffordGate(Gate):
    """
    Clifford gate (CNOT, H, S, etc.)
    - symbol: gate name, see `clifford_symbols()`
    - qubits: list of qubit indices (control first for CNOT)
    """
    symbol: str
    qubits: List[int]

    def __post_init__(self):
        self.symbol = str(self.symbol).upper()
        self.qubits = [int(q) for q in self.qubits]

    @property
    def support(self) -> List[int]:
        return list(self.qubits)

    def __repr__(self):
        return f"{self.symbol}{self.qubits}"


@dataclass
class PauliRotation(Gate):
    """
    Pauli rotation gate: exp(-i θ/2 P)
    - pauli: Pauli string generator, one symbol per qubit ('X', 'ZZ', 'YZ', ...)
    - qubits: qubit indices
    - param_idx: index into the parameter vector; -1 for a frozen rotation
    - angle: fixed angle used when param_idx is -1
    """
    pauli: str
    qubits: List[int]
    param_idx: int = -1
    angle: Optional[float] = None

    def __post_init__(self):
        self.pauli = str(self.pauli).upper()
        self.qubits = [int(q) for q in self.qubits]
        if len(self.pauli) != len(self.qubits):
            raise ValueError(
                f"Rotation generator '{self.pauli}' does not match qubits {self.qubits}"
            )
        if any(p not in PAULI_SYMBOLS for p in self.pauli):
            raise ValueError(f"Unsupported Pauli char in rotation generator: {self.pauli}")
        if self.param_idx < 0 and self.angle is None:
            raise ValueError("PauliRotation needs a param_idx >= 0 or a fixed angle")

    @property
    def is_parametrized(self) -> bool:
        return self.param_idx >= 0

    @property
    def support(self) -> List[int]:
        return list(self.qubits)

    def theta(self, thetas) -> object:
        """Angle for this gate: thetas[param_idx], or the frozen angle."""
        if self.is_parametrized:
            return thetas[self.param_idx]
        return self.angle

    def to_pauli_string(self, n_qubits: int) -> PauliString:
        """Convert gate generator to PauliString"""
        return make_pauli_string(self.pauli, qubits=self.qubits, n_qubits=n_qubits)

    def __repr__(self):
        if self.is_parametrized:
            return f"R{self.pauli}{self.qubits}(θ[{self.param_idx}])"
        return f"R{self.pauli}{self.qubits}({self.angle:.4g})"


@dataclass
class PauliNoise(Gate):
    """
    Single-qubit Pauli noise channel with strength p.
    Sites holding one of `damped` are scaled by (1 - p); nothing branches.
    """
    qubit: int
    p: float

    damped = ("X", "Y", "Z")

    def __post_init__(self):
        self.qubit = int(self.qubit)
        self.p = float(self.p)
        if not (0.0 <= self.p <= 1.0):
            raise ValueError(f"Noise strength must lie in [0, 1], got {self.p}")

    @property
    def support(self) -> List[int]:
        return [self.qubit]

    def factor(self, symbol: str) -> float:
        return 1.0 - self.p if symbol in self.damped else 1.0

    def __repr__(self):
        return f"{type(self).__name__}[{self.qubit}](p={self.p:.4g})"


@dataclass(repr=False)
class DepolarizingNoise(PauliNoise):
    """Depolarizing channel: X, Y and Z are damped."""

    damped = ("X", "Y", "Z")


@dataclass(repr=False)
class DephasingNoise(PauliNoise):
    """Dephasing channel: X and Y are damped."""

    damped = ("X", "Y")


def t_gate(qubit: int) -> PauliRotation:
    """T gate as a frozen Z rotation (equal up to global phase)."""
    return PauliRotation("Z", [qubit], angle=np.pi / 4)


# ============================================================================
# 2. Clifford Gate Maps (Heisenberg picture lookup tables)
# ============================================================================

# Images U† G U of the local X/Z generators. Labels are in gate-qubit order,
# a leading '-' marks a negative sign.
CLIFFORD_IMAGES: Dict[str, Dict[str, str]] = {
    "H": {"X": "Z", "Z": "X"},
    "S": {"X": "-Y", "Z": "Z"},
    "SDG": {"X": "Y", "Z": "Z"},
    "SX": {"X": "X", "Z": "Y"},
    "X": {"X": "X", "Z": "-Z"},
    "Y": {"X": "-X", "Z": "-Z"},
    "Z": {"X": "-X", "Z": "Z"},
    "CNOT": {"XI": "XX", "IX": "IX", "ZI": "ZI", "IZ": "ZZ"},
    "CZ": {"XI": "XZ", "IX": "ZX", "ZI": "ZI", "IZ": "IZ"},
    "SWAP": {"XI": "IX", "IX": "XI", "ZI": "IZ", "IZ": "ZI"},
}

# (local x bits, local z bits) -> (new x bits, new z bits, sign)
CliffordTable = Dict[Tuple[int, int], Tuple[int, int, int]]


def _parse_signed_label(label: str, arity: int) -> Tuple[PauliString, int]:
    sign = -1 if label.startswith("-") else 1
    body = label.lstrip("+-")
    if len(body) != arity:
        raise ValueError(f"Image '{label}' must have exactly {arity} symbols")
    return make_pauli_string(body, n_qubits=arity), sign


def build_clifford_table(images: Mapping[str, str]) -> CliffordTable:
    """Expand generator images into a full lookup table with signs.

    A local Pauli with bits (x, z) equals i^{popcount(x & z)} Π_k X_k^{x_k} Z_k^{z_k},
    so its image is the same product of generator images.
    """
    keys = list(images.keys())
    if not keys:
        raise ValueError("Clifford images must not be empty")
    arity = len(keys[0])

    generators: Dict[Tuple[int, str], Tuple[PauliString, int]] = {}
    for k in range(arity):
        for sym in ("X", "Z"):
            key = "".join(sym if j == k else "I" for j in range(arity))
            if key not in images:
                raise ValueError(f"Missing image for generator {key}")
            img, sign = _parse_signed_label(images[key], arity)
            generators[(k, sym)] = (img, 0 if sign > 0 else 2)

    table: CliffordTable = {}
    for x in range(1 << arity):
        for z in range(1 << arity):
            acc = identity(arity)
            phase = bin(x & z).count('1')
            for k in range(arity):
                for sym, bits in (("X", x), ("Z", z)):
                    if (bits >> k) & 1:
                        img, img_phase = generators[(k, sym)]
                        acc, prod_phase = pauli_product(acc, img)
                        phase += prod_phase + img_phase
            phase %= 4
            if phase not in (0, 2):
                raise ValueError(f"Images do not define a Clifford map (non-Hermitian image of {x},{z})")
            table[(x, z)] = (acc.x_mask, acc.z_mask, 1 if phase == 0 else -1)

    outputs = {(nx, nz) for nx, nz, _ in table.values()}
    if len(outputs) != len(table):
        raise ValueError("Images do not define a Clifford map (not a bijection)")
    return table


_CLIFFORD_TABLES: Dict[str, CliffordTable] = {}
_CLIFFORD_ARITY: Dict[str, int] = {}


def register_clifford(symbol: str, images: Mapping[str, str]) -> None:
    """Register a Clifford gate by the Heisenberg images of its X/Z generators."""
    symbol = str(symbol).upper()
    table = build_clifford_table(images)
    _CLIFFORD_TABLES[symbol] = table
    _CLIFFORD_ARITY[symbol] = len(next(iter(images.keys())))


for _symbol, _images in CLIFFORD_IMAGES.items():
    register_clifford(_symbol, _images)


def clifford_symbols() -> List[str]:
    return sorted(_CLIFFORD_TABLES.keys())


def apply_clifford(gate: CliffordGate, pstr: PauliString) -> Tuple[PauliString, int]:
    """Apply a Clifford gate to a Pauli string using lookup table"""
    table = _CLIFFORD_TABLES.get(gate.symbol)
    if table is None:
        raise ValueError(f"Unknown Clifford gate: {gate.symbol}")

    x_loc = 0
    z_loc = 0
    for k, q in enumerate(gate.qubits):
        xq, zq = get_local_pauli(pstr.x_mask, pstr.z_mask, q)
        x_loc |= xq << k
        z_loc |= zq << k
    if x_loc == 0 and z_loc == 0:
        return pstr, 1

    new_x_loc, new_z_loc, sign = table[(x_loc, z_loc)]

    x_new = pstr.x_mask
    z_new = pstr.z_mask
    for k, q in enumerate(gate.qubits):
        bit = 1 << q
        x_new = (x_new & ~bit) | (((new_x_loc >> k) & 1) << q)
        z_new = (z_new & ~bit) | (((new_z_loc >> k) & 1) << q)

    return PauliString(x_new, z_new, pstr.n_qubits), sign


# ============================================================================
# 3. Circuit helpers
# ============================================================================

def count_parameters(circuit: Sequence[Gate]) -> int:
    """Declared parameter count: one past the largest param_idx."""
    indices = [g.param_idx for g in circuit if isinstance(g, PauliRotation) and g.is_parametrized]
    return (max(indices) + 1) if indices else 0


def validate_circuit(circuit: Sequence[Gate], n_qubits: int) -> None:
    """Reject gates acting outside the register or with the wrong arity."""
    for i, gate in enumerate(circuit):
        if not isinstance(gate, Gate):
            raise TypeError(f"Circuit entry {i} is not a Gate: {gate!r}")
        support = gate.support
        if len(set(support)) != len(support):
            raise ValueError(f"Gate {gate!r} repeats a qubit")
        if any(q < 0 or q >= n_qubits for q in support):
            raise DimensionMismatchError(
                f"Gate {gate!r} acts on qubits {support} outside a {n_qubits}-qubit register"
            )
        if isinstance(gate, CliffordGate):
            arity = _CLIFFORD_ARITY.get(gate.symbol)
            if arity is None:
                raise ValueError(f"Unknown Clifford gate: {gate.symbol}")
            if arity != len(gate.qubits):
                raise ValueError(f"{gate.symbol} acts on {arity} qubits, got {gate.qubits}")


__all__ = [
    "Gate",
    "CliffordGate",
    "PauliRotation",
    "PauliNoise",
    "DepolarizingNoise",
    "DephasingNoise",
    "t_gate",
    "CLIFFORD_IMAGES",
    "build_clifford_table",
    "register_clifford",
    "clifford_symbols",
    "apply_clifford",
    "count_parameters",
    "validate_circuit",
]
