"""
Pauli algebra in symplectic form.

Each qubit carries an (x, z) bit pair: I=(0, 0), X=(1, 0), Z=(0, 1), Y=(1, 1).
A Pauli string on n qubits is stored as two integer bitmasks where bit q holds
the component of qubit q. Products are table-driven and qubit-wise; phases are
encoded as an integer in {0, 1, 2, 3} meaning {+1, +i, -1, -i}.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import DimensionMismatchError


PAULI_SYMBOLS = ("I", "X", "Y", "Z")

_TO_XZ: Dict[str, Tuple[int, int]] = {"I": (0, 0), "X": (1, 0), "Y": (1, 1), "Z": (0, 1)}
_TO_PAULI: Dict[Tuple[int, int], str] = {v: k for k, v in _TO_XZ.items()}

# Local Pauli multiplication table: (left, right) -> (product, phase)
# phase: 0=+1, 1=+i, 2=-1, 3=-i
_LOCAL_PRODUCT: Dict[Tuple[str, str], Tuple[str, int]] = {
    ("I", "I"): ("I", 0),
    ("I", "X"): ("X", 0),
    ("I", "Y"): ("Y", 0),
    ("I", "Z"): ("Z", 0),
    ("X", "I"): ("X", 0),
    ("Y", "I"): ("Y", 0),
    ("Z", "I"): ("Z", 0),
    ("X", "X"): ("I", 0),
    ("Y", "Y"): ("I", 0),
    ("Z", "Z"): ("I", 0),
    ("X", "Y"): ("Z", 1),
    ("Y", "X"): ("Z", 3),
    ("X", "Z"): ("Y", 3),
    ("Z", "X"): ("Y", 1),
    ("Y", "Z"): ("X", 1),
    ("Z", "Y"): ("X", 3),
}

_PHASES = (1, 1j, -1, -1j)


def count_weight(x_mask: int, z_mask: int) -> int:
    """Count number of non-identity Paulis (weight)"""
    return bin(x_mask | z_mask).count('1')


def count_xy(x_mask: int, z_mask: int) -> int:
    """Count number of X/Y Paulis (exclude I and Z)"""
    return bin(x_mask).count('1')


@dataclass(frozen=True)
class PauliString:
    """
    Fixed-width Pauli string represented in symplectic form.
    - x_mask: bitmask for X component (bit i = 1 if qubit i has X or Y)
    - z_mask: bitmask for Z component (bit i = 1 if qubit i has Z or Y)
    - n_qubits: width of the string; both masks must fit inside it
    - weight: number of non-identity sites, cached at construction

    Equality and hashing are structural over (x_mask, z_mask, n_qubits).
    """
    x_mask: int
    z_mask: int
    n_qubits: int
    weight: int = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.n_qubits < 0:
            raise ValueError(f"n_qubits must be >= 0, got {self.n_qubits}")
        limit = 1 << self.n_qubits
        if not (0 <= self.x_mask < limit and 0 <= self.z_mask < limit):
            raise DimensionMismatchError(
                f"Pauli masks ({self.x_mask:#x}, {self.z_mask:#x}) do not fit in {self.n_qubits} qubits"
            )
        object.__setattr__(self, "weight", count_weight(self.x_mask, self.z_mask))

    def pauli_at(self, q: int) -> str:
        """Local Pauli symbol at qubit q."""
        return _TO_PAULI[get_local_pauli(self.x_mask, self.z_mask, q)]

    def to_label(self) -> str:
        """Label with qubit 0 first, e.g. 'XIZ'."""
        return "".join(self.pauli_at(q) for q in range(self.n_qubits))

    def is_identity(self) -> bool:
        return self.x_mask == 0 and self.z_mask == 0

    def __repr__(self):
        return f"P({self.to_label()})"


def get_local_pauli(x_mask: int, z_mask: int, q: int) -> Tuple[int, int]:
    """Get local Pauli at qubit q: returns (x_bit, z_bit)"""
    bit = 1 << q
    return (1 if (x_mask & bit) else 0), (1 if (z_mask & bit) else 0)


def identity(n_qubits: int) -> PauliString:
    return PauliString(0, 0, n_qubits)


def make_pauli_string(
    pauli: Union[str, Sequence[str]],
    qubits: Optional[Sequence[int]] = None,
    n_qubits: Optional[int] = None,
) -> PauliString:
    """Create PauliString from a string like 'XYIZ' or a tuple of symbols.

    If qubits is provided, pauli length must match len(qubits) and letters map
    to those qubits. If qubits is None, indices are 0..len(pauli)-1. The width
    defaults to the smallest register holding every listed qubit.
    """
    symbols = [str(p).upper() for p in pauli]
    if qubits is None:
        qubits = list(range(len(symbols)))
    if len(symbols) != len(qubits):
        raise ValueError("Length of pauli string must match qubits length")
    if len(set(qubits)) != len(qubits):
        raise ValueError(f"Repeated qubit index in {list(qubits)}")
    if any(int(q) < 0 for q in qubits):
        raise ValueError(f"Negative qubit index in {list(qubits)}")
    if n_qubits is None:
        n_qubits = (max(qubits) + 1) if len(qubits) > 0 else 0
    if any(int(q) >= n_qubits for q in qubits):
        raise DimensionMismatchError(f"Qubit indices {list(qubits)} out of range for {n_qubits} qubits")

    x_mask = 0
    z_mask = 0
    for p, q in zip(symbols, qubits):
        if p not in _TO_XZ:
            raise ValueError(f"Unsupported Pauli char: {p}")
        x, z = _TO_XZ[p]
        x_mask |= x << int(q)
        z_mask |= z << int(q)
    return PauliString(x_mask, z_mask, int(n_qubits))


def _check_same_width(p1: PauliString, p2: PauliString) -> None:
    if p1.n_qubits != p2.n_qubits:
        raise DimensionMismatchError(
            f"Pauli strings act on different qubit counts: {p1.n_qubits} vs {p2.n_qubits}"
        )


def pauli_product(p1: PauliString, p2: PauliString) -> Tuple[PauliString, int]:
    """
    Multiply two Pauli strings: P1 * P2
    Returns (new_pauli, phase) where phase ∈ {0,1,2,3} for {+1,+i,-1,-i}
    """
    _check_same_width(p1, p2)

    phase = 0
    x_union = p1.x_mask | p2.x_mask
    z_union = p1.z_mask | p2.z_mask
    for q in range(p1.n_qubits):
        if not ((x_union | z_union) >> q) & 1:
            continue
        left = _TO_PAULI[get_local_pauli(p1.x_mask, p1.z_mask, q)]
        right = _TO_PAULI[get_local_pauli(p2.x_mask, p2.z_mask, q)]
        _, local_phase = _LOCAL_PRODUCT[(left, right)]
        phase = (phase + local_phase) % 4

    # XOR of the masks is the product string up to phase.
    return PauliString(p1.x_mask ^ p2.x_mask, p1.z_mask ^ p2.z_mask, p1.n_qubits), phase


def phase_to_complex(phase: int) -> complex:
    return complex(_PHASES[phase % 4])


def local_product_phase(pstr: PauliString, symbols: Sequence[str], qubits: Sequence[int]) -> int:
    """Compute multiplication phase for P * G using only the support of G."""
    phase = 0
    for q, g in zip(qubits, symbols):
        p_local = _TO_PAULI[get_local_pauli(pstr.x_mask, pstr.z_mask, q)]
        _, p_phase = _LOCAL_PRODUCT[(p_local, g)]
        phase = (phase + p_phase) % 4
    return phase


def commutes(p1: PauliString, p2: PauliString) -> bool:
    """Check if two Pauli strings commute"""
    _check_same_width(p1, p2)
    # Symplectic inner product
    symp = bin((p1.x_mask & p2.z_mask) ^ (p1.z_mask & p2.x_mask)).count('1')
    return (symp % 2) == 0


def popcount_u64(arr: np.ndarray) -> np.ndarray:
    """Vectorized popcount for uint64 arrays."""
    x = arr.astype(np.uint64, copy=False)
    x = x - ((x >> np.uint64(1)) & np.uint64(0x5555555555555555))
    x = (x & np.uint64(0x3333333333333333)) + ((x >> np.uint64(2)) & np.uint64(0x3333333333333333))
    x = (x + (x >> np.uint64(4))) & np.uint64(0x0F0F0F0F0F0F0F0F)
    x = (x * np.uint64(0x0101010101010101)) >> np.uint64(56)
    return x


def build_mask_blocks(pstrs: List[PauliString], n_blocks: int) -> Tuple[np.ndarray, np.ndarray]:
    """Pack masks into uint64 blocks of shape (n_terms, n_blocks)."""
    n_terms = len(pstrs)
    x_blocks = np.zeros((n_terms, n_blocks), dtype=np.uint64)
    z_blocks = np.zeros((n_terms, n_blocks), dtype=np.uint64)
    mask64 = (1 << 64) - 1
    for b in range(n_blocks):
        shift = 64 * b
        x_blocks[:, b] = np.fromiter(((p.x_mask >> shift) & mask64 for p in pstrs), dtype=np.uint64, count=n_terms)
        z_blocks[:, b] = np.fromiter(((p.z_mask >> shift) & mask64 for p in pstrs), dtype=np.uint64, count=n_terms)
    return x_blocks, z_blocks


def anticommuting_mask(pstrs: List[PauliString], generator: PauliString) -> np.ndarray:
    """Boolean array marking which of `pstrs` anticommute with `generator`.

    Uses a single uint64 word per mask up to 64 qubits and packed blocks above.
    """
    if len(pstrs) == 0:
        return np.zeros((0,), dtype=bool)

    n_blocks = max(1, (generator.n_qubits + 63) // 64)
    if n_blocks == 1:
        x_arr = np.fromiter((p.x_mask for p in pstrs), dtype=np.uint64, count=len(pstrs))
        z_arr = np.fromiter((p.z_mask for p in pstrs), dtype=np.uint64, count=len(pstrs))
        gx = np.uint64(generator.x_mask)
        gz = np.uint64(generator.z_mask)
        symp = popcount_u64((x_arr & gz) ^ (z_arr & gx)) & np.uint64(1)
        return symp == 1

    x_blocks, z_blocks = build_mask_blocks(pstrs, n_blocks)
    gx_blocks, gz_blocks = build_mask_blocks([generator], n_blocks)
    symp_blocks = popcount_u64((x_blocks & gz_blocks) ^ (z_blocks & gx_blocks))
    symp = np.sum(symp_blocks, axis=1, dtype=np.uint64) & np.uint64(1)
    return symp == 1


def iter_sites(pstr: PauliString) -> Iterable[Tuple[int, str]]:
    """Yield (qubit, symbol) for every non-identity site."""
    support = pstr.x_mask | pstr.z_mask
    q = 0
    while support:
        if support & 1:
            yield q, pstr.pauli_at(q)
        support >>= 1
        q += 1


__all__ = [
    "PAULI_SYMBOLS",
    "PauliString",
    "get_local_pauli",
    "count_weight",
    "count_xy",
    "identity",
    "make_pauli_string",
    "pauli_product",
    "phase_to_complex",
    "local_product_phase",
    "commutes",
    "popcount_u64",
    "build_mask_blocks",
    "anticommuting_mask",
    "iter_sites",
]
