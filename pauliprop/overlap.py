"""
Reduce a propagated PauliSum to a scalar expectation value.

For a product reference state only a subset of strings survives:
- <0|X|0> = <0|Y|0> = 0, <0|Z|0> = <0|I|0> = +1
- <1|Z|1> = -1
- <+|Z|+> = <+|Y|+> = 0, <+|X|+> = <+|I|+> = +1

Results are `algebra.unwrap(...)` of the summed coefficients, so a torch
algebra returns a tensor that still carries its autograd graph.
Pass `thetas` to keep the result differentiable when every parametrised
term was truncated away: the sum then starts from a zero tied to `thetas`.
"""

from __future__ import annotations

import numbers
from typing import Any, Optional, Sequence, Union

from .coefficients import CoefficientAlgebra, algebra_for_sum
from .errors import DimensionMismatchError
from .paulisum import PauliSum
from .paulis import PauliString
from .propagate import propagate
from .truncation import TruncationPolicy


Reference = Union[str, int, Sequence[int]]


def _resolve(psum: PauliSum, algebra: Optional[CoefficientAlgebra], thetas: Any = None) -> CoefficientAlgebra:
    return algebra if algebra is not None else algebra_for_sum(psum, thetas)


def zero_filter(psum: PauliSum) -> PauliSum:
    """
    Keep only Pauli strings contributing to <0|...|0>, i.e. x_mask == 0.
    Coefficient objects are shared with the input.
    """
    filtered = PauliSum(psum.n_qubits)
    for pstr, coeff in psum.terms.items():
        if pstr.x_mask == 0:
            filtered.terms[pstr] = coeff
    return filtered


def overlap_with_computational(
    psum: PauliSum,
    ones: Union[int, Sequence[int]],
    algebra: Optional[CoefficientAlgebra] = None,
    *,
    thetas: Any = None,
) -> Any:
    """<b|O|b> for the computational basis state with `ones` set to |1>.

    `ones` is a bitmask or a sequence of qubit indices in state |1>.
    """
    if isinstance(ones, numbers.Integral):
        ones_mask = int(ones)
    else:
        ones_mask = 0
        for q in ones:
            ones_mask |= 1 << int(q)
    if ones_mask >> psum.n_qubits:
        raise DimensionMismatchError(f"Reference state {ones_mask:#b} does not fit in {psum.n_qubits} qubits")

    algebra = _resolve(psum, algebra, thetas)
    result = algebra.zero_for(thetas)
    for pstr, coeff in psum.terms.items():
        factor = overlap_contribution(pstr, ones_mask)
        if factor == 0:
            continue
        if factor < 0:
            coeff = algebra.scale(coeff, -1)
        result = algebra.add(result, coeff)
    return algebra.unwrap(result)


def overlap_with_zero(
    psum: PauliSum, algebra: Optional[CoefficientAlgebra] = None, *, thetas: Any = None
) -> Any:
    """<0...0|O|0...0>: sum of coefficients of strings made of I and Z only."""
    return overlap_with_computational(psum, 0, algebra, thetas=thetas)


def overlap_with_plus(
    psum: PauliSum, algebra: Optional[CoefficientAlgebra] = None, *, thetas: Any = None
) -> Any:
    """<+...+|O|+...+>: sum of coefficients of strings made of I and X only."""
    algebra = _resolve(psum, algebra, thetas)
    result = algebra.zero_for(thetas)
    for pstr, coeff in psum.terms.items():
        if pstr.z_mask == 0:
            result = algebra.add(result, coeff)
    return algebra.unwrap(result)


def _bits_from_reference(reference: Union[str, Sequence[int]], n_qubits: int) -> int:
    bits = [int(b) for b in reference]
    if len(bits) != n_qubits:
        raise DimensionMismatchError(f"Reference state has {len(bits)} bits, PauliSum has {n_qubits} qubits")
    if any(b not in (0, 1) for b in bits):
        raise ValueError(f"Reference bits must be 0 or 1, got {reference!r}")
    mask = 0
    for q, b in enumerate(bits):
        mask |= b << q
    return mask


def overlap_with_reference_state(
    psum: PauliSum,
    reference: Reference = "zero",
    algebra: Optional[CoefficientAlgebra] = None,
    *,
    thetas: Any = None,
) -> Any:
    """Evaluate the propagated observable against a product reference state.

    `reference` may be "zero", "plus", a bitstring such as "0110" (qubit 0
    first), a sequence of 0/1 per qubit, or an integer bitmask.
    """
    if isinstance(reference, str):
        key = reference.lower()
        if key == "zero":
            return overlap_with_zero(psum, algebra, thetas=thetas)
        if key == "plus":
            return overlap_with_plus(psum, algebra, thetas=thetas)
        return overlap_with_computational(psum, _bits_from_reference(reference, psum.n_qubits), algebra, thetas=thetas)
    if isinstance(reference, numbers.Integral):
        return overlap_with_computational(psum, int(reference), algebra, thetas=thetas)
    return overlap_with_computational(psum, _bits_from_reference(reference, psum.n_qubits), algebra, thetas=thetas)


def overlap_contribution(pstr: PauliString, reference_mask: int = 0) -> int:
    """Eigenvalue factor of one string on a computational basis state (0 or ±1)."""
    if pstr.x_mask != 0:
        return 0
    return -1 if bin(pstr.z_mask & reference_mask).count('1') % 2 else 1


def expectation(
    circuit,
    observable: PauliSum,
    thetas: Any = None,
    policy: Union[str, TruncationPolicy, None] = None,
    reference: Reference = "zero",
    algebra: Optional[CoefficientAlgebra] = None,
) -> Any:
    """Copying propagation followed by overlap with `reference`."""
    propagated = propagate(circuit, observable, thetas, policy, algebra)
    return overlap_with_reference_state(propagated, reference, algebra, thetas=thetas)


__all__ = [
    "zero_filter",
    "overlap_with_computational",
    "overlap_with_zero",
    "overlap_with_plus",
    "overlap_with_reference_state",
    "overlap_contribution",
    "expectation",
]
