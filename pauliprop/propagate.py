"""
Truncated Pauli propagation in the Heisenberg picture.

Gates are applied in reverse circuit order to a PauliSum. For a rotation
exp(-i θ/2 G) a string P that anticommutes with G branches into

    U† P U = cos(θ) P + sin(θ) P'      with P' = i G P

while commuting strings pass through untouched. Clifford gates map each string
to exactly one string with a sign, noise channels rescale. Every candidate term
is checked against the TruncationPolicy before it is merged.

Two entry points share the loop:
- `propagate` copies the observable first and wraps coefficients in
  FrequencyTracker when the policy needs branch counts.
- `propagate_inplace` mutates the caller's PauliSum and never re-wraps or
  duplicates coefficient objects, so tensors recorded by an autograd tape
  stay the same objects throughout.

Merge order follows dict iteration order, so results are deterministic for a
given input but may differ in the last floating-point bit from a differently
ordered but equal input.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence, Union

from tqdm import tqdm

from .coefficients import (
    CoefficientAlgebra,
    FrequencyTracker,
    TrackedAlgebra,
    algebra_for_sum,
    check_algebra,
    unwrap_coefficients,
    wrap_coefficients,
)
from .errors import DimensionMismatchError
from .gates import (
    CliffordGate,
    Gate,
    PauliNoise,
    PauliRotation,
    apply_clifford,
    count_parameters,
    validate_circuit,
)
from .paulis import PauliString, anticommuting_mask, local_product_phase
from .paulisum import PauliSum
from .truncation import TruncationPolicy, resolve_policy


Terms = Dict[PauliString, Any]


def _merge_candidate(
    out: Terms,
    pstr: PauliString,
    coeff: Any,
    policy: TruncationPolicy,
    algebra: CoefficientAlgebra,
) -> None:
    if not policy.keeps(pstr, coeff, algebra):
        return
    existing = out.get(pstr)
    out[pstr] = coeff if existing is None else algebra.add(existing, coeff)


def _apply_clifford_terms(gate: CliffordGate, psum: PauliSum, policy, algebra) -> Terms:
    out: Terms = {}
    for pstr, coeff in psum.terms.items():
        new_pstr, sign = apply_clifford(gate, pstr)
        new_coeff = coeff if sign == 1 else algebra.scale(coeff, sign)
        _merge_candidate(out, new_pstr, new_coeff, policy, algebra)
    return out


def _apply_rotation_terms(gate: PauliRotation, psum: PauliSum, thetas, policy, algebra) -> Terms:
    theta = gate.theta(thetas)
    generator = gate.to_pauli_string(psum.n_qubits)

    pstrs = list(psum.terms.keys())
    anti = anticommuting_mask(pstrs, generator)

    out: Terms = {}
    for pstr, is_anti in zip(pstrs, anti):
        coeff = psum.terms[pstr]

        # Commute: retain unchanged
        if not is_anti:
            _merge_candidate(out, pstr, coeff, policy, algebra)
            continue

        # Anticommute: mutate (cos * original) + insert (sin * new_pstr)
        _merge_candidate(out, pstr, algebra.mul_cos(coeff, theta), policy, algebra)

        # P' = i G P = -i P G; with P G = i^phase Q the sign is +1 for phase 1, -1 for phase 3
        phase = local_product_phase(pstr, gate.pauli, gate.qubits)
        sin_coeff = algebra.mul_sin(coeff, theta)
        if phase == 3:
            sin_coeff = algebra.scale(sin_coeff, -1)
        new_pstr = PauliString(
            pstr.x_mask ^ generator.x_mask,
            pstr.z_mask ^ generator.z_mask,
            pstr.n_qubits,
        )
        _merge_candidate(out, new_pstr, sin_coeff, policy, algebra)
    return out


def _apply_noise_terms(gate: PauliNoise, psum: PauliSum, policy, algebra) -> Terms:
    out: Terms = {}
    for pstr, coeff in psum.terms.items():
        factor = gate.factor(pstr.pauli_at(gate.qubit))
        new_coeff = coeff if factor == 1.0 else algebra.scale(coeff, factor)
        _merge_candidate(out, pstr, new_coeff, policy, algebra)
    return out


def propagate_gate(
    gate: Gate,
    psum: PauliSum,
    thetas: Any,
    policy: TruncationPolicy,
    algebra: CoefficientAlgebra,
) -> Terms:
    """Apply one gate to all Pauli strings in psum and return the new term dict.

    `psum` is only read. Exact zeros left by cancellations are pruned when the
    algebra reports them as droppable.
    """
    if not psum.terms:
        return {}

    if isinstance(gate, CliffordGate):
        out = _apply_clifford_terms(gate, psum, policy, algebra)
    elif isinstance(gate, PauliRotation):
        out = _apply_rotation_terms(gate, psum, thetas, policy, algebra)
    elif isinstance(gate, PauliNoise):
        out = _apply_noise_terms(gate, psum, policy, algebra)
    else:
        raise TypeError(
            f"Unsupported gate type in propagate_gate: {type(gate).__name__}. "
            "Expected CliffordGate, PauliRotation or PauliNoise."
        )

    zeros = [pstr for pstr, coeff in out.items() if algebra.is_zero(coeff)]
    for pstr in zeros:
        del out[pstr]
    return out


def _check_parameters(circuit: Sequence[Gate], thetas: Any) -> None:
    n_params = count_parameters(circuit)
    if thetas is None:
        if n_params > 0:
            raise DimensionMismatchError(f"Circuit declares {n_params} parameters but no thetas were given")
        return
    if getattr(thetas, "ndim", 1) != 1:
        raise ValueError(f"thetas must be one-dimensional, got ndim={thetas.ndim}")
    if len(thetas) != n_params:
        raise DimensionMismatchError(
            f"Parameter vector has length {len(thetas)} but the circuit declares {n_params} parameters"
        )


def propagate_inplace(
    circuit: Sequence[Gate],
    psum: PauliSum,
    thetas: Any = None,
    policy: Union[str, TruncationPolicy, None] = None,
    algebra: Optional[CoefficientAlgebra] = None,
    *,
    progress: bool = False,
    logger: Optional[logging.Logger] = None,
) -> PauliSum:
    """Propagate `psum` backwards through `circuit`, mutating it.

    Coefficients are never re-wrapped here. When the policy sets max_freq or
    max_sins the caller must wrap them beforehand (`wrap_coefficients`);
    otherwise a TypeError is raised before any gate is applied.

    Args:
        circuit: Gates in Schrödinger order.
        psum: Observable to propagate; its terms are replaced gate by gate.
        thetas: Parameter vector, length `count_parameters(circuit)`.
        policy: TruncationPolicy or preset name; None means no truncation.
        algebra: Coefficient algebra; inferred from psum/thetas when None.
        progress: Show a tqdm progress bar over gates.
        logger: Receives per-gate term counts at debug level.

    Returns:
        The same `psum` object.
    """
    policy = resolve_policy(policy)
    validate_circuit(circuit, psum.n_qubits)
    _check_parameters(circuit, thetas)

    if policy.requires_tracking:
        untracked = [c for c in psum.terms.values() if not isinstance(c, FrequencyTracker)]
        if untracked:
            raise TypeError(
                "max_freq/max_sins truncation needs FrequencyTracker coefficients; "
                "in-place propagation does not wrap them, use wrap_coefficients() first"
            )

    if algebra is None:
        algebra = algebra_for_sum(psum, thetas)
    else:
        check_algebra(algebra)

    log = logger if logger is not None else logging.getLogger(__name__)
    log.debug(f"Propagating {len(psum)} terms through {len(circuit)} gates with {algebra!r}")

    gates = reversed(list(circuit))
    if progress:
        gates = tqdm(gates, total=len(circuit), desc="propagate", dynamic_ncols=True)

    for gate in gates:
        new_terms = propagate_gate(gate, psum, thetas, policy, algebra)
        psum.terms.clear()
        psum.terms.update(new_terms)
        log.debug(f"After {gate}: {len(psum)} terms")

    return psum


def propagate(
    circuit: Sequence[Gate],
    observable: PauliSum,
    thetas: Any = None,
    policy: Union[str, TruncationPolicy, None] = None,
    algebra: Optional[CoefficientAlgebra] = None,
    *,
    return_tracked: bool = False,
    progress: bool = False,
    logger: Optional[logging.Logger] = None,
) -> PauliSum:
    """Propagate a copy of `observable` backwards through `circuit`.

    The caller's PauliSum is left untouched. When the policy sets max_freq or
    max_sins, plain coefficients are wrapped in FrequencyTracker before
    propagation and unwrapped again afterwards unless `return_tracked` is set.

    Returns:
        A new PauliSum.
    """
    policy = resolve_policy(policy)

    wrapped_here = policy.requires_tracking and any(
        not isinstance(c, FrequencyTracker) for c in observable.terms.values()
    )
    if wrapped_here:
        psum = wrap_coefficients(observable)
        if algebra is not None and not isinstance(algebra, TrackedAlgebra):
            algebra = TrackedAlgebra(algebra)
    else:
        psum = observable.copy()

    propagate_inplace(
        circuit,
        psum,
        thetas,
        policy,
        algebra,
        progress=progress,
        logger=logger,
    )

    if wrapped_here and not return_tracked:
        return unwrap_coefficients(psum)
    return psum


__all__ = [
    "propagate_gate",
    "propagate_inplace",
    "propagate",
]
