"""Truncated Pauli propagation with pluggable (differentiable) coefficients."""

from .errors import DimensionMismatchError, CoefficientContractError
from .paulis import (
    PauliString,
    make_pauli_string,
    identity,
    pauli_product,
    phase_to_complex,
    commutes,
    count_weight,
    count_xy,
)
from .paulisum import PauliSum
from .gates import (
    Gate,
    CliffordGate,
    PauliRotation,
    PauliNoise,
    DepolarizingNoise,
    DephasingNoise,
    t_gate,
    apply_clifford,
    register_clifford,
    clifford_symbols,
    count_parameters,
    validate_circuit,
)
from .coefficients import (
    CoefficientAlgebra,
    FloatAlgebra,
    TorchAlgebra,
    FrequencyTracker,
    TrackedAlgebra,
    algebra_for,
    algebra_for_sum,
    check_algebra,
    wrap_coefficients,
    unwrap_coefficients,
)
from .truncation import TruncationPolicy, DEFAULT_POLICIES, resolve_policy
from .propagate import propagate, propagate_inplace, propagate_gate
from .overlap import (
    zero_filter,
    overlap_with_zero,
    overlap_with_plus,
    overlap_with_computational,
    overlap_with_reference_state,
    expectation,
)

__all__ = [
    "DimensionMismatchError",
    "CoefficientContractError",
    "PauliString",
    "make_pauli_string",
    "identity",
    "pauli_product",
    "phase_to_complex",
    "commutes",
    "count_weight",
    "count_xy",
    "PauliSum",
    "Gate",
    "CliffordGate",
    "PauliRotation",
    "PauliNoise",
    "DepolarizingNoise",
    "DephasingNoise",
    "t_gate",
    "apply_clifford",
    "register_clifford",
    "clifford_symbols",
    "count_parameters",
    "validate_circuit",
    "CoefficientAlgebra",
    "FloatAlgebra",
    "TorchAlgebra",
    "FrequencyTracker",
    "TrackedAlgebra",
    "algebra_for",
    "algebra_for_sum",
    "check_algebra",
    "wrap_coefficients",
    "unwrap_coefficients",
    "TruncationPolicy",
    "DEFAULT_POLICIES",
    "resolve_policy",
    "propagate",
    "propagate_inplace",
    "propagate_gate",
    "zero_filter",
    "overlap_with_zero",
    "overlap_with_plus",
    "overlap_with_computational",
    "overlap_with_reference_state",
    "expectation",
]

__version__ = "0.1.0"
