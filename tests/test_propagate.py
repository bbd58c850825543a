"""Propagation engine: correctness against dense simulation and entry-point contracts."""

from __future__ import annotations

import logging

import numpy as np
import pytest

from pauliprop import (
    CliffordGate,
    DephasingNoise,
    DepolarizingNoise,
    DimensionMismatchError,
    FloatAlgebra,
    FrequencyTracker,
    PauliRotation,
    PauliSum,
    TruncationPolicy,
    make_pauli_string,
    overlap_with_computational,
    overlap_with_zero,
    propagate,
    propagate_gate,
    propagate_inplace,
    t_gate,
    wrap_coefficients,
)

from dense_reference import dense_expectation, random_circuit


def _zz_observable(n_qubits=2, coeff=1.0):
    obs = PauliSum(n_qubits)
    obs.add_pauli(("Z", "Z"), (0, 1), coeff)
    return obs


@pytest.mark.parametrize("theta", [0.0, 0.3, np.pi / 4, 1.2, -2.5])
def test_zz_through_rx_gives_cos(theta):
    obs = _zz_observable()
    circuit = [PauliRotation("X", [0], param_idx=0)]
    out = propagate(circuit, obs, np.array([theta]))
    assert overlap_with_zero(out) == pytest.approx(np.cos(theta), abs=1e-12)


def test_rotation_branches_with_sign():
    theta = 0.7
    out = propagate([PauliRotation("X", [0], param_idx=0)], _zz_observable(), [theta])
    assert len(out) == 2
    assert out.get_coeff(make_pauli_string("ZZ")) == pytest.approx(np.cos(theta))
    assert out.get_coeff(make_pauli_string("YZ")) == pytest.approx(np.sin(theta))

    # Y -> cos(θ) Y - sin(θ) Z under the same rotation
    obs = PauliSum(1)
    obs.add_from_str("Y", 1.0)
    out = propagate([PauliRotation("X", [0], param_idx=0)], obs, [theta])
    assert out.get_coeff(make_pauli_string("Y")) == pytest.approx(np.cos(theta))
    assert out.get_coeff(make_pauli_string("Z")) == pytest.approx(-np.sin(theta))


def test_max_weight_zero_keeps_only_identity():
    circuit = [PauliRotation("X", [0], param_idx=0)]
    out = propagate(circuit, _zz_observable(), [0.4], TruncationPolicy(max_weight=0))
    assert len(out) == 0
    assert overlap_with_zero(out) == 0.0

    obs = _zz_observable()
    obs.add_pauli((), (), 0.5)
    out = propagate(circuit, obs, [0.4], TruncationPolicy(max_weight=0))
    assert overlap_with_zero(out) == pytest.approx(0.5)


def test_max_weight_above_support_changes_nothing():
    circuit = [PauliRotation("X", [0], param_idx=0)]
    out = propagate(circuit, _zz_observable(), [0.4], TruncationPolicy(max_weight=2))
    assert overlap_with_zero(out) == pytest.approx(np.cos(0.4))


def test_empty_circuit_is_identity():
    obs = PauliSum.from_terms(3, {"XYZ": 0.3, "ZII": -1.0})
    out = propagate([], obs, None)
    assert out.terms == obs.terms
    assert out is not obs


@pytest.mark.parametrize("seed", [0, 1, 2])
@pytest.mark.parametrize("reference_bits", [0, 0b101])
def test_matches_dense_simulation(seed, reference_bits):
    n = 3
    circuit, thetas = random_circuit(n, 2, seed=seed)
    obs = PauliSum(n)
    obs.add_from_str("ZZ", 1.0, qubits=[0, 1])
    obs.add_from_str("X", -0.7, qubits=[2])
    obs.add_from_str("YIZ", 0.4)
    exact = dense_expectation(circuit, obs, thetas, reference_bits)
    out = propagate(circuit, obs, thetas)
    assert overlap_with_computational(out, reference_bits) == pytest.approx(exact, abs=1e-9)


def test_frozen_rotations_need_no_parameters():
    obs = PauliSum(1)
    obs.add_from_str("X", 1.0)
    circuit = [CliffordGate("H", [0]), t_gate(0), CliffordGate("H", [0])]
    out = propagate(circuit, obs, None)
    assert overlap_with_zero(out) == pytest.approx(dense_expectation(circuit, obs))


def test_copying_entry_leaves_input_untouched():
    circuit, thetas = random_circuit(3, 1, seed=4)
    obs = PauliSum.from_terms(3, {"ZZI": 1.0})
    before = dict(obs.terms)
    propagate(circuit, obs, thetas, TruncationPolicy(max_freq=3))
    assert obs.terms == before


def test_inplace_returns_same_object():
    circuit, thetas = random_circuit(3, 1, seed=5)
    obs = PauliSum.from_terms(3, {"ZZI": 1.0})
    expected = overlap_with_zero(propagate(circuit, obs, thetas))
    terms_dict = obs.terms
    out = propagate_inplace(circuit, obs, thetas)
    assert out is obs
    assert obs.terms is terms_dict
    assert overlap_with_zero(obs) == pytest.approx(expected, abs=1e-12)


def test_entry_points_agree_with_frequency_policy():
    circuit, thetas = random_circuit(4, 2, seed=6)
    obs = PauliSum.from_terms(4, {"ZIIZ": 1.0, "IXXI": 0.5})
    policy = TruncationPolicy(max_freq=4, min_abs_coeff=1e-4)

    copied = propagate(circuit, obs, thetas, policy)
    inplace = propagate_inplace(circuit, wrap_coefficients(obs), thetas, policy)
    assert set(copied.terms) == set(inplace.terms)
    for pstr, coeff in inplace.terms.items():
        assert isinstance(coeff, FrequencyTracker)
        assert float(coeff) == pytest.approx(copied.terms[pstr], abs=1e-12)


def test_return_tracked_keeps_counters():
    circuit = [PauliRotation("X", [0], param_idx=0), PauliRotation("X", [1], param_idx=1)]
    out = propagate(circuit, _zz_observable(), [0.2, 0.3], TruncationPolicy(max_freq=10), return_tracked=True)
    yy = out.terms[make_pauli_string("YY")]
    assert (yy.nsins, yy.ncos, yy.freq) == (2, 0, 2)
    assert float(yy) == pytest.approx(np.sin(0.2) * np.sin(0.3))


def test_max_sins_limits_branches():
    circuit = [PauliRotation("X", [0], param_idx=0), PauliRotation("X", [1], param_idx=1)]
    out = propagate(circuit, _zz_observable(), [0.2, 0.3], TruncationPolicy(max_sins=1))
    assert make_pauli_string("YY") not in out
    assert len(out) == 3


def test_inplace_rejects_unwrapped_frequency_policy():
    obs = _zz_observable()
    with pytest.raises(TypeError):
        propagate_inplace([PauliRotation("X", [0], param_idx=0)], obs, [0.1], TruncationPolicy(max_sins=1))
    # nothing was changed before the error
    assert obs.terms == _zz_observable().terms


@pytest.mark.parametrize("thetas", [[0.1, 0.2], [], np.zeros((1, 1))])
def test_parameter_vector_length_checked(thetas):
    circuit = [PauliRotation("X", [0], param_idx=0)]
    with pytest.raises(ValueError):
        propagate(circuit, _zz_observable(), thetas)


def test_missing_parameters():
    with pytest.raises(DimensionMismatchError):
        propagate([PauliRotation("X", [0], param_idx=0)], _zz_observable(), None)


def test_gate_outside_register():
    with pytest.raises(DimensionMismatchError):
        propagate([CliffordGate("H", [2])], _zz_observable(), None)


def test_noise_damps_non_identity_sites():
    obs = PauliSum.from_terms(2, {"ZZ": 1.0, "XI": 1.0, "IZ": 1.0})
    out = propagate([DepolarizingNoise(0, 0.2), DephasingNoise(1, 0.5)], obs, None)
    assert out.get_coeff(make_pauli_string("ZZ")) == pytest.approx(0.8)
    assert out.get_coeff(make_pauli_string("XI")) == pytest.approx(0.8)
    assert out.get_coeff(make_pauli_string("IZ")) == pytest.approx(1.0)


def test_cancellations_are_pruned():
    # RX(0.5) followed by its inverse: the Y branches cancel
    obs = PauliSum(1)
    obs.add_from_str("Z", 1.0)
    circuit = [PauliRotation("X", [0], angle=0.5), PauliRotation("X", [0], angle=-0.5)]
    out = propagate(circuit, obs, None)
    assert out.get_coeff(make_pauli_string("Z")) == pytest.approx(1.0)
    assert abs(out.get_coeff(make_pauli_string("Y"))) < 1e-15


def test_empty_sum_stays_empty():
    circuit, thetas = random_circuit(2, 1, seed=0)
    out = propagate(circuit, PauliSum(2), thetas)
    assert len(out) == 0
    assert overlap_with_zero(out) == 0.0


def test_propagate_gate_reads_only():
    obs = _zz_observable()
    terms = propagate_gate(CliffordGate("H", [0]), obs, None, TruncationPolicy(), FloatAlgebra())
    assert terms == {make_pauli_string("XZ"): 1.0}
    assert obs.terms == {make_pauli_string("ZZ"): 1.0}
    with pytest.raises(TypeError):
        propagate_gate(object(), obs, None, TruncationPolicy(), FloatAlgebra())


def test_debug_logging_and_progress(caplog):
    circuit, thetas = random_circuit(2, 1, seed=1)
    logger = logging.getLogger("pauliprop.test")
    with caplog.at_level(logging.DEBUG, logger="pauliprop.test"):
        propagate(circuit, _zz_observable(), thetas, progress=True, logger=logger)
    messages = [r.getMessage() for r in caplog.records]
    assert any("Propagating" in m for m in messages)
    assert sum(m.startswith("After") for m in messages) == len(circuit)
