"""PauliSum construction and merging."""

from __future__ import annotations

import pytest

from pauliprop import DimensionMismatchError, FloatAlgebra, PauliSum, make_pauli_string


def test_add_merges_by_key():
    psum = PauliSum(3)
    psum.add_from_str("ZZ", 1.0, qubits=[0, 1])
    psum.add(make_pauli_string("ZZI"), 0.5)
    assert len(psum) == 1
    assert psum.get_coeff(make_pauli_string("ZZI")) == pytest.approx(1.5)


def test_add_uses_algebra_when_given():
    calls = []

    class Recording(FloatAlgebra):
        def add(self, a, b):
            calls.append((a, b))
            return super().add(a, b)

    psum = PauliSum(1)
    psum.add(make_pauli_string("X"), 1.0, Recording())
    psum.add(make_pauli_string("X"), 2.0, Recording())
    assert calls == [(1.0, 2.0)]
    assert psum.get_coeff(make_pauli_string("X")) == 3.0


def test_add_pauli_forms():
    psum = PauliSum(4)
    psum.add_pauli("X", 2, 0.25)
    psum.add_pauli(("Z", "Y"), (0, 3), -1.0)
    assert psum.get_coeff(make_pauli_string("IIXI")) == 0.25
    assert psum.get_coeff(make_pauli_string("ZIIY")) == -1.0
    assert make_pauli_string("ZIIY") in psum


def test_width_mismatch():
    psum = PauliSum(2)
    with pytest.raises(DimensionMismatchError):
        psum.add(make_pauli_string("XYZ"), 1.0)
    with pytest.raises(DimensionMismatchError):
        psum.add_pauli("X", 5, 1.0)
    with pytest.raises(DimensionMismatchError):
        psum + PauliSum(3)


def test_missing_coeff_default():
    psum = PauliSum(2)
    assert psum.get_coeff(make_pauli_string("XX")) == 0.0


def test_copy_is_shallow():
    coeff = [1.0]  # any object; identity is what matters
    psum = PauliSum(1, {make_pauli_string("Z"): coeff})
    dup = psum.copy()
    assert dup.terms is not psum.terms
    assert dup.terms[make_pauli_string("Z")] is coeff
    dup.add_pauli("X", 0, 1.0)
    assert len(psum) == 1


def test_sum_and_from_terms():
    a = PauliSum.from_terms(2, {"ZI": 1.0, "XX": 0.5})
    b = PauliSum.from_terms(2, {"ZI": -1.0, "IY": 2.0})
    c = a + b
    assert c.get_coeff(make_pauli_string("ZI")) == 0.0
    assert c.get_coeff(make_pauli_string("XX")) == 0.5
    assert c.get_coeff(make_pauli_string("IY")) == 2.0
    assert len(a) == 2
    assert set(c) == {make_pauli_string(s) for s in ("ZI", "XX", "IY")}
