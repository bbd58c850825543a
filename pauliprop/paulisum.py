"""PauliSum: weighted collection of Pauli strings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence, Tuple, Union

from .errors import DimensionMismatchError
from .paulis import PauliString, make_pauli_string


@dataclass
class PauliSum:
    """
    Collection of Pauli strings with coefficients.
    terms: Dict[PauliString, coefficient]

    Coefficients are opaque: plain floats, torch tensors or FrequencyTracker
    wrappers. Merging goes through `algebra.add` when an algebra is given and
    through `+` otherwise.
    """
    n_qubits: int
    terms: Dict[PauliString, Any] = field(default_factory=dict)

    def _check(self, pstr: PauliString) -> None:
        if pstr.n_qubits != self.n_qubits:
            raise DimensionMismatchError(
                f"PauliString on {pstr.n_qubits} qubits cannot be added to a PauliSum on {self.n_qubits} qubits"
            )

    def add(self, pstr: PauliString, coeff: Any, algebra: Optional[Any] = None) -> None:
        """Add or merge a term"""
        self._check(pstr)
        existing = self.terms.get(pstr)
        if existing is None:
            self.terms[pstr] = coeff
        elif algebra is not None:
            self.terms[pstr] = algebra.add(existing, coeff)
        else:
            self.terms[pstr] = existing + coeff

    def add_from_str(self, pauli: str, coeff: Any, qubits: Optional[Sequence[int]] = None) -> None:
        """Add a term using a Pauli string like 'XYIZ'."""
        self.add(make_pauli_string(pauli, qubits=qubits, n_qubits=self.n_qubits), coeff)

    def add_pauli(
        self,
        symbols: Union[str, Sequence[str]],
        qubits: Union[int, Sequence[int]],
        coeff: Any,
    ) -> None:
        """Add a term given one symbol per listed qubit, e.g. ('Z', 'Z'), (0, 1)."""
        if isinstance(qubits, int):
            qubits = [qubits]
        self.add(make_pauli_string(symbols, qubits=qubits, n_qubits=self.n_qubits), coeff)

    def get_coeff(self, pstr: PauliString, default: Any = 0.0) -> Any:
        self._check(pstr)
        return self.terms.get(pstr, default)

    def copy(self) -> "PauliSum":
        """Shallow copy: the dict is new, coefficient objects are shared."""
        return PauliSum(self.n_qubits, dict(self.terms))

    @classmethod
    def from_terms(cls, n_qubits: int, terms: Mapping[Union[str, PauliString], Any]) -> "PauliSum":
        psum = cls(n_qubits)
        for key, coeff in terms.items():
            if isinstance(key, PauliString):
                psum.add(key, coeff)
            else:
                psum.add_from_str(key, coeff)
        return psum

    def __add__(self, other: "PauliSum") -> "PauliSum":
        if not isinstance(other, PauliSum):
            return NotImplemented
        if other.n_qubits != self.n_qubits:
            raise DimensionMismatchError(
                f"Cannot add PauliSums on {self.n_qubits} and {other.n_qubits} qubits"
            )
        out = self.copy()
        for pstr, coeff in other.terms.items():
            out.add(pstr, coeff)
        return out

    def items(self) -> Iterator[Tuple[PauliString, Any]]:
        return iter(self.terms.items())

    def __iter__(self) -> Iterator[PauliString]:
        return iter(self.terms)

    def __contains__(self, pstr: object) -> bool:
        return pstr in self.terms

    def __len__(self):
        return len(self.terms)

    def __repr__(self):
        return f"PauliSum({self.n_qubits} qubits, {len(self.terms)} terms)"


__all__ = ["PauliSum"]
