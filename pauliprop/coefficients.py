"""Coefficient algebras used by the propagation engine.

The engine never inspects a coefficient directly. Every arithmetic step goes
through a `CoefficientAlgebra`, so the same propagation code runs on plain
floats, on torch tensors recorded by autograd, or on `FrequencyTracker`
wrappers carrying branch counts for truncation.
"""

from __future__ import annotations

import numbers
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Optional, TYPE_CHECKING, cast

import numpy as np

torch: Any
try:
    import torch as _torch

    torch = _torch
    _TORCH_AVAILABLE = True
except Exception:  # pragma: no cover - optional dependency
    torch = cast(Any, None)
    _TORCH_AVAILABLE = False

if TYPE_CHECKING:
    from torch import Tensor
else:  # pragma: no cover - typing only
    Tensor = Any

from .errors import CoefficientContractError
from .paulisum import PauliSum


REQUIRED_OPERATIONS = (
    "zero",
    "one",
    "add",
    "scale",
    "mul_sin",
    "mul_cos",
    "abs_ge",
    "unwrap",
)


class CoefficientAlgebra(ABC):
    """Minimal arithmetic the propagation engine needs from a coefficient type."""

    @abstractmethod
    def zero(self) -> Any:
        ...

    @abstractmethod
    def one(self) -> Any:
        ...

    @abstractmethod
    def add(self, a: Any, b: Any) -> Any:
        ...

    @abstractmethod
    def scale(self, a: Any, s: float) -> Any:
        """Multiply by a real scalar (signs, noise damping)."""

    @abstractmethod
    def mul_sin(self, a: Any, theta: Any) -> Any:
        ...

    @abstractmethod
    def mul_cos(self, a: Any, theta: Any) -> Any:
        ...

    @abstractmethod
    def abs_ge(self, a: Any, threshold: float) -> bool:
        """True when |a| >= threshold."""

    @abstractmethod
    def unwrap(self, a: Any) -> Any:
        """Concrete numeric value of `a` (a float, or a tensor that keeps its graph)."""

    def lift(self, x: Any) -> Any:
        """Convert a plain number into this algebra's coefficient type."""
        return x

    def is_zero(self, a: Any) -> bool:
        """Whether `a` can be dropped from a sum without losing information."""
        return False

    def owns(self, a: Any) -> bool:
        """Whether `a` is a value of this algebra's coefficient type."""
        return True

    def zero_for(self, thetas: Any = None) -> Any:
        """Additive identity tied to `thetas` where the algebra records a graph."""
        return self.zero()


class FloatAlgebra(CoefficientAlgebra):
    """Plain real numbers."""

    def zero(self) -> float:
        return 0.0

    def one(self) -> float:
        return 1.0

    def add(self, a, b):
        return a + b

    def scale(self, a, s):
        return a * s

    def mul_sin(self, a, theta):
        return a * float(np.sin(theta))

    def mul_cos(self, a, theta):
        return a * float(np.cos(theta))

    def abs_ge(self, a, threshold):
        return bool(abs(a) >= threshold)

    def unwrap(self, a) -> float:
        return float(a)

    def lift(self, x) -> float:
        return float(x)

    def is_zero(self, a) -> bool:
        return a == 0

    def owns(self, a) -> bool:
        return isinstance(a, numbers.Real)

    def __repr__(self):
        return "FloatAlgebra()"


class TorchAlgebra(CoefficientAlgebra):
    """Torch scalars; sin/cos go through torch so autograd records every branch.

    Coefficients may be plain floats until they first meet a tensor angle.
    """

    def __init__(self, dtype: Any = None, device: Any = "cpu"):
        if not _TORCH_AVAILABLE:
            raise RuntimeError("PyTorch is required for TorchAlgebra.")
        self.dtype = torch.float64 if dtype is None else dtype
        self.device = device

    def _angle(self, theta: Any) -> Tensor:
        if isinstance(theta, torch.Tensor):
            return theta
        return torch.as_tensor(float(theta), dtype=self.dtype, device=self.device)

    def zero(self) -> Tensor:
        return torch.zeros((), dtype=self.dtype, device=self.device)

    def one(self) -> Tensor:
        return torch.ones((), dtype=self.dtype, device=self.device)

    def add(self, a, b):
        return a + b

    def scale(self, a, s):
        return a * s

    def mul_sin(self, a, theta):
        return a * torch.sin(self._angle(theta))

    def mul_cos(self, a, theta):
        return a * torch.cos(self._angle(theta))

    def abs_ge(self, a, threshold):
        value = a.detach() if isinstance(a, torch.Tensor) else a
        return bool(abs(float(value)) >= threshold)

    def unwrap(self, a) -> Tensor:
        return self.lift(a)

    def lift(self, x) -> Tensor:
        if isinstance(x, torch.Tensor):
            return x
        return torch.as_tensor(float(x), dtype=self.dtype, device=self.device)

    def is_zero(self, a) -> bool:
        if isinstance(a, torch.Tensor):
            # A zero value inside an autograd graph can still carry gradient.
            if a.requires_grad:
                return False
            return bool((a == 0).item())
        return a == 0

    def owns(self, a) -> bool:
        return isinstance(a, (torch.Tensor, numbers.Real))

    def zero_for(self, thetas=None) -> Tensor:
        if isinstance(thetas, torch.Tensor) and thetas.requires_grad:
            # Sum over an empty slice: 0, but part of the graph of thetas.
            return thetas.reshape(-1)[:0].sum().to(self.dtype)
        return self.zero()

    def __repr__(self):
        return f"TorchAlgebra(dtype={self.dtype}, device={self.device})"


@dataclass(frozen=True, eq=False)
class FrequencyTracker:
    """
    Coefficient wrapper carrying branch counts used for truncation.
    - coeff: the wrapped coefficient (float, tensor, ...)
    - nsins: number of sine factors on the path
    - ncos: number of cosine factors on the path
    - freq: number of branching rotations on the path (nsins + ncos)

    The counters never change the arithmetic value. When two trackers are
    added the element-wise minimum of the counters is kept.
    """
    coeff: Any
    nsins: int = 0
    ncos: int = 0
    freq: int = 0

    def __add__(self, other):
        """Add inner values with `+` and keep the minimum counters.

        No algebra is known here, so a plain float may meet a tensor: the torch
        algebra lifts floats lazily. `TrackedAlgebra.add` checks both inner
        values against its inner algebra.
        """
        if not isinstance(other, FrequencyTracker):
            return NotImplemented
        return FrequencyTracker(
            self.coeff + other.coeff,
            min(self.nsins, other.nsins),
            min(self.ncos, other.ncos),
            min(self.freq, other.freq),
        )

    def __float__(self):
        return float(self.coeff)

    def __repr__(self):
        return f"Tracker({self.coeff!r}, freq={self.freq}, nsins={self.nsins})"


class TrackedAlgebra(CoefficientAlgebra):
    """Algebra over FrequencyTracker values, delegating arithmetic to `inner`."""

    def __init__(self, inner: CoefficientAlgebra):
        self.inner = check_algebra(inner)

    @staticmethod
    def _require(a: Any) -> FrequencyTracker:
        if not isinstance(a, FrequencyTracker):
            raise CoefficientContractError(
                f"TrackedAlgebra expects FrequencyTracker coefficients, got {type(a).__name__}"
            )
        return a

    def zero(self) -> FrequencyTracker:
        return FrequencyTracker(self.inner.zero())

    def zero_for(self, thetas=None) -> FrequencyTracker:
        return FrequencyTracker(self.inner.zero_for(thetas))

    def one(self) -> FrequencyTracker:
        return FrequencyTracker(self.inner.one())

    def add(self, a, b):
        """Add two trackers whose inner values both belong to `inner`.

        For the torch algebra that includes plain floats not yet lifted to
        tensors; for the float algebra a tensor inner value is rejected.
        """
        a = self._require(a)
        b = self._require(b)
        for value in (a.coeff, b.coeff):
            if not self.inner.owns(value):
                raise CoefficientContractError(
                    f"{self.inner!r} cannot add inner coefficient of type {type(value).__name__}"
                )
        return FrequencyTracker(
            self.inner.add(a.coeff, b.coeff),
            min(a.nsins, b.nsins),
            min(a.ncos, b.ncos),
            min(a.freq, b.freq),
        )

    def scale(self, a, s):
        a = self._require(a)
        return replace(a, coeff=self.inner.scale(a.coeff, s))

    def mul_sin(self, a, theta):
        a = self._require(a)
        return FrequencyTracker(self.inner.mul_sin(a.coeff, theta), a.nsins + 1, a.ncos, a.freq + 1)

    def mul_cos(self, a, theta):
        a = self._require(a)
        return FrequencyTracker(self.inner.mul_cos(a.coeff, theta), a.nsins, a.ncos + 1, a.freq + 1)

    def abs_ge(self, a, threshold):
        return self.inner.abs_ge(self._require(a).coeff, threshold)

    def unwrap(self, a):
        return self.inner.unwrap(self._require(a).coeff)

    def lift(self, x) -> FrequencyTracker:
        if isinstance(x, FrequencyTracker):
            return x
        return FrequencyTracker(self.inner.lift(x))

    def is_zero(self, a) -> bool:
        return self.inner.is_zero(self._require(a).coeff)

    def owns(self, a) -> bool:
        return isinstance(a, FrequencyTracker) and self.inner.owns(a.coeff)

    def __repr__(self):
        return f"TrackedAlgebra({self.inner!r})"


def check_algebra(algebra: Any) -> Any:
    """Validate that `algebra` provides every operation the engine calls."""
    missing = [name for name in REQUIRED_OPERATIONS if not callable(getattr(algebra, name, None))]
    if missing:
        raise CoefficientContractError(
            f"{type(algebra).__name__} is missing coefficient operations: {', '.join(missing)}"
        )
    return algebra


def algebra_for(coeff: Any = None, thetas: Any = None) -> CoefficientAlgebra:
    """Pick the algebra matching a sample coefficient and a parameter vector."""
    if isinstance(coeff, FrequencyTracker):
        return TrackedAlgebra(algebra_for(coeff.coeff, thetas))
    if _TORCH_AVAILABLE:
        for value in (coeff, thetas):
            if isinstance(value, torch.Tensor):
                dtype = value.dtype if value.is_floating_point() else None
                return TorchAlgebra(dtype=dtype, device=value.device)
    return FloatAlgebra()


def algebra_for_sum(psum: PauliSum, thetas: Any = None) -> CoefficientAlgebra:
    """Pick the algebra for a whole PauliSum.

    Untouched terms may still hold plain floats next to tensors, so any tensor
    coefficient selects the torch algebra.
    """
    sample = None
    for coeff in psum.terms.values():
        inner = coeff.coeff if isinstance(coeff, FrequencyTracker) else coeff
        if _TORCH_AVAILABLE and isinstance(inner, torch.Tensor):
            sample = coeff
            break
        if sample is None:
            sample = coeff
    return algebra_for(sample, thetas)


def wrap_coefficients(psum: PauliSum) -> PauliSum:
    """New PauliSum whose coefficients are FrequencyTracker wrappers."""
    out = PauliSum(psum.n_qubits)
    for pstr, coeff in psum.terms.items():
        out.terms[pstr] = coeff if isinstance(coeff, FrequencyTracker) else FrequencyTracker(coeff)
    return out


def unwrap_coefficients(psum: PauliSum) -> PauliSum:
    """New PauliSum with FrequencyTracker wrappers removed."""
    out = PauliSum(psum.n_qubits)
    for pstr, coeff in psum.terms.items():
        out.terms[pstr] = coeff.coeff if isinstance(coeff, FrequencyTracker) else coeff
    return out


__all__ = [
    "REQUIRED_OPERATIONS",
    "CoefficientAlgebra",
    "FloatAlgebra",
    "TorchAlgebra",
    "FrequencyTracker",
    "TrackedAlgebra",
    "check_algebra",
    "algebra_for",
    "algebra_for_sum",
    "wrap_coefficients",
    "unwrap_coefficients",
]
