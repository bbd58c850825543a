"""Truncation policies applied to every candidate term during propagation."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .coefficients import CoefficientAlgebra, FrequencyTracker
from .paulis import PauliString, count_xy


# Returns True when the term should be dropped.
CustomTruncation = Callable[[PauliString, Any], bool]


@dataclass(frozen=True)
class TruncationPolicy:
    """
    Independent truncation thresholds. None means unbounded on that axis.
    - max_weight: drop strings with more non-identity sites
    - max_freq: drop paths with more branching rotations (needs FrequencyTracker)
    - max_sins: drop paths with more sine factors (needs FrequencyTracker)
    - min_abs_coeff: drop terms with |coeff| below this
    - max_xy: drop strings with more X/Y sites
    - custom: extra predicate (pstr, coeff) -> True to drop

    A term survives only if it passes every enabled predicate.
    """
    max_weight: Optional[int] = None
    max_freq: Optional[int] = None
    max_sins: Optional[int] = None
    min_abs_coeff: Optional[float] = None
    max_xy: Optional[int] = None
    custom: Optional[CustomTruncation] = None

    def __post_init__(self):
        for name in ("max_weight", "max_freq", "max_sins", "max_xy"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")
        if self.min_abs_coeff is not None and self.min_abs_coeff < 0.0:
            raise ValueError(f"min_abs_coeff must be >= 0, got {self.min_abs_coeff}")

    @property
    def requires_tracking(self) -> bool:
        """Whether the policy reads FrequencyTracker counters."""
        return self.max_freq is not None or self.max_sins is not None

    @property
    def is_unbounded(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def keeps(self, pstr: PauliString, coeff: Any, algebra: CoefficientAlgebra) -> bool:
        if self.max_weight is not None and pstr.weight > self.max_weight:
            return False
        if self.max_xy is not None and count_xy(pstr.x_mask, pstr.z_mask) > self.max_xy:
            return False
        if self.requires_tracking:
            if not isinstance(coeff, FrequencyTracker):
                raise TypeError(
                    "max_freq/max_sins truncation needs FrequencyTracker coefficients; "
                    "wrap them with wrap_coefficients() before in-place propagation"
                )
            if self.max_freq is not None and coeff.freq > self.max_freq:
                return False
            if self.max_sins is not None and coeff.nsins > self.max_sins:
                return False
        if self.min_abs_coeff is not None and not algebra.abs_ge(coeff, self.min_abs_coeff):
            return False
        if self.custom is not None and self.custom(pstr, coeff):
            return False
        return True


DEFAULT_POLICIES: Dict[str, TruncationPolicy] = {
    "exact": TruncationPolicy(),
    "standard": TruncationPolicy(min_abs_coeff=1e-10),
    "low_weight": TruncationPolicy(max_weight=6, min_abs_coeff=1e-8),
}


def resolve_policy(
    policy: Union[str, TruncationPolicy, None] = None,
    *,
    overrides: Optional[Mapping[str, Any]] = None,
) -> TruncationPolicy:
    """Turn a preset name or policy (plus optional field overrides) into a policy."""
    if policy is None:
        base = DEFAULT_POLICIES["exact"]
    elif isinstance(policy, TruncationPolicy):
        base = policy
    else:
        base = DEFAULT_POLICIES.get(str(policy))
        if base is None:
            allowed = ", ".join(sorted(DEFAULT_POLICIES.keys()))
            raise ValueError(f"Unknown truncation policy '{policy}'. Available policies: {allowed}")

    if not overrides:
        return base

    allowed_keys = {f.name for f in fields(TruncationPolicy)}
    for k in overrides:
        if k not in allowed_keys:
            raise ValueError(f"Unknown truncation override key: {k}")
    return replace(base, **dict(overrides))


__all__ = [
    "CustomTruncation",
    "TruncationPolicy",
    "DEFAULT_POLICIES",
    "resolve_policy",
]
