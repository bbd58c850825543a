"""Exceptions raised by the propagation package."""


class DimensionMismatchError(ValueError):
    """Qubit count or parameter count disagrees between collaborating objects."""


class CoefficientContractError(TypeError):
    """A coefficient algebra is missing an operation the engine requires."""


__all__ = ["DimensionMismatchError", "CoefficientContractError"]
