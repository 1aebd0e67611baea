"""
Cost Functions Module

Each cost function maps a vector of targets and a vector of network
outputs to a scalar error (lower is better). Some cost functions also
have a per-output derivative, with respect to the output, which training
can use instead of the default 'target - output' error signal.

Exported:
    costs:            Dictionary mapping cost names to cost functions
    cost_derivatives: Dictionary mapping cost names to derivatives d(cost)/d(output)
"""

import numpy as np
from typing import Callable

_EPSILON = 1e-15

def mse(targets, outputs) -> float:
    """Mean squared error."""
    t, o = np.asarray(targets, dtype=float), np.asarray(outputs, dtype=float)
    return float(np.mean((t - o) ** 2))

def cross_entropy(targets, outputs) -> float:
    """Binary cross entropy, averaged over the outputs (outputs are clipped away from 0 and 1)."""
    t = np.asarray(targets, dtype=float)
    o = np.clip(np.asarray(outputs, dtype=float), _EPSILON, 1.0 - _EPSILON)
    return float(-np.mean(t * np.log(o) + (1.0 - t) * np.log(1.0 - o)))

def binary(targets, outputs) -> float:
    """Number of misclassified outputs (after rounding to the nearest half)."""
    t, o = np.asarray(targets, dtype=float), np.asarray(outputs, dtype=float)
    return float(np.sum(np.round(t * 2) != np.round(o * 2)))

def mae(targets, outputs) -> float:
    """Mean absolute error."""
    t, o = np.asarray(targets, dtype=float), np.asarray(outputs, dtype=float)
    return float(np.mean(np.abs(t - o)))

def mape(targets, outputs) -> float:
    """Mean absolute percentage error (as a fraction)."""
    t, o = np.asarray(targets, dtype=float), np.asarray(outputs, dtype=float)
    return float(np.mean(np.abs((o - t) / np.maximum(t, _EPSILON))))

def msle(targets, outputs) -> float:
    """Squared logarithmic error, summed over the outputs."""
    t, o = np.asarray(targets, dtype=float), np.asarray(outputs, dtype=float)
    return float(np.sum((np.log(np.maximum(t, _EPSILON)) - np.log(np.maximum(o, _EPSILON))) ** 2))

def hinge(targets, outputs) -> float:
    """Hinge loss, summed over the outputs (targets are expected in {-1, 1})."""
    t, o = np.asarray(targets, dtype=float), np.asarray(outputs, dtype=float)
    return float(np.sum(np.maximum(0.0, 1.0 - t * o)))

def mse_derivative(target: float, output: float) -> float:
    return 2.0 * (output - target)

def cross_entropy_derivative(target: float, output: float) -> float:
    output = min(max(output, _EPSILON), 1.0 - _EPSILON)
    return (output - target) / (output * (1.0 - output))

def mae_derivative(target: float, output: float) -> float:
    return float(np.sign(output - target))

costs = {
    "mse"          : mse,
    "cross_entropy": cross_entropy,
    "binary"       : binary,
    "mae"          : mae,
    "mape"         : mape,
    "msle"         : msle,
    "hinge"        : hinge
    }

cost_derivatives = {
    "mse"          : mse_derivative,
    "cross_entropy": cross_entropy_derivative,
    "mae"          : mae_derivative
    }

def get_cost(cost) -> tuple[str | None, Callable]:
    """
    Resolve a cost function given either its name or the function itself.

    Returns:
        (name, function); the name is None for a custom function
    """
    if isinstance(cost, str):
        if cost not in costs:
            raise ValueError(f"Unknown cost function '{cost}'")
        return cost, costs[cost]
    if not callable(cost):
        raise ValueError(f"Cost function must be callable or a name, got {cost!r}")
    for name, function in costs.items():
        if function is cost:
            return name, cost
    return None, cost
