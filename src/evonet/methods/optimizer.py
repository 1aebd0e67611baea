"""
Optimizers Module

Update rules applied by the training loop to the gradients accumulated
during one (or more) backward passes. Every trainable parameter (connection
weights and non-input biases) keeps its own optimizer state, stored in the
'opt_state' dict of its connection or node. State is gathered into numpy
arrays, updated in one vectorized step and scattered back, so parameters
added or removed between steps (by pruning, for instance) are handled
without special cases.

An optimizer is specified either by name ("adam") or by a dict holding its
name under "type" and any hyperparameter overrides:
    {"type": "adamw", "beta1": 0.9, "weight_decay": 0.01}
    {"type": "lookahead", "base": "adam", "k": 5, "alpha": 0.5}

Exported:
    optimizers:            Dictionary mapping optimizer names to update rules
    resolve_optimizer(spec): Validate an optimizer specification
    apply_optimizer(net, spec, rate): Perform one optimizer step on a network
"""

import numpy as np
from typing import TYPE_CHECKING, Any, Callable

from evonet.architecture.node import NodeType

if TYPE_CHECKING:
    from evonet.architecture.network import Network

_EPS = 1e-8

# Update rules
#
# Each rule receives the loss gradient 'g', the state arrays of the
# parameters (modified in place), the learning rate, the per-parameter
# step counts 't' (already incremented) and the current parameter values;
# it returns the change to add to the parameters.

def sgd(g, state, rate, t, theta, momentum: float = 0.0):
    state["v"] = momentum * state["v"] + g
    return -rate * state["v"]

def rmsprop(g, state, rate, t, theta, beta: float = 0.9, eps: float = _EPS):
    state["s"] = beta * state["s"] + (1 - beta) * g ** 2
    return -rate * g / (np.sqrt(state["s"]) + eps)

def adagrad(g, state, rate, t, theta, eps: float = _EPS):
    state["s"] = state["s"] + g ** 2
    return -rate * g / (np.sqrt(state["s"]) + eps)

def _moments(g, state, beta1, beta2):
    state["m"] = beta1 * state["m"] + (1 - beta1) * g
    state["v"] = beta2 * state["v"] + (1 - beta2) * g ** 2

def adam(g, state, rate, t, theta, beta1: float = 0.9, beta2: float = 0.999, eps: float = _EPS):
    _moments(g, state, beta1, beta2)
    m_hat = state["m"] / (1 - beta1 ** t)
    v_hat = state["v"] / (1 - beta2 ** t)
    return -rate * m_hat / (np.sqrt(v_hat) + eps)

def adamw(g, state, rate, t, theta, beta1: float = 0.9, beta2: float = 0.999, eps: float = _EPS,
          weight_decay: float = 0.01):
    return adam(g, state, rate, t, theta, beta1, beta2, eps) - rate * weight_decay * theta

def amsgrad(g, state, rate, t, theta, beta1: float = 0.9, beta2: float = 0.999, eps: float = _EPS):
    _moments(g, state, beta1, beta2)
    state["v_max"] = np.maximum(state["v_max"], state["v"])
    m_hat = state["m"] / (1 - beta1 ** t)
    v_hat = state["v_max"] / (1 - beta2 ** t)
    return -rate * m_hat / (np.sqrt(v_hat) + eps)

def adamax(g, state, rate, t, theta, beta1: float = 0.9, beta2: float = 0.999, eps: float = _EPS):
    state["m"] = beta1 * state["m"] + (1 - beta1) * g
    state["u"] = np.maximum(beta2 * state["u"], np.abs(g))
    return -rate / (1 - beta1 ** t) * state["m"] / (state["u"] + eps)

def nadam(g, state, rate, t, theta, beta1: float = 0.9, beta2: float = 0.999, eps: float = _EPS):
    _moments(g, state, beta1, beta2)
    m_hat = state["m"] / (1 - beta1 ** t)
    v_hat = state["v"] / (1 - beta2 ** t)
    nesterov = beta1 * m_hat + (1 - beta1) * g / (1 - beta1 ** t)
    return -rate * nesterov / (np.sqrt(v_hat) + eps)

def radam(g, state, rate, t, theta, beta1: float = 0.9, beta2: float = 0.999, eps: float = _EPS):
    _moments(g, state, beta1, beta2)
    m_hat   = state["m"] / (1 - beta1 ** t)
    rho_inf = 2 / (1 - beta2) - 1
    rho_t   = rho_inf - 2 * t * beta2 ** t / (1 - beta2 ** t)

    # variance rectification only once the variance estimate is tractable
    tractable = rho_t > 4
    rho_safe  = np.where(tractable, rho_t, 5.0)
    r         = np.sqrt((rho_safe - 4) * (rho_safe - 2) * rho_inf / ((rho_inf - 4) * (rho_inf - 2) * rho_safe))
    v_hat     = np.sqrt(state["v"] / (1 - beta2 ** t)) + eps
    return -rate * np.where(tractable, r * m_hat / v_hat, m_hat)

def lion(g, state, rate, t, theta, beta1: float = 0.9, beta2: float = 0.99):
    direction  = np.sign(beta1 * state["m"] + (1 - beta1) * g)
    state["m"] = beta2 * state["m"] + (1 - beta2) * g
    return -rate * direction

def adabelief(g, state, rate, t, theta, beta1: float = 0.9, beta2: float = 0.999, eps: float = _EPS):
    state["m"] = beta1 * state["m"] + (1 - beta1) * g
    state["s"] = beta2 * state["s"] + (1 - beta2) * (g - state["m"]) ** 2 + eps
    m_hat = state["m"] / (1 - beta1 ** t)
    s_hat = state["s"] / (1 - beta2 ** t)
    return -rate * m_hat / (np.sqrt(s_hat) + eps)

optimizers: dict[str, Callable] = {
    "sgd"      : sgd,
    "rmsprop"  : rmsprop,
    "adagrad"  : adagrad,
    "adam"     : adam,
    "adamw"    : adamw,
    "amsgrad"  : amsgrad,
    "adamax"   : adamax,
    "nadam"    : nadam,
    "radam"    : radam,
    "lion"     : lion,
    "adabelief": adabelief,
    }

# Names of the state arrays each rule reads and writes
_STATE_KEYS = {
    "sgd"      : ("v",),
    "rmsprop"  : ("s",),
    "adagrad"  : ("s",),
    "adam"     : ("m", "v"),
    "adamw"    : ("m", "v"),
    "amsgrad"  : ("m", "v", "v_max"),
    "adamax"   : ("m", "u"),
    "nadam"    : ("m", "v"),
    "radam"    : ("m", "v"),
    "lion"     : ("m",),
    "adabelief": ("m", "s"),
    }

def resolve_optimizer(spec) -> dict[str, Any]:
    """
    Validate an optimizer specification.

    Parameters:
        spec: an optimizer name, or a dict with its name under "type"

    Returns:
        dict with the keys
            name:      name of the update rule
            params:    hyperparameter overrides for the update rule
            lookahead: None, or {"k": ..., "alpha": ...} for the lookahead wrapper
    """
    if isinstance(spec, str):
        spec = {"type": spec}
    if not isinstance(spec, dict) or "type" not in spec:
        raise ValueError(f"Invalid optimizer specification {spec!r}")

    params = {key: value for key, value in spec.items() if key != "type"}
    name   = str(spec["type"]).lower()

    if name == "lookahead":
        base = params.pop("base", "adam")
        if isinstance(base, dict):
            inner = resolve_optimizer(base)
        else:
            inner = resolve_optimizer({"type": base})
        if inner["lookahead"] is not None:
            raise ValueError("Nested lookahead optimizers are not supported")
        k     = int(params.pop("k", 5))
        alpha = float(params.pop("alpha", 0.5))
        if k < 1 or not 0 < alpha <= 1:
            raise ValueError("Lookahead requires k >= 1 and alpha in (0,1]")
        inner["params"].update(params)
        inner["lookahead"] = {"k": k, "alpha": alpha}
        return inner

    if name not in optimizers:
        raise ValueError(f"Unknown optimizer '{name}'")
    return {"name": name, "params": params, "lookahead": None}

def _trainable(net: 'Network') -> list[tuple[Any, str, str]]:
    """(owner, value attribute, accumulated delta attribute) for every trainable parameter."""
    params = [(conn, "weight", "total_delta_weight") for conn in net.connections + net.selfconns]
    params += [(node, "bias", "total_delta_bias") for node in net.nodes if node.type is not NodeType.INPUT]
    return params

def apply_optimizer(net: 'Network', spec, rate: float, scale: float = 1.0):
    """
    Perform one optimizer step on every trainable parameter of a network,
    using the deltas accumulated by 'propagate' (with a unit learning rate),
    then reset the accumulators.

    Parameters:
        net:   the network
        spec:  optimizer specification (see 'resolve_optimizer'), or its resolved form
        rate:  learning rate
        scale: factor the accumulated deltas are divided by (batch size, loss scale)
    """
    resolved = spec if isinstance(spec, dict) and "name" in spec else resolve_optimizer(spec)
    name     = resolved["name"]
    params   = _trainable(net)
    if not params:
        return

    # accumulated deltas point downhill: the loss gradient is their opposite
    g     = -np.array([getattr(owner, delta) for owner, _, delta in params], dtype=float) / scale
    theta = np.array([getattr(owner, value) for owner, value, _ in params], dtype=float)
    t     = np.array([owner.opt_state.get("t", 0.0) for owner, _, _ in params]) + 1.0
    state = {key: np.array([owner.opt_state.get(key, 0.0) for owner, _, _ in params])
             for key in _STATE_KEYS[name]}

    start = theta
    theta = theta + optimizers[name](g, state, rate, t, theta, **resolved["params"])

    lookahead = resolved["lookahead"]
    if lookahead is not None:
        slow = np.array([owner.opt_state.get("slow", initial) for (owner, _, _), initial in zip(params, start)])
        sync = (t % lookahead["k"]) == 0
        slow = np.where(sync, slow + lookahead["alpha"] * (theta - slow), slow)
        theta = np.where(sync, slow, theta)

    for i, (owner, value, delta) in enumerate(params):
        setattr(owner, value, float(theta[i]))
        setattr(owner, delta, 0.0)
        owner.opt_state["t"] = float(t[i])
        for key, array in state.items():
            owner.opt_state[key] = float(array[i])
        if lookahead is not None:
            owner.opt_state["slow"] = float(slow[i])
