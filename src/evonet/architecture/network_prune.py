"""
Network Pruning Module

Sparsification of a network by removing its least salient connections,
either on a schedule that the training loop drives ('maybe_prune'), or in
a single step ('prune_to_sparsity').

Saliency:
    magnitude: |weight|
    snip:      |weight * gradient|, where the gradient is estimated from the
               accumulated (or, failing that, the previous) weight delta;
               connections with no gradient information fall back to |weight|

Functions:
    configure_pruning(net, ...):                 Install a pruning schedule
    maybe_prune(net, iteration):                 Prune according to the schedule
    prune_to_sparsity(net, target, method):      Prune immediately down to a sparsity
    get_current_sparsity(net):                   Fraction of the baseline connections pruned
"""

import math
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from evonet.architecture.network    import Network
    from evonet.architecture.connection import Connection

_METHODS = ("magnitude", "snip")

def _saliency(conn: 'Connection', method: str) -> float:
    if method == "snip":
        gradient = abs(conn.total_delta_weight) or abs(conn.previous_delta_weight)
        if gradient:
            return abs(conn.weight) * gradient
    return abs(conn.weight)

def _remove_least_salient(net: 'Network', count: int, method: str) -> int:
    """Disconnect the 'count' connections with the lowest saliency; returns how many were removed."""
    if count <= 0:
        return 0
    ranked = sorted(net.connections, key=lambda conn: _saliency(conn, method))
    for conn in ranked[:count]:
        net.disconnect(conn.from_node, conn.to_node)
    return min(count, len(ranked))

def _regrow(net: 'Network', count: int) -> int:
    """
    Add up to 'count' random forward connections, from a non-output node to
    a later non-input node. Returns how many were added.
    """
    candidates = [(source, target)
                  for i, source in enumerate(net.nodes[:len(net.nodes) - net.output])
                  for target in net.nodes[max(i + 1, net.input):]
                  if not source.is_projecting_to(target)]
    added = 0
    for source, target in net.rng.sample(candidates, min(count, len(candidates))):
        added += len(net.connect(source, target))
    return added

def configure_pruning(net            : 'Network',
                      start          : int,
                      end            : int,
                      target_sparsity: float,
                      regrow_fraction: float = 0.0,
                      frequency      : int   = 1,
                      method         : str   = "magnitude"):
    """
    Install a pruning schedule on a network.

    Between iterations 'start' and 'end' (inclusive) the sparsity ramps
    linearly from 0 to 'target_sparsity', relative to the number of
    connections at the time the schedule is installed.

    Parameters:
        net:             the network
        start:           first iteration at which pruning happens
        end:             iteration at which the target sparsity is reached
        target_sparsity: final fraction of connections removed, in (0, 1)
        regrow_fraction: fraction of the pruned connections regrown at random
        frequency:       prune every 'frequency' iterations
        method:          "magnitude" or "snip"
    """
    if end < start:
        raise ValueError("Pruning end iteration must not precede its start iteration")
    if not 0 < target_sparsity < 1:
        raise ValueError("Target sparsity must be in (0,1)")
    if frequency < 1:
        raise ValueError("Pruning frequency must be at least 1")
    if method not in _METHODS:
        raise ValueError(f"Unknown pruning method '{method}'")

    net._pruning = {
        "start"          : start,
        "end"            : end,
        "target_sparsity": target_sparsity,
        "regrow_fraction": regrow_fraction,
        "frequency"      : frequency,
        "method"         : method,
        "initial_count"  : len(net.connections),
    }
    net._last_pruned_at = None

def maybe_prune(net: 'Network', iteration: int) -> int:
    """
    Prune according to the installed schedule (no-op without one, outside
    the schedule window, off-frequency, or if this iteration was already
    handled).

    Parameters:
        net:       the network
        iteration: the current (global) training iteration

    Returns:
        the number of connections removed
    """
    schedule = net._pruning
    if schedule is None:
        return 0
    if iteration < schedule["start"] or iteration > schedule["end"]:
        return 0
    if net._last_pruned_at == iteration:
        return 0
    if (iteration - schedule["start"]) % schedule["frequency"] != 0:
        return 0
    base = schedule["initial_count"]
    if not base:
        return 0

    progress = (iteration - schedule["start"]) / max(1, schedule["end"] - schedule["start"])
    progress = min(1.0, max(0.0, progress))
    desired  = max(1, math.floor(base * (1 - schedule["target_sparsity"] * progress)))

    removed = _remove_least_salient(net, len(net.connections) - desired, schedule["method"])
    if removed and schedule["regrow_fraction"] > 0:
        _regrow(net, math.floor(removed * schedule["regrow_fraction"]))

    net._last_pruned_at = iteration
    if removed:
        net._mark_dirty()
    return removed

def prune_to_sparsity(net: 'Network', target_sparsity: float, method: str = "magnitude") -> int:
    """
    Prune immediately, so that at most a fraction '1 - target_sparsity' of
    the baseline connections remains. The baseline is the connection count
    at the first call, so repeated calls with the same target are no-ops.

    Parameters:
        net:             the network
        target_sparsity: fraction of the baseline connections to remove
        method:          "magnitude" or "snip"

    Returns:
        the number of connections removed
    """
    if method not in _METHODS:
        raise ValueError(f"Unknown pruning method '{method}'")
    if target_sparsity <= 0:
        return 0
    target_sparsity = min(target_sparsity, 0.999)

    if net._sparsity_base is None:
        net._sparsity_base = len(net.connections)
    desired = max(1, math.floor(net._sparsity_base * (1 - target_sparsity)))

    removed = _remove_least_salient(net, len(net.connections) - desired, method)
    if removed:
        net._mark_dirty()
    return removed

def get_current_sparsity(net: 'Network') -> float:
    """
    Fraction of the baseline connections that have been pruned. The baseline
    is the connection count when the pruning schedule was installed (or, with
    no schedule, at the first 'prune_to_sparsity' call); 0 with no baseline.
    """
    if net._pruning is not None:
        base = net._pruning["initial_count"]
    else:
        base = net._sparsity_base
    if not base:
        return 0.0
    return 1 - len(net.connections) / base
