"""
Network Slab Module

A packed representation of the connections of a network, used to speed up
inference when the network is feed-forward, ungated, has no self-connections
and no stochastic regularization is active.

The slab stores, as contiguous numpy arrays, the source and destination
index of every connection, and the outgoing adjacency of every node in
compressed sparse row (CSR) form. Weights (and enabled flags) are gathered
afresh at every pass, so training or mutating parameters never leaves the
slab stale; only structural changes invalidate it.

Functions:
    get_connection_slab(net): Packed arrays describing the current graph
    fast_slab_activate(net, input): Forward pass using the packed arrays
"""

import numpy as np
from typing import TYPE_CHECKING, Any, Sequence

if TYPE_CHECKING:
    from evonet.architecture.network import Network

class _Slab:
    """
    Packed connection arrays for one structural version of a network.
    """

    def __init__(self, net: 'Network'):
        conns = list(net.connections)
        n     = len(net.nodes)
        m     = len(conns)

        self.conns     : list          = conns
        self.from_index: np.ndarray    = np.fromiter((c.from_node.index for c in conns), dtype=np.int64, count=m)
        self.to_index  : np.ndarray    = np.fromiter((c.to_node.index   for c in conns), dtype=np.int64, count=m)
        self.order     : list[int]     = [node.index for node in net.topological_order]

        # CSR outgoing adjacency: the connections leaving node i are
        # out_order[out_start[i]:out_start[i+1]]
        self.out_order: np.ndarray = np.argsort(self.from_index, kind='stable')
        counts                     = np.bincount(self.from_index, minlength=n) if m > 0 else np.zeros(n, dtype=np.int64)
        self.out_start: np.ndarray = np.concatenate(([0], np.cumsum(counts)))

    def weights(self) -> np.ndarray:
        return np.fromiter((c.weight if c.enabled else 0.0 for c in self.conns),
                           dtype=float, count=len(self.conns))

def _get_slab(net: 'Network') -> _Slab:
    if net._slab is None:
        net._slab = _Slab(net)
    return net._slab

def get_connection_slab(net: 'Network') -> dict[str, Any]:
    """
    Packed arrays describing the current graph.

    Returns:
        dict with the keys
            weights:    weight of each connection (0 if disabled)
            from_index: index of the source node of each connection
            to_index:   index of the destination node of each connection
            out_start:  CSR row pointers of the outgoing adjacency
            out_order:  CSR column data (connection positions) of the outgoing adjacency
    """
    slab = _get_slab(net)
    return {
        "weights"   : slab.weights(),
        "from_index": slab.from_index.copy(),
        "to_index"  : slab.to_index.copy(),
        "out_start" : slab.out_start.copy(),
        "out_order" : slab.out_order.copy(),
    }

def fast_slab_activate(net: 'Network', input: Sequence[float]) -> list[float]:
    """
    Forward pass using the packed arrays, visiting nodes in topological
    order and scattering each activation along the node's outgoing edges.

    Parameters:
        net:   the network (must satisfy 'net.can_use_fast_slab()')
        input: one value per input node

    Returns:
        one value per output node
    """
    slab    = _get_slab(net)
    nodes   = net.nodes
    weights = slab.weights()
    acc     = np.zeros(len(nodes))

    for i in slab.order:
        node = nodes[i]
        if i < net.input:
            a = float(input[i])
        else:
            state      = float(acc[i]) + node.bias
            a          = float(node._squash_fn(state))
            node.state = state
        node.activation = a

        start, end = slab.out_start[i], slab.out_start[i + 1]
        if end > start:
            edges = slab.out_order[start:end]
            acc[slab.to_index[edges]] += a * weights[edges]

    return [node.activation for node in nodes[len(nodes) - net.output:]]
