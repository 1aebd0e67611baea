"""
Network Topology Module

Topological ordering and reachability queries over the nodes of a network.
The topological order is cached on the network and recomputed lazily after
any structural change.

Functions:
    get_topological_order(net): Nodes in a valid execution order
    is_feed_forward(net):       Whether every enabled connection points forward in list order
    has_path(net, a, b):        Whether 'b' is reachable from 'a'
"""

from collections import deque
from typing      import TYPE_CHECKING

if TYPE_CHECKING:
    from evonet.architecture.network import Network
    from evonet.architecture.node    import Node

def _topological_sort(net: 'Network') -> tuple[list['Node'], bool]:
    """
    Perform topological sort using Kahn's algorithm.

    Sorts the network nodes so that every node comes after all the sources
    of its (enabled, non-self) incoming connections. Ties are broken by list
    order. If the graph has a cycle, the list order is returned instead.

    Parameters:
        net: the network

    Returns:
        (nodes in topological order, whether the graph is acyclic)
    """
    in_degree = [0] * len(net.nodes)
    for conn in net.connections:
        if conn.enabled:
            in_degree[conn.to_node.index] += 1

    # Start with nodes that have no incoming edges
    queue  = deque([node for node in net.nodes if in_degree[node.index] == 0])
    result = []

    while queue:
        node = queue.popleft()
        result.append(node)

        # Process all outgoing edges
        for conn in node.outgoing:
            if not conn.enabled:
                continue
            neighbor = conn.to_node
            in_degree[neighbor.index] -= 1
            if in_degree[neighbor.index] == 0:
                queue.append(neighbor)

    if len(result) < len(net.nodes):
        return list(net.nodes), False
    return result, True

def get_topological_order(net: 'Network') -> list['Node']:
    if net._topo_dirty or net._topo_order is None:
        net._topo_order, net._topo_acyclic = _topological_sort(net)
        net._topo_dirty = False
    return net._topo_order

def is_acyclic(net: 'Network') -> bool:
    get_topological_order(net)
    return net._topo_acyclic

def is_feed_forward(net: 'Network') -> bool:
    """
    Whether every enabled connection goes from an earlier to a later node
    in list order, so that a single pass computes the same result whatever
    the (valid) order in which nodes are visited.
    """
    for conn in net.connections:
        if conn.enabled and conn.from_node.index >= conn.to_node.index:
            return False
    return is_acyclic(net)

def has_path(net: 'Network', from_node: 'Node', to_node: 'Node') -> bool:
    """
    Depth-first search along enabled connections.

    Parameters:
        net:       the network
        from_node: start node
        to_node:   node to reach

    Returns:
        True if 'to_node' is reachable from 'from_node' (a node always reaches itself)
    """
    if from_node is to_node:
        return True
    visited = set()
    stack   = [from_node]
    while stack:
        node = stack.pop()
        if node is to_node:
            return True
        if id(node) in visited:
            continue
        visited.add(id(node))
        for conn in node.outgoing:
            if conn.enabled:
                stack.append(conn.to_node)
    return False
