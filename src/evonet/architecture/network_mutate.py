"""
Network Mutation Module

Implementation of the mutation operators defined in 'evonet.methods.mutation'.
Each operator picks one random eligible target and modifies the network; if
there is no eligible target the operator does nothing (and warns, if warnings
are enabled in the configuration).

Functions:
    mutate(net, method): Apply one mutation operator to a network
"""

from typing import TYPE_CHECKING

from evonet.architecture.node               import Node, NodeType
from evonet.architecture.innovation_tracker import InnovationTracker
from evonet.methods                         import mutation

if TYPE_CHECKING:
    from evonet.architecture.network import Network

def mutate(net: 'Network', method):
    """
    Apply one mutation operator to a network.

    Parameters:
        net:    the network to mutate
        method: a MutationOperator, or the name of one
    """
    if method is None:
        raise ValueError("No (correct) mutate method given!")
    if isinstance(method, str):
        method = mutation.operators.get(method, mutation.MutationOperator(method))

    handler = _handlers.get(getattr(method, 'name', None))
    if handler is None:
        net._warn(f"Unknown mutation method '{method}'")
        return

    handler(net, method)
    net._mark_dirty()

def _param(net: 'Network', method, name: str, config_name: str):
    """An operator parameter, falling back to the configuration when unset."""
    value = method.params.get(name)
    return getattr(net.config, config_name) if value is None else value

def _mod_activation(net: 'Network', node: Node, allowed: list[str]):
    """Switch a node to a different activation function among 'allowed'."""
    if not allowed:
        return
    if node.squash in allowed:
        if len(allowed) == 1:
            return
        index = allowed.index(node.squash)
        index = (index + net.rng.randrange(1, len(allowed))) % len(allowed)
    else:
        index = net.rng.randrange(len(allowed))
    node.squash = allowed[index]

def _add_node(net: 'Network', method):
    if not net.connections:
        # nothing to split: connect the first input to the first output
        net.connect(net.nodes[0], net.nodes[net.input])
        if not net.connections:
            net._warn("No connection to split!")
            return

    conn      = net.rng.choice(net.connections)
    gater     = conn.gater
    from_node = conn.from_node
    to_node   = conn.to_node
    net.disconnect(from_node, to_node)

    gene_id = InnovationTracker.get_split_node_id(from_node.gene_id, to_node.gene_id, net._gene_ids())
    node    = net._create_node(NodeType.HIDDEN, gene_id)
    _mod_activation(net, node, net.config.activation_options)

    # new node goes right before 'to_node', but never before an input or after an output
    position = max(net.input, min(to_node.index, len(net.nodes) - net.output))
    net._insert_node(node, position)

    new_conns = net.connect(from_node, node) + net.connect(node, to_node)
    if gater is not None and new_conns:
        net.gate(gater, net.rng.choice(new_conns))

def _sub_node(net: 'Network', method):
    hidden = [node for node in net.nodes if node.type is NodeType.HIDDEN]
    if not hidden:
        net._warn("No more nodes left to remove!")
        return
    keep_gates = _param(net, method, 'keep_gates', 'keep_gates')
    net.remove(net.rng.choice(hidden), keep_gates=keep_gates)

def _add_conn(net: 'Network', method):
    existing  = {(id(c.from_node), id(c.to_node)) for c in net.connections}
    available = []
    for i in range(len(net.nodes) - net.output):
        node1 = net.nodes[i]
        for j in range(max(i + 1, net.input), len(net.nodes)):
            node2 = net.nodes[j]
            if (id(node1), id(node2)) not in existing:
                available.append((node1, node2))

    if not available:
        net._warn("No more connections to be made!")
        return
    net.connect(*net.rng.choice(available))

def _is_last_link_into_layer(net: 'Network', conn) -> bool:
    """
    Whether removing 'conn' could cut its source off from the positional
    "layer" of its target: the nodes of the same type as the target lying
    within max(input, output) positions of it. This is a heuristic; the
    network has no notion of layers.
    """
    to_node = conn.to_node
    span    = max(net.input, net.output)
    peers   = {id(n) for n in net.nodes if n.type is to_node.type and abs(n.index - to_node.index) < span}
    links   = sum(1 for c in conn.from_node.outgoing if id(c.to_node) in peers)
    return links <= 1

def _sub_conn(net: 'Network', method):
    possible = [conn for conn in net.connections
                if len(conn.from_node.outgoing) > 1
                and len(conn.to_node.incoming) > 1
                and conn.to_node.index > conn.from_node.index
                and not _is_last_link_into_layer(net, conn)]
    if not possible:
        net._warn("No connections to remove!")
        return
    conn = net.rng.choice(possible)
    net.disconnect(conn.from_node, conn.to_node)

def _mod_weight(net: 'Network', method):
    candidates = net.connections + net.selfconns
    if not candidates:
        net._warn("No connections to modify!")
        return
    low  = _param(net, method, 'min', 'mod_weight_min')
    high = _param(net, method, 'max', 'mod_weight_max')
    conn = net.rng.choice(candidates)
    conn.weight += net.rng.uniform(low, high)

def _mod_bias(net: 'Network', method):
    candidates = net.nodes[net.input:]
    low  = _param(net, method, 'min', 'mod_bias_min')
    high = _param(net, method, 'max', 'mod_bias_max')
    node = net.rng.choice(candidates)
    node.bias += net.rng.uniform(low, high)

def _mod_activation_op(net: 'Network', method):
    mutate_output = _param(net, method, 'mutate_output', 'mutate_output')
    allowed       = method.params.get('allowed') or net.config.activation_options
    end           = len(net.nodes) if mutate_output else len(net.nodes) - net.output
    candidates    = net.nodes[net.input:end]
    if not candidates:
        net._warn("No nodes that allow mutation of activation function")
        return
    _mod_activation(net, net.rng.choice(candidates), allowed)

def _add_self_conn(net: 'Network', method):
    if net.enforce_acyclic:
        return
    candidates = [node for node in net.nodes[net.input:] if node.self_connection is None]
    if not candidates:
        net._warn("No more self-connections to add!")
        return
    node = net.rng.choice(candidates)
    net.connect(node, node)

def _sub_self_conn(net: 'Network', method):
    if not net.selfconns:
        net._warn("No more self-connections to remove!")
        return
    conn = net.rng.choice(net.selfconns)
    net.disconnect(conn.from_node, conn.to_node)

def _add_gate(net: 'Network', method):
    candidates = [conn for conn in net.connections + net.selfconns if conn.gater is None]
    gaters     = net.nodes[net.input:]
    if not candidates or not gaters:
        net._warn("No more connections to gate!")
        return
    node = net.rng.choice(gaters)
    conn = net.rng.choice(candidates)
    net.gate(node, conn)

def _sub_gate(net: 'Network', method):
    if not net.gates:
        net._warn("No more connections to ungate!")
        return
    net.ungate(net.rng.choice(net.gates))

def _add_back_conn(net: 'Network', method):
    if net.enforce_acyclic:
        return
    existing  = {(id(c.from_node), id(c.to_node)) for c in net.connections}
    available = []
    for i in range(net.input, len(net.nodes)):
        node1 = net.nodes[i]
        for j in range(net.input, i):
            node2 = net.nodes[j]
            if (id(node1), id(node2)) not in existing:
                available.append((node1, node2))

    if not available:
        net._warn("No more back-connections to be made!")
        return
    net.connect(*net.rng.choice(available))

def _sub_back_conn(net: 'Network', method):
    possible = [conn for conn in net.connections
                if len(conn.from_node.outgoing) > 1
                and len(conn.to_node.incoming) > 1
                and conn.from_node.index > conn.to_node.index]
    if not possible:
        net._warn("No back-connections to remove!")
        return
    conn = net.rng.choice(possible)
    net.disconnect(conn.from_node, conn.to_node)

def _swap_nodes(net: 'Network', method):
    mutate_output = _param(net, method, 'mutate_output', 'mutate_output')
    end           = len(net.nodes) if mutate_output else len(net.nodes) - net.output
    candidates    = net.nodes[net.input:end]
    if len(candidates) < 2:
        net._warn("No nodes that allow swapping of bias and activation function")
        return
    node1, node2 = net.rng.sample(candidates, 2)
    node1.bias, node2.bias     = node2.bias, node1.bias
    node1.squash, node2.squash = node2.squash, node1.squash

def _reinit_weight(net: 'Network', method):
    candidates = net.nodes[net.input:]
    low  = _param(net, method, 'min', 'mod_weight_min')
    high = _param(net, method, 'max', 'mod_weight_max')
    node = net.rng.choice(candidates)
    conns = node.incoming + node.outgoing
    if node.self_connection is not None:
        conns.append(node.self_connection)
    for conn in conns:
        conn.weight = net.rng.uniform(low, high)

_handlers = {
    "ADD_NODE"      : _add_node,
    "SUB_NODE"      : _sub_node,
    "ADD_CONN"      : _add_conn,
    "SUB_CONN"      : _sub_conn,
    "MOD_WEIGHT"    : _mod_weight,
    "MOD_BIAS"      : _mod_bias,
    "MOD_ACTIVATION": _mod_activation_op,
    "ADD_SELF_CONN" : _add_self_conn,
    "SUB_SELF_CONN" : _sub_self_conn,
    "ADD_GATE"      : _add_gate,
    "SUB_GATE"      : _sub_gate,
    "ADD_BACK_CONN" : _add_back_conn,
    "SUB_BACK_CONN" : _sub_back_conn,
    "SWAP_NODES"    : _swap_nodes,
    "REINIT_WEIGHT" : _reinit_weight,
    }
