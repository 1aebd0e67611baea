"""
Network Serialization Module

Two persistent forms of a network:

Compact form (a list, used to ship genomes to evaluation workers):
    [activations, states, squashes, connections, input, output, biases]
    with one entry per node in the first three lists (and in 'biases'), and
    connections as {"from", "to", "weight", "gater"} records referencing nodes
    by position. Disabled connections carry no signal and are left out. The
    trailing 'biases' list is optional on input (biases default to 0 when it
    is absent).

Structured form (a dict, suitable for JSON):
    {"formatVersion": 2, "input", "output", "dropout", "enforceAcyclic",
     "nodes":       [{"type", "bias", "squash", "index", "geneId"}, ...],
     "connections": [{"from", "to", "weight", "gater", "enabled"}, ...]}

Functions:
    serialize(net):                         Compact form of a network
    deserialize(cls, data, input, output):  Network from its compact form
    to_json(net):                           Structured form of a network
    from_json(cls, data):                   Network from its structured form
"""

from typing import TYPE_CHECKING, Any

from evonet.activations                     import activations as _activations
from evonet.architecture.node               import Node, NodeType
from evonet.architecture.innovation_tracker import InnovationTracker

if TYPE_CHECKING:
    from evonet.architecture.network import Network
    from evonet.run.config           import Config

FORMAT_VERSION = 2

def _empty_network(cls, input: int, output: int, config: 'Config | None',
                   enforce_acyclic: bool | None = None) -> 'Network':
    net = cls(input, output, enforce_acyclic=enforce_acyclic, config=config)
    for conn in list(net.connections):
        net.disconnect(conn.from_node, conn.to_node)
    net.nodes = []
    net._mark_dirty()
    return net

def _resolve_squash(net: 'Network', name: str) -> str:
    if name in _activations:
        return name
    net._warn(f"Unknown squash function '{name}', falling back to identity")
    return "identity"

def _position_type(position: int, size: int, input: int, output: int) -> NodeType:
    if position < input:
        return NodeType.INPUT
    if position >= size - output:
        return NodeType.OUTPUT
    return NodeType.HIDDEN

def _position_gene_id(node_type: NodeType, position: int, size: int, input: int, output: int) -> int:
    """Gene ID for a node whose gene ID was not stored: positional for inputs/outputs, fresh otherwise."""
    if node_type is NodeType.INPUT:
        return position
    if node_type is NodeType.OUTPUT:
        return input + position - (size - output)
    return InnovationTracker.get_node_id()

def serialize(net: 'Network') -> list:
    """
    Compact form of a network.

    Returns:
        [activations, states, squashes, connections, input, output, biases]
    """
    net._reindex()
    activations = [node.activation for node in net.nodes]
    states      = [node.state      for node in net.nodes]
    squashes    = [node.squash     for node in net.nodes]
    biases      = [node.bias       for node in net.nodes]
    connections = [{"from"  : conn.from_node.index,
                    "to"    : conn.to_node.index,
                    "weight": conn.weight,
                    "gater" : conn.gater.index if conn.gater is not None else None}
                   for conn in net.connections + net.selfconns if conn.enabled]
    return [activations, states, squashes, connections, net.input, net.output, biases]

def deserialize(cls,
                data  : list,
                input : int | None = None,
                output: int | None = None,
                config: 'Config | None' = None) -> 'Network':
    """
    Rebuild a network from its compact form, under the acyclic mode of
    'config' (connections that mode rejects are dropped).

    Node types are implied by position (the first 'input' nodes are inputs,
    the last 'output' nodes are outputs). Connections referencing missing
    nodes are skipped with a warning; unknown squash names fall back to
    identity with a warning.

    Parameters:
        cls:    the network class to instantiate
        data:   the compact form
        input:  number of input nodes (defaults to the stored value)
        output: number of output nodes (defaults to the stored value)
        config: configuration of the new network

    Returns:
        the rebuilt network
    """
    activations, states, squashes, connections = data[:4]
    input  = input  if input  is not None else data[4]
    output = output if output is not None else data[5]
    biases = data[6] if len(data) > 6 else [0.0] * len(activations)

    net  = _empty_network(cls, input, output, config)
    size = len(activations)
    for i in range(size):
        node_type = _position_type(i, size, input, output)
        gene_id   = _position_gene_id(node_type, i, size, input, output)
        node      = Node(node_type, float(biases[i]), _resolve_squash(net, squashes[i]), gene_id)
        node.activation = activations[i]
        node.state      = states[i]
        net.nodes.append(node)
    net._reindex()

    for record in connections:
        if not (0 <= record["from"] < size and 0 <= record["to"] < size):
            net._warn("Invalid connection indices encountered during deserialize; skipping connection")
            continue
        created = net.connect(net.nodes[record["from"]], net.nodes[record["to"]], record["weight"])
        gater   = record.get("gater")
        if not created or gater is None:
            continue
        if 0 <= gater < size:
            net.gate(net.nodes[gater], created[0])
            created[0].gain = net.nodes[gater].activation
        else:
            net._warn("Invalid gater index encountered during deserialize; skipping gater assignment")

    net._mark_dirty()
    return net

def to_json(net: 'Network') -> dict[str, Any]:
    """
    Structured form of a network.

    Returns:
        dict with the keys formatVersion, input, output, dropout, enforceAcyclic,
        nodes, connections
    """
    net._reindex()
    nodes = [{"type"  : node.type.value,
              "bias"  : node.bias,
              "squash": node.squash,
              "index" : node.index,
              "geneId": node.gene_id}
             for node in net.nodes]
    connections = [{"from"   : conn.from_node.index,
                    "to"     : conn.to_node.index,
                    "weight" : conn.weight,
                    "gater"  : conn.gater.index if conn.gater is not None else None,
                    "enabled": conn.enabled}
                   for conn in net.connections + net.selfconns]
    return {
        "formatVersion" : FORMAT_VERSION,
        "input"         : net.input,
        "output"        : net.output,
        "dropout"       : net.dropout,
        "enforceAcyclic": net.enforce_acyclic,
        "nodes"         : nodes,
        "connections"   : connections,
    }

def from_json(cls, data: dict[str, Any], config: 'Config | None' = None) -> 'Network':
    """
    Rebuild a network from its structured form. A missing or unexpected
    format version triggers a warning, and the import is attempted anyway.
    The stored acyclic mode is restored; without one, the mode of 'config'
    applies and the connections it rejects are dropped.

    Parameters:
        cls:    the network class to instantiate
        data:   the structured form
        config: configuration of the new network

    Returns:
        the rebuilt network
    """
    if not isinstance(data, dict):
        raise ValueError("Invalid JSON for network")

    input, output = data["input"], data["output"]
    stored_acyclic = data.get("enforceAcyclic")
    net = _empty_network(cls, input, output, config, False if stored_acyclic is not None else None)
    if data.get("formatVersion") != FORMAT_VERSION:
        net._warn(f"Unknown formatVersion {data.get('formatVersion')!r}, attempting import")
    net.dropout = data.get("dropout") or 0.0

    size = len(data["nodes"])
    for i, record in enumerate(data["nodes"]):
        if "type" in record:
            node_type = NodeType(record["type"])
        else:
            node_type = _position_type(i, size, input, output)
        gene_id = record.get("geneId")
        if gene_id is None:
            gene_id = _position_gene_id(node_type, i, size, input, output)
        net.nodes.append(Node(node_type, float(record.get("bias", 0.0)),
                              _resolve_squash(net, record.get("squash", "identity")), gene_id))
    net._reindex()
    InnovationTracker.reserve(max(net._gene_ids(), default=-1) + 1)

    for record in data["connections"]:
        if not (0 <= record["from"] < size and 0 <= record["to"] < size):
            net._warn("Invalid connection indices encountered during import; skipping connection")
            continue
        created = net.connect(net.nodes[record["from"]], net.nodes[record["to"]], record["weight"])
        if not created:
            continue
        gater = record.get("gater")
        if gater is not None and 0 <= gater < size:
            net.gate(net.nodes[gater], created[0])
        if "enabled" in record:
            created[0].enabled = bool(record["enabled"])

    if stored_acyclic is not None:
        net._enforce_acyclic = bool(stored_acyclic)
    net._mark_dirty()
    return net
