"""
Network Genetic Module

Crossover of two networks. Genomes are aligned by historical markings:
nodes by their gene ID, connections by their innovation ID (itself derived
from the gene IDs of the endpoints). Positions in the node lists play no
role in the alignment, so parents whose mutation histories have diverged
are still recombined gene by gene.

Functions:
    cross_over(cls, network1, network2, equal): Offspring of two networks
"""

from typing import TYPE_CHECKING

from evonet.architecture.node import Node, NodeType

if TYPE_CHECKING:
    from evonet.architecture.network import Network

def _relative_position(net: 'Network', node: Node) -> float:
    """Position of a hidden node within the hidden block of its network, in [0, 1]."""
    hidden = net.number_nodes_hidden
    return (node.index - net.input + 0.5) / max(1, hidden)

def _copy_node(node: Node) -> Node:
    return Node(node.type, node.bias, node.squash, node.gene_id)

def cross_over(cls, network1: 'Network', network2: 'Network', equal: bool = False) -> 'Network':
    """
    Create an offspring from two parent networks.

    Node genes:
        - present in both parents: inherited from a random parent
        - present in one parent:   inherited if that parent is the fitter one
                                   (or under 'equal', or when the scores tie)
    Under 'equal' (or tied scores) the offspring size is drawn between the
    sizes of both parents, and surplus disjoint hidden genes are dropped at
    random; otherwise the offspring has the size of the fitter parent.

    Connection genes:
        - present in both parents: inherited from a random parent
        - present in one parent:   inherited from the fitter parent
                                   (with probability 1/2 each under 'equal')
        A gene disabled in either parent is inherited disabled, unless it is
        re-enabled (with probability 'reenable_probability').
        A connection is only created if both its endpoints were inherited.

    Parameters:
        cls:      the network class to instantiate
        network1: first parent
        network2: second parent
        equal:    treat both parents as equally fit

    Returns:
        the offspring network
    """
    if network1.input != network2.input or network1.output != network2.output:
        raise ValueError("Networks don't have the same input/output size!")

    rng    = network1.rng
    config = network1.config
    score1 = network1.score if network1.score is not None else 0.0
    score2 = network2.score if network2.score is not None else 0.0
    equal  = equal or score1 == score2
    fitter = network1 if score1 > score2 else network2

    offspring = cls(network1.input, network1.output,
                    enforce_acyclic=network1.enforce_acyclic or network2.enforce_acyclic,
                    seed=rng.getrandbits(32), config=config)
    for conn in list(offspring.connections):
        offspring.disconnect(conn.from_node, conn.to_node)

    genes1 = {node.gene_id: node for node in network1.nodes}
    genes2 = {node.gene_id: node for node in network2.nodes}

    # Input and output nodes: every network of this size has the same ones
    inputs  = [_copy_node(node) for node in network1.nodes[:network1.input]]
    outputs = []
    for node in network1.nodes[len(network1.nodes) - network1.output:]:
        other = genes2.get(node.gene_id, node)
        outputs.append(_copy_node(node if rng.random() < 0.5 else other))

    # Hidden nodes: (chosen parent's node, parent) per gene ID
    hidden   = {}
    disjoint = []
    for gene_id, node in genes1.items():
        if node.type is not NodeType.HIDDEN:
            continue
        if gene_id in genes2:
            hidden[gene_id] = (node, network1) if rng.random() < 0.5 else (genes2[gene_id], network2)
        elif equal or fitter is network1:
            hidden[gene_id] = (node, network1)
            disjoint.append(gene_id)
    for gene_id, node in genes2.items():
        if node.type is not NodeType.HIDDEN or gene_id in genes1:
            continue
        if equal or fitter is network2:
            hidden[gene_id] = (node, network2)
            disjoint.append(gene_id)

    if equal:
        size_low  = min(network1.number_nodes_hidden, network2.number_nodes_hidden)
        size_high = max(network1.number_nodes_hidden, network2.number_nodes_hidden)
        target    = rng.randint(size_low, size_high)
        surplus   = len(hidden) - target
        if surplus > 0:
            for gene_id in rng.sample(disjoint, min(surplus, len(disjoint))):
                del hidden[gene_id]

    ordered = sorted(hidden.items(), key=lambda item: (_relative_position(item[1][1], item[1][0]), item[0]))
    offspring.nodes = inputs + [_copy_node(node) for _, (node, _) in ordered] + outputs
    offspring._reindex()
    offspring._mark_dirty()
    new_nodes = {node.gene_id: node for node in offspring.nodes}

    # Connections, aligned by innovation ID
    conns1 = {conn.innovation: conn for conn in network1.connections + network1.selfconns}
    conns2 = {conn.innovation: conn for conn in network2.connections + network2.selfconns}

    chosen = []
    for innovation, conn in conns1.items():
        if innovation in conns2:
            other   = conns2[innovation]
            enabled = conn.enabled and other.enabled
            chosen.append((conn if rng.random() < 0.5 else other, enabled))
        elif (fitter is network1 and not equal) or (equal and rng.random() < 0.5):
            chosen.append((conn, conn.enabled))
    for innovation, conn in conns2.items():
        if innovation in conns1:
            continue
        if (fitter is network2 and not equal) or (equal and rng.random() < 0.5):
            chosen.append((conn, conn.enabled))

    for conn, enabled in chosen:
        from_node = new_nodes.get(conn.from_node.gene_id)
        to_node   = new_nodes.get(conn.to_node.gene_id)
        if from_node is None or to_node is None:
            continue

        # a connection that was forward in its parent must stay forward
        was_forward = conn.from_node.index < conn.to_node.index
        if was_forward and from_node.index >= to_node.index:
            continue

        created = offspring.connect(from_node, to_node, conn.weight)
        if not created:
            continue
        if not enabled and rng.random() >= config.reenable_probability:
            created[0].enabled = False

        if conn.gater is not None:
            gater = new_nodes.get(conn.gater.gene_id)
            if gater is not None:
                offspring.gate(gater, created[0])

    return offspring
