"""
Network Architecture Package

This package implements the network graph: its computational units (nodes),
the weighted edges between them (connections), and the tracker handing out
the stable gene IDs that let crossover align two networks.

Modules:
    node:               NodeType enumeration and Node class
    connection:         Connection class
    innovation_tracker: InnovationTracker class
    network:            Network class (and, in sibling 'network_*' modules,
                        the algorithms it exposes as methods)

Exported Classes:
    NodeType:          Enumeration for node types (INPUT, HIDDEN, OUTPUT)
    Node:              A single computational unit
    Connection:        Weighted edge between two nodes
    InnovationTracker: Global tracker for node gene IDs
"""

from evonet.architecture.connection         import Connection
from evonet.architecture.innovation_tracker import InnovationTracker
from evonet.architecture.node               import NodeType, Node

__all__ = ['Connection',
           'InnovationTracker',
           'NodeType',
           'Node']
