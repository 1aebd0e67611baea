"""
evonet - Mutable neural networks for neuro-evolution.

This package provides a graph-structured neural network that can be trained
by backpropagation and evolved by structural mutation and crossover, together
with the building blocks an evolutionary driver needs (fitness scoring,
parallel population evaluation, a generation loop).

Main components:
- architecture: Nodes, connections and the Network graph (mutation, crossover,
                pruning, serialization, standalone export)
- methods:      Mutation operators, cost functions, learning rate policies, optimizers
- run:          Configuration, training loop, evaluation and evolution loop
- activations:  Activation functions and their derivatives

Example:
    >>> from evonet import Network
    >>> net = Network.create_mlp(2, [4], 1, seed=42)
    >>> xor = [{"input": [0, 0], "output": [0]}, {"input": [0, 1], "output": [1]},
    ...        {"input": [1, 0], "output": [1]}, {"input": [1, 1], "output": [0]}]
    >>> net.train(xor, iterations=1000, rate=0.3)
"""

__version__ = "0.1.0"

# Import main classes for convenient access
from evonet.run.config                      import Config
from evonet.architecture.network            import Network
from evonet.architecture.node               import Node, NodeType
from evonet.architecture.connection         import Connection
from evonet.architecture.innovation_tracker import InnovationTracker
from evonet.methods                         import mutation
from evonet.run.evaluation                  import (score_network,
                                                    evaluate_population,
                                                    EvolutionLoop)

__all__ = [
    "Config",
    "Network",
    "Node",
    "NodeType",
    "Connection",
    "InnovationTracker",
    "mutation",
    "score_network",
    "evaluate_population",
    "EvolutionLoop",
]
