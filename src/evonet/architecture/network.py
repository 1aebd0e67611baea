"""
Network Module

This module implements the Network class: a mutable, graph-structured
neural network that can be trained by backpropagation and evolved by
structural mutation and crossover.

The network owns its nodes (inputs first, outputs last, hidden nodes in
between), its connections, its self-connections and the list of gated
connections. Derived state (topological order, packed slab) is cached and
invalidated by every structural change; it is rebuilt lazily on next use.

Most of the heavier algorithms live in sibling modules and are exposed
here as methods:
    network_topology:   topological order, reachability
    network_slab:       packed fast-path inference
    network_mutate:     structural and parametric mutation operators
    network_genetic:    crossover
    network_prune:      pruning and sparsification
    network_serialize:  compact and structured serialization
    network_standalone: standalone source code export

Classes:
    Network: Mutable neural network graph
"""

import math
import random
import warnings
from typing import Any, Callable, Sequence

from evonet.architecture.connection         import Connection
from evonet.architecture.node               import Node, NodeType
from evonet.architecture.innovation_tracker import InnovationTracker
from evonet.architecture                    import network_topology
from evonet.architecture                    import network_slab
from evonet.architecture                    import network_mutate
from evonet.architecture                    import network_genetic
from evonet.architecture                    import network_prune
from evonet.architecture                    import network_serialize
from evonet.architecture                    import network_standalone
from evonet.methods                         import mutation
from evonet.run.config                      import Config
from evonet.run                             import trainer

class Network:
    """
    A mutable neural network graph.

    Public Attributes:
        input:       Number of input nodes
        output:      Number of output nodes
        nodes:       All nodes (inputs first, then hidden, then outputs)
        connections: All connections except self-connections
        selfconns:   All self-connections
        gates:       All gated connections
        dropout:     Dropout probability for hidden nodes during training
        score:       Fitness of the network (set by the evolutionary loop)
        rng:         Pseudo-random generator used by every stochastic operation

    Public Properties:
        number_nodes:               Total number of nodes in the network
        number_nodes_hidden:        Number of hidden nodes in the network
        number_connections:         Total number of connections (excluding self-connections)
        number_connections_enabled: Number of enabled connections
        enforce_acyclic:            Whether backward and self connections are rejected
        topological_order:          Nodes in a valid execution order

    Public Methods:
        activate(input, training):  Forward pass (with traces, for training)
        no_trace_activate(input):   Forward pass for inference
        propagate(...):             Backward pass
        connect / disconnect / gate / ungate / remove: structural primitives
        mutate(method):             Apply one mutation operator
        cross_over(a, b, equal):    Offspring of two networks
        configure_pruning / prune_to_sparsity / get_current_sparsity: sparsification
        serialize / deserialize / to_json / from_json / clone: persistence
        standalone():               Python source of a standalone forward function
        train(dataset, ...) / test(dataset, cost): gradient-based training
    """

    def __init__(self,
                 input          : int,
                 output         : int,
                 min_hidden     : int           = 0,
                 enforce_acyclic: bool   | None = None,
                 seed           : int    | None = None,
                 config         : Config | None = None):
        """
        Create a network with every input connected to every output.

        Parameters:
            input:           Number of input nodes
            output:          Number of output nodes
            min_hidden:      Minimum number of hidden nodes (added by splitting connections)
            enforce_acyclic: Whether backward and self connections are rejected
                             (defaults to the configuration value)
            seed:            Seed for the network's pseudo-random generator
            config:          Stores configuration parameters
        """
        if input is None or output is None or input <= 0 or output <= 0:
            raise ValueError("No input or output size given")

        self._config: Config        = config if config is not None else Config()
        self.rng    : random.Random = random.Random(seed)

        self.input      : int              = input
        self.output     : int              = output
        self.nodes      : list[Node]       = []
        self.connections: list[Connection] = []
        self.selfconns  : list[Connection] = []
        self.gates      : list[Connection] = []
        self.dropout    : float            = 0.0
        self.score      : float | None     = None

        if enforce_acyclic is None:
            enforce_acyclic = self._config.enforce_acyclic
        self._enforce_acyclic: bool = enforce_acyclic

        # Derived caches
        self._topo_order  : list[Node] | None = None
        self._topo_dirty  : bool              = True
        self._topo_acyclic: bool              = True
        self._slab                            = None

        # Stochastic regularization
        self._weight_noise_std: float = 0.0
        self._dropconnect_p   : float = 0.0
        self._masks_dirty     : bool  = False
        self._perturbed       : bool  = False

        # Training / pruning bookkeeping
        self._training_step   : int                   = 0
        self._global_epoch    : int                   = 0
        self._pruning         : dict | None           = None
        self._last_pruned_at  : int | None            = None
        self._sparsity_base   : int | None            = None
        self._last_stats      : dict[str, Any] | None = None

        InnovationTracker.reserve(input + output)
        for i in range(input + output):
            node_type = NodeType.INPUT if i < input else NodeType.OUTPUT
            self.nodes.append(self._create_node(node_type, gene_id=i))
        self._reindex()

        for i in range(input):
            for j in range(input, input + output):
                weight = self.rng.random() * input * math.sqrt(2 / input)
                self.connect(self.nodes[i], self.nodes[j], weight)

        for _ in range(min_hidden):
            if self.connections:
                self.mutate(mutation.ADD_NODE)
            else:
                node = self._create_node(NodeType.HIDDEN, InnovationTracker.get_node_id())
                self._insert_node(node, len(self.nodes) - self.output)

    @classmethod
    def create_mlp(cls,
                   input        : int,
                   hidden_counts: Sequence[int],
                   output       : int,
                   seed         : int    | None = None,
                   config       : Config | None = None) -> 'Network':
        """
        Create a layered feed-forward network (multilayer perceptron),
        with every node of a layer connected to every node of the next.

        Parameters:
            input:         Number of input nodes
            hidden_counts: Number of nodes of each hidden layer
            output:        Number of output nodes
            seed:          Seed for the network's pseudo-random generator
            config:        Stores configuration parameters

        Returns:
            the new network
        """
        net = cls(input, output, seed=seed, config=config)
        for conn in list(net.connections):
            net.disconnect(conn.from_node, conn.to_node)

        layers   = [net.nodes[:input]]
        position = input
        for count in hidden_counts:
            layer = []
            for _ in range(count):
                node = net._create_node(NodeType.HIDDEN, InnovationTracker.get_node_id())
                net._insert_node(node, position)
                layer.append(node)
                position += 1
            layers.append(layer)
        layers.append(net.nodes[-output:])

        for prev_layer, next_layer in zip(layers, layers[1:]):
            for to_node in next_layer:
                for from_node in prev_layer:
                    net.connect(from_node, to_node)
        return net

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def number_nodes(self) -> int:
        """Total number of nodes in the network."""
        return len(self.nodes)

    @property
    def number_nodes_hidden(self) -> int:
        """Number of hidden nodes in the network."""
        return len(self.nodes) - self.input - self.output

    @property
    def number_connections(self) -> int:
        """Total number of connections in the network (excluding self-connections)."""
        return len(self.connections)

    @property
    def number_connections_enabled(self) -> int:
        """Number of enabled connections in the network."""
        return sum(1 for conn in self.connections if conn.enabled)

    @property
    def config(self) -> Config:
        return self._config

    @property
    def enforce_acyclic(self) -> bool:
        return self._enforce_acyclic

    def set_enforce_acyclic(self, flag: bool):
        """
        Turn acyclic enforcement on or off. While it is on, 'connect' rejects
        backward and self connections and the recurrent mutation operators
        are no-ops. Existing connections are left untouched.
        """
        self._enforce_acyclic = bool(flag)
        self._mark_dirty()

    @property
    def topological_order(self) -> list[Node]:
        """Nodes in a valid execution order (list order if the graph has cycles)."""
        return network_topology.get_topological_order(self)

    def has_path(self, from_node: Node, to_node: Node) -> bool:
        """Whether 'to_node' can be reached from 'from_node' following enabled connections."""
        return network_topology.has_path(self, from_node, to_node)

    def get_regularization_stats(self) -> dict[str, Any] | None:
        """Copy of the statistics recorded during the last training pass (or None)."""
        return dict(self._last_stats) if self._last_stats is not None else None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _create_node(self, node_type: NodeType, gene_id: int | None = None) -> Node:
        if node_type is NodeType.INPUT:
            bias = 0.0
        else:
            r    = self._config.bias_init_range
            bias = self.rng.uniform(-r, r)
        return Node(node_type, bias, self._config.default_squash, gene_id)

    def _insert_node(self, node: Node, position: int):
        if node.gene_id is None:
            node.gene_id = InnovationTracker.get_node_id()
        self.nodes.insert(position, node)
        self._reindex()
        self._mark_dirty()

    def _reindex(self):
        for i, node in enumerate(self.nodes):
            node.index = i

    def _require_member(self, node: Node, role: str = "Node"):
        if not (0 <= node.index < len(self.nodes)) or self.nodes[node.index] is not node:
            raise ValueError(f"{role} is not part of this network")

    def _mark_dirty(self):
        self._topo_dirty = True
        self._slab       = None

    def _warn(self, message: str):
        if self._config.warnings:
            warnings.warn(message, stacklevel=3)

    def _check_input(self, input: Sequence[float]):
        if input is None or len(input) != self.input:
            raise ValueError(
                f"Input size mismatch: expected {self.input}, got {None if input is None else len(input)}")

    def _gene_ids(self) -> set[int]:
        return {node.gene_id for node in self.nodes}

    # ------------------------------------------------------------------
    # Forward pass
    # ------------------------------------------------------------------

    def _prepare_pass(self, training: bool):
        """
        Sample (or reset) the dropout masks of the hidden nodes, and the
        DropConnect masks and weight noise of every connection, self-connections
        included.
        """
        hidden = self.nodes[self.input:len(self.nodes) - self.output]

        if training and self.dropout > 0 and hidden:
            keep  = 1.0 / (1.0 - self.dropout)
            masks = [0.0 if self.rng.random() < self.dropout else keep for _ in hidden]
            if not any(masks):
                masks[self.rng.randrange(len(hidden))] = keep
            for node, mask in zip(hidden, masks):
                node.mask = mask
            self._masks_dirty = True
        elif self._masks_dirty:
            for node in hidden:
                node.mask = 1.0
            self._masks_dirty = False

        if training and (self._weight_noise_std > 0 or self._dropconnect_p > 0):
            std, p = self._weight_noise_std, self._dropconnect_p
            for conn in self.connections + self.selfconns:
                conn.noise   = self.rng.gauss(0.0, std) if std > 0 else 0.0
                conn.dc_mask = 0.0 if p > 0 and self.rng.random() < p else 1.0
            self._perturbed = True
        elif self._perturbed:
            for conn in self.connections + self.selfconns:
                conn.noise   = 0.0
                conn.dc_mask = 1.0
            self._perturbed = False

    def activate(self, input: Sequence[float], training: bool = False) -> list[float]:
        """
        Forward pass through the network, keeping the eligibility
        traces that a subsequent 'propagate' needs.

        Parameters:
            input:    One value per input node
            training: Whether dropout, DropConnect and weight noise apply

        Returns:
            One value per output node
        """
        self._check_input(input)
        self._prepare_pass(training)

        output_start = len(self.nodes) - self.output
        output       = []
        for i, node in enumerate(self.nodes):
            if i < self.input:
                node.activate(float(input[i]))
            elif i >= output_start:
                output.append(node.activate())
            else:
                node.activate()
        return output

    def no_trace_activate(self, input: Sequence[float]) -> list[float]:
        """
        Forward pass for inference: no eligibility traces are kept, and the
        packed slab is used when the network allows it.

        Parameters:
            input: One value per input node

        Returns:
            One value per output node
        """
        self._check_input(input)
        self._prepare_pass(False)

        if self.can_use_fast_slab():
            try:
                return network_slab.fast_slab_activate(self, input)
            except Exception:
                # the slab is an optimization only: use the generic pass instead
                self._slab = None

        output_start = len(self.nodes) - self.output
        output       = []
        for i, node in enumerate(self.nodes):
            if i < self.input:
                node.no_trace_activate(float(input[i]))
            elif i >= output_start:
                output.append(node.no_trace_activate())
            else:
                node.no_trace_activate()
        return output

    def can_use_fast_slab(self, training: bool = False) -> bool:
        """Whether the packed slab can stand in for the generic forward pass."""
        return (not training
                and not self.gates
                and not self.selfconns
                and self.dropout == 0
                and self._weight_noise_std == 0
                and self._dropconnect_p == 0
                and network_topology.is_feed_forward(self))

    def fast_slab_activate(self, input: Sequence[float]) -> list[float]:
        """Forward pass through the packed slab (the network must allow it)."""
        self._check_input(input)
        return network_slab.fast_slab_activate(self, input)

    def get_connection_slab(self) -> dict[str, Any]:
        """Packed arrays (weights, from/to indices, outgoing adjacency) of the current graph."""
        return network_slab.get_connection_slab(self)

    def clear(self):
        """Reset the running state (activations, states, traces) of every node."""
        for node in self.nodes:
            node.clear()

    # ------------------------------------------------------------------
    # Backward pass
    # ------------------------------------------------------------------

    def propagate(self,
                  rate           : float,
                  momentum       : float,
                  update         : bool,
                  target         : Sequence[float],
                  regularization : Any = 0,
                  cost_derivative: Callable[[float, float], float] | None = None):
        """
        Backpropagate the error of the last forward pass ('activate').

        Output nodes are processed first (in reverse order), then hidden nodes
        (in reverse order). Weight and bias deltas are accumulated, and applied
        only if 'update' is true; this allows accumulating gradients over a
        batch before performing one update.

        Parameters:
            rate:            Learning rate
            momentum:        Fraction of the previous delta blended into the current one
            update:          Whether to apply the accumulated deltas
            target:          One target value per output node
            regularization:  L2 coefficient, {"type": "L1"|"L2", "lambda": x}, or a
                             callable mapping a weight to its penalty gradient
            cost_derivative: d(cost)/d(output); if None the error is 'target - output'
        """
        if target is None or len(target) != self.output:
            raise ValueError("Output target length should match network output length")

        penalty = _regularization_gradient(regularization)
        n       = len(self.nodes)

        for k, i in enumerate(range(n - 1, n - self.output - 1, -1)):
            self.nodes[i].propagate(rate, momentum, update, float(target[self.output - 1 - k]),
                                    penalty, cost_derivative)

        for i in range(n - self.output - 1, self.input - 1, -1):
            self.nodes[i].propagate(rate, momentum, update, None, penalty)

        if update:
            self._training_step += 1

    # ------------------------------------------------------------------
    # Structural primitives
    # ------------------------------------------------------------------

    def connect(self, from_node: Node, to_node: Node, weight: float | None = None) -> list[Connection]:
        """
        Connect two nodes of the network.

        Parameters:
            from_node: source node
            to_node:   destination node (same as 'from_node' for a self-connection)
            weight:    weight of the connection (random if None)

        Returns:
            list with the new connection; empty if the connection is
            rejected (duplicate, or violating acyclic enforcement)
        """
        self._require_member(from_node, "Source node")
        self._require_member(to_node, "Target node")

        if self._enforce_acyclic and from_node.index >= to_node.index:
            return []
        if from_node.is_projecting_to(to_node):
            self._warn("Nodes are already connected")
            return []

        if weight is None:
            r      = self._config.weight_init_range
            weight = self.rng.uniform(-r, r)

        conn = from_node.connect(to_node, weight)
        if from_node is to_node:
            self.selfconns.append(conn)
        else:
            self.connections.append(conn)
        self._mark_dirty()
        return [conn]

    def disconnect(self, from_node: Node, to_node: Node):
        """
        Remove the connection between two nodes (ungating it first if gated).

        Parameters:
            from_node: source node
            to_node:   destination node
        """
        collection = self.selfconns if from_node is to_node else self.connections
        for conn in collection:
            if conn.from_node is from_node and conn.to_node is to_node:
                if conn.gater is not None:
                    self.ungate(conn)
                collection.remove(conn)
                break
        from_node.disconnect(to_node)
        self._mark_dirty()

    def gate(self, node: Node, conn: Connection):
        """
        Make 'node' gate (modulate) the connection 'conn'.

        Parameters:
            node: gating node; must be part of the network
            conn: connection (or self-connection) of the network
        """
        self._require_member(node, "Gating node")
        if conn not in self.connections and conn not in self.selfconns:
            raise ValueError("Connection is not part of this network")
        if conn.gater is not None:
            self._warn("This connection is already gated!")
            return
        node.gate(conn)
        self.gates.append(conn)
        self._mark_dirty()

    def ungate(self, conn: Connection):
        """
        Stop gating the connection 'conn' (no-op, with a warning, if it is not gated).
        """
        if conn not in self.gates:
            self._warn("This connection is not gated!")
            return
        self.gates.remove(conn)
        conn.gater.ungate(conn)
        self._mark_dirty()

    def remove(self, node: Node, keep_gates: bool | None = None):
        """
        Remove a hidden node, bridging its predecessors to its successors.

        Every (predecessor, successor) pair that is not already connected gets
        a new connection. The gaters of the removed node's connections are
        reassigned to randomly chosen bridging connections (if 'keep_gates'),
        and the connections gated by the removed node are ungated.

        Parameters:
            node:       the hidden node to remove
            keep_gates: whether to keep the gaters (defaults to the configuration value)
        """
        self._require_member(node)
        if node.type is not NodeType.HIDDEN:
            raise ValueError("Only hidden nodes can be removed")
        if keep_gates is None:
            keep_gates = self._config.keep_gates

        gaters = []

        if node.self_connection is not None:
            self.disconnect(node, node)

        predecessors = []
        for conn in list(node.incoming):
            if keep_gates and conn.gater is not None and conn.gater is not node:
                gaters.append(conn.gater)
            predecessors.append(conn.from_node)
            self.disconnect(conn.from_node, node)

        successors = []
        for conn in list(node.outgoing):
            if keep_gates and conn.gater is not None and conn.gater is not node:
                gaters.append(conn.gater)
            successors.append(conn.to_node)
            self.disconnect(node, conn.to_node)

        bridges = []
        for predecessor in predecessors:
            for successor in successors:
                if predecessor is successor or predecessor.is_projecting_to(successor):
                    continue
                bridges.extend(self.connect(predecessor, successor))

        for gater in gaters:
            if not bridges:
                break
            conn = bridges.pop(self.rng.randrange(len(bridges)))
            self.gate(gater, conn)

        for conn in list(node.gated):
            self.ungate(conn)

        self.nodes.pop(node.index)
        node.index = -1
        self._reindex()
        self._mark_dirty()

    # ------------------------------------------------------------------
    # Evolution
    # ------------------------------------------------------------------

    def mutate(self, method):
        """
        Apply one mutation operator (see 'evonet.methods.mutation').
        Operators with no eligible target are no-ops.

        Parameters:
            method: a MutationOperator, or the name of one
        """
        network_mutate.mutate(self, method)

    @classmethod
    def cross_over(cls, network1: 'Network', network2: 'Network', equal: bool = False) -> 'Network':
        """
        Create an offspring from two parent networks, aligning their
        genomes by gene ID (nodes) and innovation ID (connections).

        Parameters:
            network1: first parent
            network2: second parent
            equal:    treat both parents as equally fit

        Returns:
            the offspring network
        """
        return network_genetic.cross_over(cls, network1, network2, equal)

    # ------------------------------------------------------------------
    # Pruning
    # ------------------------------------------------------------------

    def configure_pruning(self,
                          start          : int,
                          end            : int,
                          target_sparsity: float,
                          regrow_fraction: float = 0.0,
                          frequency      : int   = 1,
                          method         : str   = "magnitude"):
        """
        Install a pruning schedule, ramping the sparsity linearly from 0 at
        iteration 'start' to 'target_sparsity' at iteration 'end'.
        """
        network_prune.configure_pruning(self, start, end, target_sparsity, regrow_fraction, frequency, method)

    def maybe_prune(self, iteration: int) -> int:
        """Prune according to the installed schedule; returns the number of connections removed."""
        return network_prune.maybe_prune(self, iteration)

    def prune_to_sparsity(self, target_sparsity: float, method: str = "magnitude") -> int:
        """Prune immediately down to 'target_sparsity'; returns the number of connections removed."""
        return network_prune.prune_to_sparsity(self, target_sparsity, method)

    def get_current_sparsity(self) -> float:
        """Fraction of the baseline connections that have been pruned."""
        return network_prune.get_current_sparsity(self)

    # ------------------------------------------------------------------
    # Stochastic regularization and randomness
    # ------------------------------------------------------------------

    def enable_weight_noise(self, std: float):
        """Add Gaussian noise (standard deviation 'std') to every weight during training passes."""
        if std < 0:
            raise ValueError("Weight noise standard deviation must be non-negative")
        self._weight_noise_std = float(std)

    def disable_weight_noise(self):
        self._weight_noise_std = 0.0

    def enable_dropconnect(self, p: float):
        """Zero each connection with probability 'p' during training passes."""
        if not 0 <= p < 1:
            raise ValueError("DropConnect probability must be in [0,1)")
        self._dropconnect_p = float(p)

    def disable_dropconnect(self):
        self._dropconnect_p = 0.0

    def set_seed(self, seed: int):
        self.rng.seed(seed)

    def get_rng_state(self):
        return self.rng.getstate()

    def set_rng_state(self, state):
        self.rng.setstate(state)

    def snapshot_rng(self) -> dict[str, Any]:
        """Capture the training step and generator state, for replay with 'restore_rng'."""
        return {"step": self._training_step, "state": self.rng.getstate()}

    def restore_rng(self, snapshot: dict[str, Any]):
        self.rng.setstate(snapshot["state"])

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(self) -> list:
        """Compact form: [activations, states, squashes, connections, input, output, biases]."""
        return network_serialize.serialize(self)

    @classmethod
    def deserialize(cls, data: list, input: int | None = None, output: int | None = None,
                    config: Config | None = None) -> 'Network':
        return network_serialize.deserialize(cls, data, input, output, config)

    def to_json(self) -> dict[str, Any]:
        """Structured, versioned form of the network."""
        return network_serialize.to_json(self)

    @classmethod
    def from_json(cls, data: dict[str, Any], config: Config | None = None) -> 'Network':
        return network_serialize.from_json(cls, data, config)

    def clone(self) -> 'Network':
        """Deep copy (through the structured form), sharing the configuration."""
        return type(self).from_json(self.to_json(), self._config)

    def standalone(self) -> str:
        """Python source code of a dependency-free 'activate(input)' function."""
        return network_standalone.standalone(self)

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def train(self, dataset: Sequence[dict], **options) -> dict[str, float]:
        """
        Train the network on 'dataset' by backpropagation.
        See 'evonet.run.trainer.train' for the options.

        Returns:
            {"error": final error, "iterations": iterations run, "time": seconds}
        """
        return trainer.train(self, dataset, **options)

    def test(self, dataset: Sequence[dict], cost="mse") -> dict[str, float]:
        """
        Evaluate the network on 'dataset' (no training).

        Returns:
            {"error": mean error, "time": seconds}
        """
        return trainer.test(self, dataset, cost)

    def __repr__(self):
        return (f"Network(input={self.input}, output={self.output}, nodes={len(self.nodes)}, "
                f"connections={len(self.connections)}, selfconns={len(self.selfconns)}, gates={len(self.gates)})")

    def __str__(self):
        s  = f"Network {self.input}->{self.output}\n"
        s += " ".join(str(node) for node in self.nodes) + "\n"
        s += " ".join(str(conn) for conn in self.connections + self.selfconns)
        return s

def _regularization_gradient(regularization) -> Callable[[float], float] | None:
    """
    Turn a regularization specification into a function
    mapping a weight onto the gradient of its penalty.
    """
    if regularization is None:
        return None
    if callable(regularization):
        return regularization
    if isinstance(regularization, dict):
        kind    = str(regularization.get("type", "L2")).upper()
        lambda_ = float(regularization.get("lambda", 0.0))
        if lambda_ == 0:
            return None
        if kind == "L1":
            return lambda w: lambda_ * ((w > 0) - (w < 0))
        if kind == "L2":
            return lambda w: lambda_ * w
        raise ValueError(f"Unknown regularization type '{kind}'")
    if regularization == 0:
        return None
    lambda_ = float(regularization)
    return lambda w: lambda_ * w
