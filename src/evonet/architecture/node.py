"""
Network Node Module.

This module implements the Node class and NodeType enumeration.
A node is a single computational unit of a network: it accumulates the
weighted activations of its incoming connections, squashes the result and
keeps the bookkeeping (eligibility traces, error terms, accumulated deltas)
needed to train it by backpropagation.

Classes:
    NodeType: Enumeration for node types (INPUT, HIDDEN, OUTPUT)
    Node:     A single computational unit
"""

from enum   import Enum
from typing import Callable

from evonet.activations             import activations, derivatives
from evonet.architecture.connection import Connection

class NodeType(Enum):
    """
    Nodes come in three types: input, hidden, output.
    """
    INPUT  = "input"
    HIDDEN = "hidden"
    OUTPUT = "output"

class Node:
    """
    A single computational unit in a Neural Network.

    The node computes:
        state      = self_gain * self_weight * state + bias + sum(weight * gain * from.activation)
        activation = squash(state) * mask

    The self-connection term feeds back the state of the previous activation,
    which is what makes a self-connected node recurrent.

    Public Attributes:
        type:            Type of node (INPUT, HIDDEN, or OUTPUT)
        bias:            Bias value added to the node's state
        gene_id:         Stable identifier, used to align genomes during crossover
        index:           Position of the node in its network (maintained by the network)
        activation:      Output of the last forward pass
        state:           Pre-squash accumulator of the last forward pass
        old:             State before the last forward pass
        derivative:      Derivative of the squash at the current state
        mask:            Dropout mask (0 when dropped, survival scale otherwise)
        incoming:        Connections into this node
        outgoing:        Connections out of this node
        self_connection: The (unique) self-connection, or None
        gated:           Connections gated by this node

    Public Properties:
        squash: Name of the activation function

    Public Methods:
        activate(value):           Forward pass keeping eligibility traces
        no_trace_activate(value):  Forward pass without eligibility traces
        propagate(...):            Backpropagate the error and update parameters
        connect(target, weight):   Create a connection to 'target'
        disconnect(target):        Remove the connection to 'target'
        gate(conn) / ungate(conn): Start / stop gating a connection
        clear():                   Reset the node's running state
    """

    def __init__(self,
                 node_type: NodeType    = NodeType.HIDDEN,
                 bias     : float       = 0.0,
                 squash   : str         = "logistic",
                 gene_id  : int  | None = None):
        """
        Initialize a node.

        Parameters:
            node_type: Type of node (INPUT, HIDDEN, or OUTPUT)
            bias:      Bias value added to the node's state
            squash:    Name of the activation function
            gene_id:   Stable identifier (assigned by the network if None)
        """
        self.type   : NodeType   = node_type
        self.bias   : float      = bias
        self.gene_id: int | None = gene_id
        self.index  : int        = -1
        self.squash              = squash

        self.activation: float = 0.0
        self.state     : float = 0.0
        self.old       : float = 0.0
        self.derivative: float = 0.0
        self.mask      : float = 1.0

        self.incoming       : list[Connection]  = []
        self.outgoing       : list[Connection]  = []
        self.gated          : list[Connection]  = []
        self.self_connection: Connection | None = None

        # Backpropagation bookkeeping
        self.error_responsibility: float = 0.0
        self.error_projected     : float = 0.0
        self.error_gated         : float = 0.0
        self.previous_delta_bias : float = 0.0
        self.total_delta_bias    : float = 0.0
        self.opt_state           : dict[str, float] = {}

    @property
    def squash(self) -> str:
        """Name of the activation function."""
        return self._squash

    @squash.setter
    def squash(self, name: str):
        if name not in activations:
            raise ValueError(f"Unknown activation function '{name}'")
        self._squash    : str      = name
        self._squash_fn : Callable = activations[name]
        self._derivative: Callable = derivatives[name]

    def _self_factor(self) -> float:
        sc = self.self_connection
        if sc is None or not sc.enabled:
            return 0.0
        return sc.gain * sc.effective_weight

    def activate(self, value: float | None = None) -> float:
        """
        Forward pass, keeping the eligibility traces needed by 'propagate'.

        Parameters:
            value: the input value (input nodes only)

        Returns:
            the activation of the node
        """
        if value is not None:
            self.activation = value
            return value

        self.old   = self.state
        self_factor = self._self_factor()
        state       = self_factor * self.state + self.bias
        for conn in self.incoming:
            if conn.enabled:
                state += conn.from_node.activation * conn.effective_weight * conn.gain
        self.state      = state
        self.activation = float(self._squash_fn(state)) * self.mask
        self.derivative = float(self._derivative(state))

        # Gated nodes and how much this node influences each of them
        influences: dict['Node', float] = {}
        for conn in self.gated:
            node = conn.to_node
            if node not in influences:
                sc = node.self_connection
                influences[node] = node.old if sc is not None and sc.gater is self else 0.0
            influences[node] += conn.effective_weight * conn.from_node.activation
            conn.gain = self.activation

        for conn in self.incoming:
            if not conn.enabled:
                continue
            conn.eligibility = self_factor * conn.eligibility + conn.from_node.activation * conn.gain
            for node, influence in influences.items():
                previous          = conn.xtrace.get(node, 0.0)
                conn.xtrace[node] = node._self_factor() * previous + self.derivative * conn.eligibility * influence

        return self.activation

    def no_trace_activate(self, value: float | None = None) -> float:
        """
        Forward pass without eligibility traces (inference only).

        Parameters:
            value: the input value (input nodes only)

        Returns:
            the activation of the node
        """
        if value is not None:
            self.activation = value
            return value

        state = self._self_factor() * self.state + self.bias
        for conn in self.incoming:
            if conn.enabled:
                state += conn.from_node.activation * conn.effective_weight * conn.gain
        self.state      = state
        self.activation = float(self._squash_fn(state)) * self.mask

        for conn in self.gated:
            conn.gain = self.activation

        return self.activation

    def propagate(self,
                  rate           : float,
                  momentum       : float,
                  update         : bool,
                  target         : float | None = None,
                  regularization : Callable[[float], float] | None = None,
                  cost_derivative: Callable[[float, float], float] | None = None):
        """
        Backpropagate the error through this node.

        The weight and bias deltas are accumulated; if 'update' is true the
        accumulated deltas (plus momentum) are applied and the accumulators reset.

        Parameters:
            rate:            Learning rate
            momentum:        Fraction of the previous delta blended into the current one
            update:          Whether to apply the accumulated deltas
            target:          Target value (output nodes only)
            regularization:  Maps a weight to its penalty gradient (or None)
            cost_derivative: d(cost)/d(output); if None the error is 'target - activation'
        """
        if self.type is NodeType.OUTPUT:
            if cost_derivative is None:
                error = target - self.activation
            else:
                error = -cost_derivative(target, self.activation) * self.derivative
            self.error_responsibility = self.error_projected = error
        else:
            error = 0.0
            for conn in self.outgoing:
                if conn.enabled:
                    error += conn.to_node.error_responsibility * conn.effective_weight * conn.gain
            self.error_projected = self.derivative * error

            error = 0.0
            for conn in self.gated:
                node = conn.to_node
                sc   = node.self_connection
                influence  = node.old if sc is not None and sc.gater is self else 0.0
                influence += conn.effective_weight * conn.from_node.activation
                error += node.error_responsibility * influence
            self.error_gated = self.derivative * error

            self.error_responsibility = self.error_projected + self.error_gated

        if self.type is NodeType.INPUT:
            return

        for conn in self.incoming:
            if not conn.enabled:
                continue
            gradient = self.error_projected * conn.eligibility
            for node, value in conn.xtrace.items():
                gradient += node.error_responsibility * value

            delta = gradient * self.mask
            if regularization is not None:
                delta -= regularization(conn.weight)
            conn.total_delta_weight += rate * delta
            if update:
                conn.total_delta_weight   += momentum * conn.previous_delta_weight
                conn.weight               += conn.total_delta_weight
                conn.previous_delta_weight = conn.total_delta_weight
                conn.total_delta_weight    = 0.0

        self.total_delta_bias += rate * self.error_responsibility
        if update:
            self.total_delta_bias    += momentum * self.previous_delta_bias
            self.bias                += self.total_delta_bias
            self.previous_delta_bias  = self.total_delta_bias
            self.total_delta_bias     = 0.0

    def connect(self, target: 'Node', weight: float) -> Connection:
        """
        Create a connection from this node to 'target'.

        Parameters:
            target: destination node (may be this node, for a self-connection)
            weight: weight of the new connection

        Returns:
            the new connection
        """
        conn = Connection(self, target, weight)
        if target is self:
            self.self_connection = conn
        else:
            self.outgoing.append(conn)
            target.incoming.append(conn)
        return conn

    def disconnect(self, target: 'Node'):
        """
        Remove the connection from this node to 'target' (if any).

        Parameters:
            target: destination node
        """
        if target is self:
            self.self_connection = None
            return
        for conn in self.outgoing:
            if conn.to_node is target:
                self.outgoing.remove(conn)
                target.incoming.remove(conn)
                return

    def gate(self, conn: Connection):
        self.gated.append(conn)
        conn.gater = self

    def ungate(self, conn: Connection):
        self.gated.remove(conn)
        conn.gater = None
        conn.gain  = 1.0

    def is_projecting_to(self, node: 'Node') -> bool:
        """Whether this node has a connection to 'node'."""
        if node is self:
            return self.self_connection is not None
        return any(conn.to_node is node for conn in self.outgoing)

    def is_projected_by(self, node: 'Node') -> bool:
        """Whether 'node' has a connection to this node."""
        return node.is_projecting_to(self)

    def clear(self):
        """
        Reset the running state of the node (activation, state,
        traces and error terms), leaving its parameters untouched.
        """
        for conn in self.incoming:
            conn.reset_traces()
        if self.self_connection is not None:
            self.self_connection.reset_traces()
        for conn in self.gated:
            conn.gain = 0.0

        self.activation           = 0.0
        self.state                = 0.0
        self.old                  = 0.0
        self.derivative           = 0.0
        self.error_responsibility = 0.0
        self.error_projected      = 0.0
        self.error_gated          = 0.0

    def __repr__(self):
        return (f"Node(gene_id={self.gene_id}, type={self.type.name}, "
                f"bias={self.bias:+.6f}, squash={self.squash})")

    def __str__(self):
        return f"[{self.gene_id},{self.type.value[0].upper()},{self.bias:+.02f},{self.squash}]"
