"""
Network Connection Module

This module implements the Connection class, a directed and weighted
edge between two nodes of a network.

Classes:
    Connection: Weighted edge between two nodes, optionally gated by a third node
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from evonet.architecture.node import Node

class Connection:
    """
    A directed, weighted connection between two nodes in a Neural Network.

    The signal carried by a connection is 'weight * gain * from_node.activation'.
    The gain is 1 unless the connection is gated, in which case it is set to the
    activation of the gating node at every forward pass.

    Connections are identified across networks by their innovation ID, derived
    from the (stable) gene IDs of their endpoints. Two connections joining the
    same pair of homologous nodes in two different networks therefore share the
    same innovation ID, which is what crossover uses to align genomes.

    Public Attributes:
        from_node:    Source node
        to_node:      Destination node
        weight:       Weight of the connection
        gain:         Multiplier set by the gater (1 when not gated)
        gater:        Node gating this connection (or None)
        enabled:      Whether the connection takes part in the forward pass
        eligibility:  Eligibility trace (for backpropagation)
        xtrace:       Extended eligibility traces, per gated node (for backpropagation)
        dc_mask:      DropConnect mask (0 or 1) sampled for the current training pass
        noise:        Weight noise sampled for the current training pass

    Public Properties:
        innovation:       Innovation ID of this connection
        effective_weight: Weight as used by the current forward pass

    Public Methods:
        innovation_id(a, b): Cantor pairing of two gene IDs
    """

    def __init__(self,
                 from_node: 'Node',
                 to_node  : 'Node',
                 weight   : float,
                 enabled  : bool = True):
        """
        Initialize a connection.

        Parameters:
            from_node: Source node
            to_node:   Destination node
            weight:    Weight of the connection
            enabled:   Whether this connection is active in the network
        """
        self.from_node: 'Node'        = from_node
        self.to_node  : 'Node'        = to_node
        self.weight   : float         = weight
        self.gain     : float         = 1.0
        self.gater    : 'Node | None' = None
        self.enabled  : bool          = enabled

        # Backpropagation bookkeeping
        self.eligibility          : float                   = 0.0
        self.xtrace               : dict['Node', float]     = {}
        self.previous_delta_weight: float                   = 0.0
        self.total_delta_weight   : float                   = 0.0

        # Per-pass stochastic regularization (neutral outside training)
        self.dc_mask: float = 1.0
        self.noise  : float = 0.0

        # Optimizer moments (populated lazily by the optimizers)
        self.opt_state: dict[str, float] = {}

    @staticmethod
    def innovation_id(a: int, b: int) -> int:
        """
        Cantor pairing function, mapping an ordered pair of
        non-negative integers onto a unique non-negative integer.

        Parameters:
            a: gene ID of the source node
            b: gene ID of the destination node

        Returns:
            the innovation ID of a connection from 'a' to 'b'
        """
        return (a + b) * (a + b + 1) // 2 + b

    @property
    def innovation(self) -> int:
        """Innovation ID of this connection."""
        return Connection.innovation_id(self.from_node.gene_id, self.to_node.gene_id)

    @property
    def effective_weight(self) -> float:
        """Weight with the current weight noise and DropConnect mask applied."""
        return (self.weight + self.noise) * self.dc_mask

    def reset_traces(self):
        self.eligibility = 0.0
        self.xtrace      = {}

    def __repr__(self):
        return (f"Connection(from={self.from_node.gene_id}, to={self.to_node.gene_id}, "
                f"weight={self.weight:+.6f}, enabled={self.enabled}, gated={self.gater is not None})")

    def __str__(self):
        s  = f"[{'E' if self.enabled else 'D'},"
        s += f"{self.from_node.gene_id}=>{self.to_node.gene_id},{self.weight:+.02f}"
        s += ",G]" if self.gater is not None else "]"
        return s
