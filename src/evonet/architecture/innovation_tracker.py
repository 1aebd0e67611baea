"""
Innovation Tracker Module

This module implements the InnovationTracker class, which hands out the
stable gene IDs ("historical markings") of nodes.

Classes:
    InnovationTracker: Global tracker for node gene IDs
"""

class InnovationTracker:
    """
    Tracks structural changes globally across all networks.
    Ensures the same structural change gets the same gene ID,
    so that homologous nodes can be matched during crossover.

    Input and output nodes of a network with 'I' inputs and 'O' outputs
    have the gene IDs 0..I-1 and I..I+O-1; hidden nodes get IDs from a
    global counter which always stays above the IDs in use by input and
    output nodes. Connection innovation IDs need no tracking: they are a
    pure function of the gene IDs of their endpoints.
    """

    # Counter (reset via 'initialize()')
    _next_node_id = 0

    # When a connection is split, tracks what node was created.
    _split_IDs = {}        # (from gene ID, to gene ID) -> new node gene ID

    @classmethod
    def initialize(cls, reserved: int = 0):
        """
        Reset the tracker.

        Parameters:
            reserved: number of gene IDs reserved for input and output nodes
        """
        cls._next_node_id = reserved
        cls._split_IDs    = {}

    @classmethod
    def reserve(cls, reserved: int):
        """
        Make sure future gene IDs are not below 'reserved'.

        Parameters:
            reserved: number of gene IDs reserved for input and output nodes
        """
        cls._next_node_id = max(cls._next_node_id, reserved)

    @classmethod
    def get_node_id(cls) -> int:
        """
        Get a brand new gene ID.

        Returns:
            a gene ID never handed out before
        """
        node_id = cls._next_node_id
        cls._next_node_id += 1
        return node_id

    @classmethod
    def get_split_node_id(cls, from_id: int, to_id: int, taken: set[int] | None = None) -> int:
        """
        Get the gene ID of the node created by splitting a connection.
        If this exact connection has been split before (in any network),
        returns the same ID, unless that ID is already in use in the network
        being mutated, in which case a new ID is handed out.

        Parameters:
            from_id: gene ID of the 'from' end of the connection being split
            to_id:   gene ID of the 'to'   end of the connection being split
            taken:   gene IDs already present in the network being mutated

        Returns:
            gene ID for the new node
        """
        key = (from_id, to_id)

        # This connection hasn't been split before
        if key not in cls._split_IDs:
            cls._split_IDs[key] = cls.get_node_id()

        node_id = cls._split_IDs[key]
        if taken is not None and node_id in taken:
            return cls.get_node_id()
        return node_id
