"""
Unit tests for the Connection class.
"""

import pytest

from evonet.architecture.connection import Connection
from evonet.architecture.node       import Node, NodeType


@pytest.fixture
def endpoints():
    return Node(NodeType.INPUT, 0.0, "identity", 2), Node(NodeType.OUTPUT, 0.0, "identity", 3)


class TestInnovationId:
    """Test the Cantor pairing of gene IDs."""

    @pytest.mark.parametrize("a, b, expected", [(0, 0, 0), (1, 0, 1), (0, 1, 2), (2, 3, 18), (3, 2, 17)])
    def test_known_values(self, a, b, expected):
        assert Connection.innovation_id(a, b) == expected

    def test_pairing_is_injective(self):
        """Test that no two ordered pairs share an innovation ID."""
        ids = {Connection.innovation_id(a, b) for a in range(40) for b in range(40)}
        assert len(ids) == 40 * 40

    def test_innovation_property_uses_gene_ids(self, endpoints):
        conn = Connection(*endpoints, 0.5)
        assert conn.innovation == 18

    def test_innovation_follows_endpoints_not_objects(self, endpoints):
        """Homologous connections in different networks share their innovation ID."""
        copy = (Node(NodeType.INPUT, 0.0, "identity", 2), Node(NodeType.OUTPUT, 0.0, "identity", 3))
        assert Connection(*endpoints, 0.5).innovation == Connection(*copy, -1.0).innovation


class TestConnection:

    def test_defaults(self, endpoints):
        conn = Connection(*endpoints, 0.5)
        assert conn.gain == 1.0
        assert conn.gater is None
        assert conn.enabled
        assert conn.total_delta_weight == 0.0
        assert conn.opt_state == {}

    def test_effective_weight_applies_noise_and_mask(self, endpoints):
        conn = Connection(*endpoints, 0.5)
        conn.noise = 0.25
        assert conn.effective_weight == pytest.approx(0.75)
        conn.dc_mask = 0.0
        assert conn.effective_weight == 0.0
        assert conn.weight == 0.5

    def test_reset_traces(self, endpoints):
        conn = Connection(*endpoints, 0.5)
        conn.eligibility = 1.2
        conn.xtrace      = {endpoints[1]: 0.3}
        conn.reset_traces()
        assert conn.eligibility == 0.0
        assert conn.xtrace == {}

    def test_str(self, endpoints):
        conn = Connection(*endpoints, 0.5)
        assert str(conn) == "[E,2=>3,+0.50]"
        conn.enabled = False
        conn.gater   = endpoints[1]
        assert str(conn) == "[D,2=>3,+0.50,G]"
