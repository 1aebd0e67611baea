"""
Unit tests for the mutation operators.

Each operator is checked on a small network whose eligible targets are
known, including the infeasible cases (no-op with a warning).
"""

import pytest

from evonet.architecture.network import Network
from evonet.architecture.node    import NodeType
from evonet.methods              import mutation


# ============================================================================
# Test: Dispatch
# ============================================================================

class TestMutateDispatch:

    def test_none_raises(self):
        with pytest.raises(ValueError, match="No \\(correct\\) mutate method given"):
            Network(1, 1).mutate(None)

    def test_unknown_operator_warns(self, warning_config):
        net = Network(1, 1, config=warning_config)
        with pytest.warns(UserWarning, match="Unknown mutation method"):
            net.mutate("GROW_WINGS")

    def test_operator_by_name(self):
        net = Network(1, 1)
        net.mutate("ADD_NODE")
        assert net.number_nodes_hidden == 1

    def test_mutation_marks_caches_dirty(self):
        net = Network(2, 1)
        net.topological_order
        net.mutate(mutation.MOD_WEIGHT)
        assert net._topo_dirty


# ============================================================================
# Test: Node operators
# ============================================================================

class TestAddNode:

    def test_single_connection_network(self):
        """Splitting the only connection gives input -> hidden -> output."""
        net = Network(1, 1)
        net.mutate(mutation.ADD_NODE)
        input_node, hidden, output = net.nodes
        assert hidden.type is NodeType.HIDDEN
        assert input_node.is_projecting_to(hidden)
        assert hidden.is_projecting_to(output)
        assert not input_node.is_projecting_to(output)
        assert net.number_connections == 2

    def test_adds_one_node_and_one_connection(self):
        net = Network(3, 2)
        net.mutate(mutation.ADD_NODE)
        assert net.number_nodes_hidden == 1
        assert net.number_connections == 7

    def test_new_node_is_placed_between_inputs_and_outputs(self):
        net = Network(2, 2)
        for _ in range(5):
            net.mutate(mutation.ADD_NODE)
        types = [node.type for node in net.nodes]
        assert types[:2] == [NodeType.INPUT] * 2
        assert types[-2:] == [NodeType.OUTPUT] * 2
        assert set(types[2:-2]) == {NodeType.HIDDEN}

    def test_without_connections_input_is_connected_first(self):
        net = Network(1, 1)
        net.disconnect(net.nodes[0], net.nodes[1])
        net.mutate(mutation.ADD_NODE)
        assert net.number_nodes_hidden == 1
        assert net.has_path(net.nodes[0], net.nodes[-1])

    def test_gater_moves_to_one_of_the_new_connections(self):
        net    = Network(1, 1)
        output = net.nodes[1]
        net.gate(output, net.connections[0])
        net.mutate(mutation.ADD_NODE)
        assert len(net.gates) == 1
        assert net.gates[0].gater is output

    def test_split_gets_tracked_gene_id(self):
        """The same split in two networks produces the same gene ID."""
        a, b = Network(1, 1), Network(1, 1)
        a.mutate(mutation.ADD_NODE)
        b.mutate(mutation.ADD_NODE)
        assert a.nodes[1].gene_id == b.nodes[1].gene_id

    def test_squash_is_among_allowed(self):
        net = Network(1, 1)
        net.config.activation_options = "tanh, relu"
        net.mutate(mutation.ADD_NODE)
        assert net.nodes[1].squash in ("tanh", "relu")


class TestSubNode:

    def test_removes_a_hidden_node(self):
        net = Network(2, 1, min_hidden=2)
        net.mutate(mutation.SUB_NODE)
        assert net.number_nodes_hidden == 1

    def test_no_hidden_nodes_warns(self, warning_config):
        net = Network(2, 1, config=warning_config)
        with pytest.warns(UserWarning, match="No more nodes left to remove"):
            net.mutate(mutation.SUB_NODE)
        assert net.number_nodes == 3


# ============================================================================
# Test: Connection operators
# ============================================================================

class TestAddConn:

    def test_fully_connected_warns(self, warning_config):
        net = Network(2, 1, config=warning_config)
        with pytest.warns(UserWarning, match="No more connections to be made"):
            net.mutate(mutation.ADD_CONN)
        assert net.number_connections == 2

    def test_adds_a_forward_connection(self):
        net = Network(2, 1)
        net.mutate(mutation.ADD_NODE)
        before = net.number_connections
        net.mutate(mutation.ADD_CONN)
        assert net.number_connections == before + 1
        for conn in net.connections:
            assert conn.from_node.index < conn.to_node.index
            assert conn.from_node.type is not NodeType.OUTPUT
            assert conn.to_node.type is not NodeType.INPUT


class TestSubConn:

    def test_removes_a_redundant_connection(self):
        net = Network.create_mlp(2, [2], 1)
        net.mutate(mutation.SUB_CONN)
        assert net.number_connections == 5
        # the hidden -> output connections were not eligible
        assert all(node.is_projecting_to(net.nodes[-1]) for node in net.nodes[2:4])

    def test_keeps_the_only_path(self, warning_config):
        net = Network(1, 1, config=warning_config)
        with pytest.warns(UserWarning, match="No connections to remove"):
            net.mutate(mutation.SUB_CONN)
        assert net.number_connections == 1


class TestSelfConnections:

    def test_add_self_conn(self):
        net = Network(1, 1)
        net.mutate(mutation.ADD_SELF_CONN)
        assert len(net.selfconns) == 1
        assert net.nodes[1].self_connection is net.selfconns[0]

    def test_add_self_conn_is_noop_when_acyclic(self):
        net = Network(1, 1, enforce_acyclic=True)
        net.mutate(mutation.ADD_SELF_CONN)
        assert net.selfconns == []

    def test_no_candidates_warns(self, warning_config):
        net = Network(1, 1, config=warning_config)
        net.mutate(mutation.ADD_SELF_CONN)
        with pytest.warns(UserWarning, match="No more self-connections to add"):
            net.mutate(mutation.ADD_SELF_CONN)

    def test_sub_self_conn(self):
        net = Network(1, 1)
        net.mutate(mutation.ADD_SELF_CONN)
        net.mutate(mutation.SUB_SELF_CONN)
        assert net.selfconns == []
        assert net.nodes[1].self_connection is None

    def test_sub_self_conn_without_any_warns(self, warning_config):
        net = Network(1, 1, config=warning_config)
        with pytest.warns(UserWarning, match="No more self-connections to remove"):
            net.mutate(mutation.SUB_SELF_CONN)


class TestBackConnections:

    def test_add_back_conn(self):
        net = Network.create_mlp(1, [1], 1)
        net.mutate(mutation.ADD_BACK_CONN)
        assert net.nodes[2].is_projecting_to(net.nodes[1])

    def test_add_back_conn_is_noop_when_acyclic(self):
        net = Network.create_mlp(1, [1], 1)
        net.set_enforce_acyclic(True)
        net.mutate(mutation.ADD_BACK_CONN)
        assert net.number_connections == 2

    def test_sub_back_conn_without_any_warns(self, warning_config):
        net = Network.create_mlp(1, [1], 1, config=warning_config)
        with pytest.warns(UserWarning, match="No back-connections to remove"):
            net.mutate(mutation.SUB_BACK_CONN)


class TestGates:

    def test_add_gate(self):
        net = Network(2, 1)
        net.mutate(mutation.ADD_GATE)
        assert len(net.gates) == 1
        assert net.gates[0].gater.type is not NodeType.INPUT

    def test_add_gate_when_everything_is_gated_warns(self, warning_config):
        net = Network(1, 1, config=warning_config)
        net.mutate(mutation.ADD_GATE)
        with pytest.warns(UserWarning, match="No more connections to gate"):
            net.mutate(mutation.ADD_GATE)

    def test_sub_gate(self):
        net = Network(2, 1)
        net.mutate(mutation.ADD_GATE)
        net.mutate(mutation.SUB_GATE)
        assert net.gates == []

    def test_sub_gate_without_gates_warns(self, warning_config):
        net = Network(2, 1, config=warning_config)
        with pytest.warns(UserWarning, match="No more connections to ungate"):
            net.mutate(mutation.SUB_GATE)


# ============================================================================
# Test: Parametric operators
# ============================================================================

class TestParametric:

    def test_mod_weight_uses_operator_range(self):
        net    = Network(2, 2)
        before = sum(conn.weight for conn in net.connections)
        net.mutate(mutation.MOD_WEIGHT.with_params(min=0.5, max=0.5))
        assert sum(conn.weight for conn in net.connections) == pytest.approx(before + 0.5)

    def test_mod_weight_uses_config_range(self):
        net = Network(2, 2)
        net.config.mod_weight_min = net.config.mod_weight_max = -0.25
        before = sum(conn.weight for conn in net.connections)
        net.mutate(mutation.MOD_WEIGHT)
        assert sum(conn.weight for conn in net.connections) == pytest.approx(before - 0.25)

    def test_mod_bias_never_touches_inputs(self):
        net = Network(2, 2)
        net.mutate(mutation.MOD_BIAS.with_params(min=1.0, max=1.0))
        assert all(node.bias == 0.0 for node in net.nodes[:2])
        assert sum(node.bias for node in net.nodes[2:]) > 0.5

    def test_mod_activation(self):
        net = Network(1, 1)
        net.mutate(mutation.MOD_ACTIVATION.with_params(allowed=["tanh", "relu"]))
        assert net.nodes[1].squash in ("tanh", "relu")

    def test_mod_activation_always_changes_squash(self):
        net = Network(1, 1)
        net.nodes[1].squash = "tanh"
        net.mutate(mutation.MOD_ACTIVATION.with_params(allowed=["tanh", "relu"]))
        assert net.nodes[1].squash == "relu"

    def test_mod_activation_respects_mutate_output(self, warning_config):
        net = Network(1, 1, config=warning_config)
        with pytest.warns(UserWarning, match="No nodes that allow mutation of activation function"):
            net.mutate(mutation.MOD_ACTIVATION.with_params(mutate_output=False))
        assert net.nodes[1].squash == "logistic"

    def test_swap_nodes(self):
        net = Network.create_mlp(1, [2], 1)
        h1, h2 = net.nodes[1], net.nodes[2]
        h1.bias, h1.squash = 0.1, "tanh"
        h2.bias, h2.squash = 0.2, "relu"
        net.mutate(mutation.SWAP_NODES.with_params(mutate_output=False))
        assert (h1.bias, h1.squash) == (0.2, "relu")
        assert (h2.bias, h2.squash) == (0.1, "tanh")

    def test_swap_nodes_needs_two_candidates(self, warning_config):
        net = Network(1, 1, config=warning_config)
        with pytest.warns(UserWarning, match="No nodes that allow swapping"):
            net.mutate(mutation.SWAP_NODES)

    def test_reinit_weight(self):
        net = Network(1, 1)
        net.mutate(mutation.REINIT_WEIGHT.with_params(min=0.3, max=0.3))
        assert net.connections[0].weight == pytest.approx(0.3)


# ============================================================================
# Test: Invariants under random mutation sequences
# ============================================================================

class TestMutationInvariants:

    @pytest.mark.parametrize("seed", range(5))
    def test_acyclic_networks_stay_acyclic(self, seed):
        net = Network(2, 2, enforce_acyclic=True, seed=seed)
        for _ in range(200):
            net.mutate(net.rng.choice(mutation.ALL))
            assert net.selfconns == []
            for conn in net.connections:
                assert conn.from_node.index < conn.to_node.index

    @pytest.mark.parametrize("seed", range(5))
    def test_structure_stays_consistent(self, seed):
        net = Network(3, 2, seed=seed)
        for _ in range(150):
            net.mutate(net.rng.choice(mutation.ALL))

        assert [node.index for node in net.nodes] == list(range(net.number_nodes))
        assert len({node.gene_id for node in net.nodes}) == net.number_nodes
        assert all(node.type is NodeType.INPUT for node in net.nodes[:3])
        assert all(node.type is NodeType.OUTPUT for node in net.nodes[-2:])
        members = {id(node) for node in net.nodes}
        for conn in net.connections + net.selfconns:
            assert id(conn.from_node) in members and id(conn.to_node) in members
        for conn in net.gates:
            assert conn in net.connections or conn in net.selfconns
            assert id(conn.gater) in members
