"""
Unit tests for the mutation operator definitions.

Tests src/evonet/methods/mutation.py; the effect of each operator on a
network is tested with the network itself.
"""

import pytest

from evonet.architecture.network import Network
from evonet.methods              import mutation
from evonet.methods.mutation     import MutationOperator


class TestMutationOperator:

    def test_parameters_are_attributes(self):
        assert mutation.MOD_WEIGHT.min is None
        assert mutation.SUB_NODE.keep_gates is None

    def test_unknown_attribute_raises(self):
        with pytest.raises(AttributeError):
            mutation.ADD_NODE.min

    def test_with_params_returns_a_copy(self):
        op = mutation.MOD_WEIGHT.with_params(min=-0.1, max=0.1)
        assert op == mutation.MOD_WEIGHT
        assert (op.min, op.max) == (-0.1, 0.1)
        assert mutation.MOD_WEIGHT.min is None

    def test_with_params_rejects_unknown_parameters(self):
        with pytest.raises(ValueError, match="has no parameter"):
            mutation.ADD_NODE.with_params(min=0)

    def test_equality_and_hash_by_name(self):
        assert MutationOperator("ADD_CONN") == mutation.ADD_CONN
        assert len({mutation.ADD_CONN, MutationOperator("ADD_CONN")}) == 1
        assert mutation.ADD_CONN != "ADD_CONN"

    def test_repr(self):
        assert repr(mutation.ADD_GATE) == "MutationOperator(ADD_GATE)"


class TestOperatorLists:

    def test_all_operators(self):
        assert len(mutation.ALL) == 14
        assert mutation.REINIT_WEIGHT not in mutation.ALL

    def test_feed_forward_operators(self):
        assert set(mutation.FFW) <= set(mutation.ALL)
        for op in (mutation.ADD_SELF_CONN, mutation.ADD_GATE, mutation.ADD_BACK_CONN):
            assert op not in mutation.FFW

    def test_lookup_by_name(self):
        assert mutation.operators["REINIT_WEIGHT"] is mutation.REINIT_WEIGHT
        assert set(mutation.operators) == {op.name for op in mutation.ALL} | {"REINIT_WEIGHT"}


class TestMutateDispatch:

    def test_mutate_by_name(self):
        net = Network(2, 1)
        net.mutate("ADD_NODE")
        assert net.number_nodes_hidden == 1

    def test_operator_parameters_override_config(self):
        net = Network(1, 1)
        weight = net.connections[0].weight
        net.mutate(mutation.MOD_WEIGHT.with_params(min=0.5, max=0.5))
        assert net.connections[0].weight == pytest.approx(weight + 0.5)

    def test_bias_range_from_config(self):
        net = Network(1, 1)
        bias = net.nodes[1].bias
        net.config.mod_bias_min = net.config.mod_bias_max = -0.25
        net.mutate(mutation.MOD_BIAS)
        assert net.nodes[1].bias == pytest.approx(bias - 0.25)

    def test_unknown_operator_warns(self, warning_config):
        net = Network(1, 1, config=warning_config)
        with pytest.warns(UserWarning, match="Unknown mutation method"):
            net.mutate("GROW_WINGS")

    def test_missing_operator_raises(self):
        with pytest.raises(ValueError, match="No \\(correct\\) mutate method given"):
            Network(1, 1).mutate(None)
