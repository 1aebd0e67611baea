"""
Unit tests for pruning and sparsification.
"""

import math
import pytest

from evonet.architecture.network import Network
from evonet.architecture.node    import NodeType


@pytest.fixture
def mlp():
    """A 2-4-1 perceptron with distinct weight magnitudes (12 connections)."""
    net = Network.create_mlp(2, [4], 1)
    for i, conn in enumerate(net.connections):
        conn.weight = (i + 1) * (-1) ** i
    return net


# ============================================================================
# Test: Configuration
# ============================================================================

class TestConfigurePruning:

    def test_end_before_start_raises(self, mlp):
        with pytest.raises(ValueError, match="must not precede"):
            mlp.configure_pruning(5, 2, 0.5)

    @pytest.mark.parametrize("target", [0.0, 1.0, -0.2, 1.5])
    def test_target_outside_open_interval_raises(self, mlp, target):
        with pytest.raises(ValueError, match="Target sparsity"):
            mlp.configure_pruning(0, 10, target)

    def test_invalid_frequency_raises(self, mlp):
        with pytest.raises(ValueError, match="frequency"):
            mlp.configure_pruning(0, 10, 0.5, frequency=0)

    def test_unknown_method_raises(self, mlp):
        with pytest.raises(ValueError, match="Unknown pruning method"):
            mlp.configure_pruning(0, 10, 0.5, method="random")

    def test_records_baseline(self, mlp):
        mlp.configure_pruning(0, 10, 0.5)
        assert mlp._pruning["initial_count"] == 12
        assert mlp.get_current_sparsity() == 0.0


# ============================================================================
# Test: Scheduled pruning
# ============================================================================

class TestMaybePrune:

    def test_no_schedule_is_noop(self, mlp):
        assert mlp.maybe_prune(3) == 0

    def test_outside_window_is_noop(self, mlp):
        mlp.configure_pruning(2, 4, 0.5)
        assert mlp.maybe_prune(1) == 0
        assert mlp.maybe_prune(5) == 0
        assert mlp.number_connections == 12

    def test_linear_ramp(self, mlp):
        mlp.configure_pruning(1, 5, 0.5)
        assert mlp.maybe_prune(1) == 0
        mlp.maybe_prune(3)
        assert mlp.number_connections == math.floor(12 * (1 - 0.5 * 0.5))
        mlp.maybe_prune(5)
        assert mlp.number_connections == 6
        assert mlp.get_current_sparsity() == pytest.approx(0.5)

    def test_same_iteration_is_pruned_once(self, mlp):
        mlp.configure_pruning(0, 1, 0.5)
        removed = mlp.maybe_prune(1)
        assert removed == 6
        assert mlp.maybe_prune(1) == 0

    def test_off_frequency_iterations_are_skipped(self, mlp):
        mlp.configure_pruning(0, 10, 0.5, frequency=5)
        assert mlp.maybe_prune(3) == 0
        assert mlp.maybe_prune(5) > 0

    def test_magnitude_removes_smallest_weights(self, mlp):
        mlp.configure_pruning(0, 1, 0.5)
        mlp.maybe_prune(1)
        assert sorted(abs(conn.weight) for conn in mlp.connections) == [7, 8, 9, 10, 11, 12]

    def test_regrow_adds_connections_back(self, mlp):
        mlp.configure_pruning(0, 1, 0.5, regrow_fraction=1.0)
        removed = mlp.maybe_prune(1)
        assert removed == 6
        assert mlp.number_connections > 6
        assert mlp.number_connections <= 12

    def test_regrow_respects_acyclic_mode(self, mlp):
        mlp.set_enforce_acyclic(True)
        mlp.configure_pruning(0, 1, 0.5, regrow_fraction=1.0)
        mlp.maybe_prune(1)
        assert all(conn.from_node.index < conn.to_node.index for conn in mlp.connections)
        assert mlp.selfconns == []

    def test_regrown_connections_run_forward(self, mlp):
        mlp.configure_pruning(0, 1, 0.5, regrow_fraction=1.0)
        mlp.maybe_prune(1)
        assert mlp.number_connections == 12
        for conn in mlp.connections:
            assert conn.to_node.type is not NodeType.INPUT
            assert conn.from_node.type is not NodeType.OUTPUT
            assert conn.from_node.index < conn.to_node.index


# ============================================================================
# Test: Immediate pruning
# ============================================================================

class TestPruneToSparsity:

    def test_prunes_to_target(self, mlp):
        assert mlp.prune_to_sparsity(0.5) == 6
        assert mlp.number_connections == 6
        assert mlp.get_current_sparsity() == pytest.approx(0.5)

    def test_idempotent(self, mlp):
        mlp.prune_to_sparsity(0.5)
        assert mlp.prune_to_sparsity(0.5) == 0
        assert mlp.number_connections == 6

    def test_baseline_is_kept_across_calls(self, mlp):
        mlp.prune_to_sparsity(0.25)
        mlp.prune_to_sparsity(0.5)
        assert mlp.number_connections == 6

    def test_non_positive_target_is_noop(self, mlp):
        assert mlp.prune_to_sparsity(0.0) == 0
        assert mlp.prune_to_sparsity(-1.0) == 0
        assert mlp.number_connections == 12

    def test_at_least_one_connection_remains(self, mlp):
        mlp.prune_to_sparsity(1.0)
        assert mlp.number_connections == 1

    def test_snip_uses_gradient_information(self, mlp):
        # the largest weight has a tiny gradient, so it is the least salient
        for conn in mlp.connections:
            conn.total_delta_weight = 1.0
        largest = max(mlp.connections, key=lambda conn: abs(conn.weight))
        largest.total_delta_weight = 1e-6
        mlp.prune_to_sparsity(1 / 12, method="snip")
        assert largest not in mlp.connections

    def test_unknown_method_raises(self, mlp):
        with pytest.raises(ValueError, match="Unknown pruning method"):
            mlp.prune_to_sparsity(0.5, method="random")

    def test_sparsity_without_baseline(self, mlp):
        assert mlp.get_current_sparsity() == 0.0

    def test_pruning_invalidates_slab(self, mlp):
        mlp.no_trace_activate([0.0, 1.0])
        mlp.prune_to_sparsity(0.5)
        assert mlp._slab is None
