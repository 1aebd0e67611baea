"""
Unit tests for network evaluation and the evolution loop.

Tests src/evonet/run/evaluation.py
"""

import math
import pytest
from unittest.mock import Mock

from evonet.architecture.network import Network
from evonet.methods              import mutation
from evonet.run                  import trainer
from evonet.run.evaluation       import (
    serialize_dataset,
    deserialize_dataset,
    evaluate_serialized,
    complexity_penalty,
    score_network,
    evaluate_population,
    DegenerateRunGuard,
    EvolutionLoop,
)


def population_of(*generations):
    """Population whose 'evolve' returns the given fittest networks, in turn (a single network on every call)."""
    population = Mock()
    if len(generations) == 1:
        population.evolve.return_value = generations[0]
    else:
        population.evolve.side_effect = list(generations)
    return population


def scored(network, score):
    network.score = score
    return network


# ============================================================================
# Test: Dataset serialization
# ============================================================================

class TestDatasetSerialization:

    def test_layout(self, xor_dataset):
        serialized = serialize_dataset(xor_dataset[:2])
        assert serialized == [2, 1, 0, 0, 0, 0, 1, 1]

    def test_inverse(self, xor_dataset):
        assert deserialize_dataset(serialize_dataset(xor_dataset)) == xor_dataset

    def test_empty_dataset(self):
        with pytest.raises(ValueError, match="Dataset is empty"):
            serialize_dataset([])

    def test_inconsistent_sizes(self):
        dataset = [{"input": [0], "output": [1]}, {"input": [0, 1], "output": [1]}]
        with pytest.raises(ValueError, match="same input/output sizes"):
            serialize_dataset(dataset)


# ============================================================================
# Test: Fitness
# ============================================================================

class TestScore:

    def test_evaluate_serialized_matches_test(self, xor_dataset):
        net = Network(2, 1, seed=3)
        net.clear()
        expected = trainer.test(net, xor_dataset)["error"]
        assert evaluate_serialized(net.serialize(), serialize_dataset(xor_dataset)) == pytest.approx(expected)

    def test_evaluate_serialized_ignores_disabled_connections(self, xor_dataset):
        net = Network(2, 1, seed=3)
        net.connections[0].enabled = False
        net.clear()
        expected = trainer.test(net, xor_dataset)["error"]
        assert evaluate_serialized(net.serialize(), serialize_dataset(xor_dataset)) == pytest.approx(expected)

    def test_complexity_penalty(self):
        net = Network(2, 1, min_hidden=1)
        net.gate(net.nodes[2], net.connections[0])
        expected = 0.5 * (1 + net.number_connections + 1)
        assert complexity_penalty(net, 0.5) == pytest.approx(expected)

    def test_score_is_negative_error_minus_penalty(self, xor_dataset):
        net   = Network(2, 1, seed=3)
        error = trainer.test(net, xor_dataset)["error"]
        score = score_network(net, xor_dataset, growth=0.01, amount=1)
        assert score == pytest.approx(-error - 0.01 * 2)

    def test_score_defaults_come_from_config(self, xor_dataset):
        net = Network(2, 1, seed=3)
        net.config.growth = 0.0
        assert score_network(net, xor_dataset) == pytest.approx(-trainer.test(net, xor_dataset)["error"])

    def test_repeated_evaluation_is_averaged(self, xor_dataset):
        net = Network(2, 1, seed=3)
        assert score_network(net, xor_dataset, growth=0.0, amount=3) == \
               pytest.approx(score_network(net, xor_dataset, growth=0.0, amount=1))

    def test_nan_score_is_minus_infinity(self, xor_dataset):
        net = Network(2, 1)
        net.connections[0].weight = math.nan
        assert score_network(net, xor_dataset) == -math.inf

    def test_evaluation_errors_propagate(self):
        with pytest.raises(ValueError, match="dimensions do not match"):
            score_network(Network(2, 1), [{"input": [1.0], "output": [1.0]}])


# ============================================================================
# Test: Population evaluation
# ============================================================================

class TestEvaluatePopulation:

    @pytest.fixture
    def population(self):
        networks = []
        for seed in range(4):
            net = Network(2, 1, seed=seed)
            for _ in range(3):
                net.mutate(mutation.ADD_NODE)
            net.clear()
            networks.append(net)
        return networks

    def test_empty_population(self, xor_dataset):
        assert evaluate_population([], xor_dataset) == []

    def test_scores_are_stored(self, population, xor_dataset):
        scores = evaluate_population(population, xor_dataset, growth=0.001)
        assert [net.score for net in population] == scores
        assert all(score < 0 for score in scores)

    def test_parallel_matches_serial(self, population, xor_dataset):
        serial   = evaluate_population(population, xor_dataset, growth=0.001, num_jobs=1)
        parallel = evaluate_population(population, xor_dataset, growth=0.001, num_jobs=2)
        assert parallel == pytest.approx(serial)

    def test_parallel_nan_is_minus_infinity(self, population, xor_dataset):
        population[1].connections[0].weight = math.nan
        scores = evaluate_population(population, xor_dataset, num_jobs=2)
        assert scores[1] == -math.inf
        assert math.isfinite(scores[0])


# ============================================================================
# Test: Degenerate run guard
# ============================================================================

class TestDegenerateRunGuard:

    def test_trips_after_consecutive_non_finite_errors(self):
        guard = DegenerateRunGuard(3)
        assert [guard.update(e) for e in (math.inf, math.nan, math.inf)] == [False, False, True]

    def test_finite_error_resets(self):
        guard = DegenerateRunGuard(2)
        guard.update(math.inf)
        assert guard.update(0.5) is False
        assert guard.count == 0
        assert guard.update(math.inf) is False

    def test_reset(self):
        guard = DegenerateRunGuard(2)
        guard.update(math.nan)
        guard.reset()
        assert guard.count == 0


# ============================================================================
# Test: Evolution loop
# ============================================================================

class TestEvolutionLoop:

    def test_stopping_condition_required(self):
        loop = EvolutionLoop(Network(1, 1), Mock())
        with pytest.raises(ValueError, match="At least one stopping condition"):
            loop.run()

    def test_runs_the_requested_generations(self):
        population = population_of(scored(Network(1, 1), -0.5))
        result     = EvolutionLoop(Network(1, 1), population, growth=0.0).run(iterations=4)
        assert result["iterations"] == 4
        assert population.evolve.call_count == 4
        assert result["error"] == pytest.approx(0.5)
        assert set(result) == {"error", "iterations", "time"}

    def test_stops_at_target_error(self):
        generations = [scored(Network(1, 1), -0.5), scored(Network(1, 1), -0.05), scored(Network(1, 1), -0.01)]
        result = EvolutionLoop(Network(1, 1), population_of(*generations), growth=0.0).run(error=0.1)
        assert result["iterations"] == 2

    def test_error_excludes_complexity_penalty(self):
        fittest = Network(1, 1)
        fittest.score = -0.2 - complexity_penalty(fittest, 0.01)
        result = EvolutionLoop(Network(1, 1), population_of(fittest), growth=0.01).run(iterations=1)
        assert result["error"] == pytest.approx(0.2)

    def test_best_structure_is_adopted(self):
        best = Network(1, 1, min_hidden=2)
        worse = Network(1, 1)
        target = Network(1, 1)
        loop = EvolutionLoop(target, population_of(scored(worse, -0.9), scored(best, -0.1), scored(worse, -0.5)))
        loop.run(iterations=3)
        assert loop.best_network is best
        assert loop.best_fitness == -0.1
        assert target.number_nodes_hidden == 2
        assert target.no_trace_activate([0.5]) == pytest.approx(best.no_trace_activate([0.5]))

    def test_clear_after_adoption(self):
        best = Network(1, 1)
        best.no_trace_activate([1.0])
        target = Network(1, 1)
        EvolutionLoop(target, population_of(scored(best, -0.1))).run(iterations=1, clear=True)
        assert all(node.activation == 0 for node in target.nodes)

    def test_degenerate_generations_abort(self, warning_config):
        population = population_of(scored(Network(1, 1), math.nan))
        loop = EvolutionLoop(Network(1, 1, config=warning_config), population)
        with pytest.warns(UserWarning, match="Evolution aborted after 5 degenerate generations"):
            result = loop.run(iterations=100)
        assert result["iterations"] == 5

    def test_schedule_and_log(self, capsys):
        calls = []
        population = population_of(scored(Network(1, 1), -0.3))
        EvolutionLoop(Network(1, 1), population, growth=0.0).run(
            iterations=4, log=2, schedule={"iterations": 2, "function": calls.append})
        assert [call["iteration"] for call in calls] == [2, 4]
        assert set(calls[0]) == {"fitness", "error", "iteration"}
        assert "generation 2, fitness" in capsys.readouterr().out

    def test_stop_condition(self):
        population = population_of(scored(Network(1, 1), -0.3))
        result = EvolutionLoop(Network(1, 1), population).run(
            iterations=10, stop_condition=lambda info: info["iteration"] == 3)
        assert result["iterations"] == 3
