"""
Network Evaluation Module

The boundary between networks and an evolutionary driver: fitness of a
network (error on a dataset, penalized by structural complexity), parallel
evaluation of a whole population with joblib, and a generation loop that
drives an external population object.

Parallel evaluation follows a worker protocol: every network is shipped to
the workers in its compact serialized form, together with the dataset
flattened into a list of numbers, and each worker returns a scalar error.
No mutable state is shared between the workers and the caller.

Functions:
    serialize_dataset(dataset):         Flatten a dataset into a list of numbers
    deserialize_dataset(serialized):    Inverse of 'serialize_dataset'
    evaluate_serialized(genome, ...):   Worker side: error of a serialized network
    complexity_penalty(net, growth):    Structural complexity penalty
    score_network(net, dataset, ...):   Complexity-penalized fitness of a network
    evaluate_population(networks, ...): Score every network of a population

Classes:
    DegenerateRunGuard: Counts consecutive generations with a non-finite error
    EvolutionLoop:      Generation loop around an external population
"""

import math
import time
from joblib import Parallel, delayed
from typing import Any, Callable, Sequence

from evonet.architecture.network import Network
from evonet.run                  import trainer

def serialize_dataset(dataset: Sequence[dict]) -> list[float]:
    """
    Flatten a dataset into [input size, output size, in..., out..., in..., out..., ...].
    """
    if not dataset:
        raise ValueError("Dataset is empty")
    input_size  = len(dataset[0]["input"])
    output_size = len(dataset[0]["output"])
    serialized  = [input_size, output_size]
    for sample in dataset:
        if len(sample["input"]) != input_size or len(sample["output"]) != output_size:
            raise ValueError("All samples of a dataset must have the same input/output sizes")
        serialized.extend(sample["input"])
        serialized.extend(sample["output"])
    return serialized

def deserialize_dataset(serialized: Sequence[float]) -> list[dict]:
    input_size, output_size = int(serialized[0]), int(serialized[1])
    sample_size = input_size + output_size
    dataset     = []
    for start in range(2, len(serialized), sample_size):
        sample = list(serialized[start:start + sample_size])
        dataset.append({"input": sample[:input_size], "output": sample[input_size:]})
    return dataset

def evaluate_serialized(genome: list, serialized_set: Sequence[float], cost="mse") -> float:
    """
    Mean error of a network in compact serialized form on a serialized dataset.

    Parameters:
        genome:         the network, in compact form (see 'Network.serialize')
        serialized_set: the dataset, flattened by 'serialize_dataset'
        cost:           cost function, or its name

    Returns:
        the mean error per sample
    """
    net = Network.deserialize(genome)
    return trainer.test(net, deserialize_dataset(serialized_set), cost)["error"]

def complexity_penalty(net: Network, growth: float) -> float:
    """'growth' times the number of hidden nodes, connections and gates of a network."""
    return growth * (net.number_nodes_hidden + net.number_connections + len(net.gates))

def score_network(net    : Network,
                  dataset: Sequence[dict],
                  cost   : Any          = "mse",
                  growth : float | None = None,
                  amount : int   | None = None) -> float:
    """
    Fitness of a network: minus its mean error on the dataset (averaged over
    'amount' evaluations), minus its complexity penalty. A NaN fitness is
    mapped to -inf.

    Parameters:
        net:     the network
        dataset: list of {"input": [...], "output": [...]}
        cost:    cost function, or its name
        growth:  complexity penalty per hidden node, connection and gate (default: config.growth)
        amount:  number of evaluations averaged (default: config.amount)

    Returns:
        the fitness (higher is better)
    """
    growth = net.config.growth if growth is None else growth
    amount = net.config.amount if amount is None else amount

    error = 0.0
    for _ in range(amount):
        error += trainer.test(net, dataset, cost)["error"]

    score = -error / amount - complexity_penalty(net, growth)
    return -math.inf if math.isnan(score) else score

def evaluate_population(networks: Sequence[Network],
                        dataset : Sequence[dict],
                        cost    : Any          = "mse",
                        growth  : float | None = None,
                        amount  : int   | None = None,
                        num_jobs: int          = 1) -> list[float]:
    """
    Score every network of a population, storing each score in 'network.score'.

    Parameters:
        networks: the population
        dataset:  list of {"input": [...], "output": [...]}
        cost:     cost function, or its name
        growth:   complexity penalty (default: config.growth of the first network)
        amount:   evaluations averaged per network (default: config.amount of the first network)
        num_jobs: Number of parallel processes for evaluation
                   1 = serial (no parallelization)
                  -1 = use all available CPU cores
                  >1 = use specified number of processes

    Returns:
        the scores, in population order
    """
    if not networks:
        return []
    config = networks[0].config
    growth = config.growth if growth is None else growth
    amount = config.amount if amount is None else amount
    serial = num_jobs == 1

    if serial:
        scores = [score_network(net, dataset, cost, growth, amount) for net in networks]
    else:
        # workers only see serialized copies; repeated evaluation of a
        # deserialized genome is deterministic, so 'amount' is not needed there
        serialized_set = serialize_dataset(dataset)
        errors = Parallel(num_jobs)(delayed(evaluate_serialized)(net.serialize(), serialized_set, cost)
                                    for net in networks)
        scores = []
        for net, error in zip(networks, errors):
            score = -error - complexity_penalty(net, growth)
            scores.append(-math.inf if math.isnan(score) else score)

    for net, score in zip(networks, scores):
        net.score = score
    return scores

class DegenerateRunGuard:
    """
    Counts consecutive generations whose error is not finite.
    An evolution run is aborted once the count reaches 'max_degenerate'.
    """

    def __init__(self, max_degenerate: int = 5):
        self.max_degenerate: int = max_degenerate
        self.count         : int = 0

    def update(self, error: float) -> bool:
        """
        Record the error of one generation.

        Returns:
            True if the run should be aborted
        """
        if math.isfinite(error):
            self.count = 0
        else:
            self.count += 1
        return self.count >= self.max_degenerate

    def reset(self):
        self.count = 0

class EvolutionLoop:
    """
    Generation loop around an external population.

    The population object must provide 'evolve()', which breeds and evaluates
    one generation and returns its fittest network (with its 'score' set, for
    instance by 'evaluate_population'). The loop tracks the best network seen,
    and when it ends the best network's structure is adopted by 'network'.

    Public Methods:
        run(...): Evolve until a stopping condition is met
    """

    def __init__(self, network: Network, population: Any, growth: float | None = None):
        """
        Parameters:
            network:    the network that adopts the best structure found
            population: object whose 'evolve()' returns the fittest network of a new generation
            growth:     complexity penalty used by the fitness (default: config.growth)
        """
        self.network   : Network = network
        self.population: Any     = population
        self.growth    : float   = network.config.growth if growth is None else growth
        self.guard               = DegenerateRunGuard(network.config.max_degenerate)

        self.generation  : int            = 0
        self.best_fitness: float          = -math.inf
        self.best_network: Network | None = None

    def _error(self, fittest: Network) -> float:
        """Undo the complexity penalty of the fitness to recover the error."""
        if fittest.score is None or math.isnan(fittest.score):
            return math.inf
        return -(fittest.score + complexity_penalty(fittest, self.growth))

    def _adopt(self, best: Network, clear: bool):
        net             = self.network
        net.nodes       = best.nodes
        net.connections = best.connections
        net.selfconns   = best.selfconns
        net.gates       = best.gates
        net._reindex()
        net._mark_dirty()
        if clear:
            net.clear()

    def run(self,
            iterations    : int | None = None,
            error         : float | None = None,
            log           : int = 0,
            schedule      : dict[str, Any] | None = None,
            stop_condition: Callable[[dict], bool] | None = None,
            clear         : bool = False) -> dict[str, float]:
        """
        Evolve until the error of the fittest network reaches 'error', after
        'iterations' generations, when 'stop_condition' returns True, or when
        too many consecutive generations are degenerate.

        Parameters:
            iterations:     maximum number of generations
            error:          target error
            log:            print progress every 'log' generations
            schedule:       {"iterations": n, "function": f}, calls
                            f({"fitness", "error", "iteration"}) every n generations
            stop_condition: called every generation with {"iteration", "error", "fitness"}
            clear:          clear the network state after adopting the best structure

        Returns:
            {"error": error of the last fittest network, "iterations": generations, "time": seconds}
        """
        if iterations is None and error is None:
            raise ValueError("At least one stopping condition ('iterations' or 'error') must be specified")

        target = -math.inf if error is None else error
        start  = time.time()
        error  = math.inf

        while error > target and (iterations is None or self.generation < iterations):
            fittest          = self.population.evolve()
            self.generation += 1
            fitness          = fittest.score if fittest.score is not None else -math.inf
            error            = self._error(fittest)

            if fitness > self.best_fitness:
                self.best_fitness = fitness
                self.best_network = fittest

            if self.guard.update(error):
                self.network._warn(f"Evolution aborted after {self.guard.count} degenerate generations")
                break

            if log and self.generation % log == 0:
                print(f"generation {self.generation}, fitness {fitness:.6f}, error {error:.6f}")

            if schedule is not None and schedule.get("iterations") and self.generation % schedule["iterations"] == 0:
                schedule["function"]({"fitness": self.best_fitness, "error": error, "iteration": self.generation})

            if stop_condition is not None and \
               stop_condition({"iteration": self.generation, "error": error, "fitness": fitness}):
                break

        if self.best_network is not None:
            self._adopt(self.best_network, clear)

        return {"error": error, "iterations": self.generation, "time": time.time() - start}
