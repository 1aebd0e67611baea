"""
XOR Problem, Solved Two Ways

The XOR (exclusive OR) problem is the classic benchmark for networks that
need hidden nodes: it is not linearly separable.
        Input (0, 0) → Output 0
        Input (0, 1) → Output 1
        Input (1, 0) → Output 1
        Input (1, 1) → Output 0

This script solves it
    - by backpropagation, training a fixed 2-4-1 multilayer perceptron
    - by neuro-evolution, growing networks from a minimal 2-1 topology with
      mutation and crossover, and scoring the population in parallel

and finally exports the evolved network as standalone Python code.

Usage:
    python trial_XOR.py [num_jobs]
"""

import sys
from pathlib import Path

from evonet                import Config, Network, mutation
from evonet.run.evaluation import evaluate_population, EvolutionLoop

XOR = [{"input": [0.0, 0.0], "output": [0.0]},
       {"input": [0.0, 1.0], "output": [1.0]},
       {"input": [1.0, 0.0], "output": [1.0]},
       {"input": [1.0, 1.0], "output": [0.0]}]

class XORPopulation:
    """
    A minimal elitist population: the fittest networks of a generation are
    kept, and the rest of the next generation is bred from them by
    crossover and mutation.
    """

    def __init__(self, template: Network, size: int = 50, elitism: int = 5, num_jobs: int = 1):
        self.size     = size
        self.elitism  = elitism
        self.num_jobs = num_jobs
        self.members  = []
        for i in range(size):
            member = template.clone()
            member.set_seed(i)
            member.mutate(mutation.MOD_WEIGHT)
            self.members.append(member)
        evaluate_population(self.members, XOR, num_jobs=num_jobs)

    def evolve(self) -> Network:
        ranked    = sorted(self.members, key=lambda net: net.score, reverse=True)
        parents   = ranked[:max(2, self.size // 5)]
        offspring = ranked[:self.elitism]
        rng       = ranked[0].rng

        while len(offspring) < self.size:
            mother, father = rng.sample(parents, 2)
            child = Network.cross_over(mother, father)
            child.set_seed(rng.randrange(2 ** 31))
            for _ in range(rng.randint(1, 3)):
                child.mutate(rng.choice(mutation.FFW))
            offspring.append(child)

        self.members = offspring
        evaluate_population(self.members, XOR, num_jobs=self.num_jobs)
        return max(self.members, key=lambda net: net.score)

def print_truth_table(net: Network):
    for sample in XOR:
        output = net.no_trace_activate(sample["input"])[0]
        print(f"  {sample['input']} -> {output:.4f} (target {sample['output'][0]})")

def solve_by_backpropagation(config: Config):
    print("== Backpropagation ==")
    net    = Network.create_mlp(2, [4], 1, seed=1, config=config)
    result = net.train(XOR, iterations=10000, error=0.005, shuffle=True)
    print(f"error {result['error']:.6f} after {result['iterations']} iterations ({result['time']:.2f}s)")
    print_truth_table(net)

def solve_by_evolution(config: Config, num_jobs: int):
    print("== Neuro-evolution ==")
    net        = Network(2, 1, seed=1, config=config)
    population = XORPopulation(net, num_jobs=num_jobs)
    result     = EvolutionLoop(net, population).run(iterations=300, error=0.01, log=25)
    print(f"error {result['error']:.6f} after {result['iterations']} generations ({result['time']:.2f}s)")
    print(net)
    print_truth_table(net)

    print("== Standalone export ==")
    print(net.standalone())

if __name__ == "__main__":
    num_jobs = int(sys.argv[1]) if len(sys.argv) > 1 else 1
    config   = Config(str(Path(__file__).parent / "config_xor.ini"))
    solve_by_backpropagation(config)
    solve_by_evolution(config, num_jobs)
