"""
Learning Rate Policies Module

A rate policy is a function 'policy(base_rate, iteration) -> rate'
that the training loop calls at every iteration.

Functions:
    fixed(): the base rate, unchanged
    step(gamma, step_size): decay by 'gamma' every 'step_size' iterations
    exp(gamma): exponential decay
    inv(gamma, power): inverse-power decay
"""

import math

def fixed():
    def policy(base_rate: float, iteration: int) -> float:
        return base_rate
    return policy

def step(gamma: float = 0.9, step_size: int = 100):
    if step_size <= 0:
        raise ValueError("step_size must be positive")

    def policy(base_rate: float, iteration: int) -> float:
        return base_rate * gamma ** math.floor(iteration / step_size)
    return policy

def exp(gamma: float = 0.999):
    def policy(base_rate: float, iteration: int) -> float:
        return base_rate * gamma ** iteration
    return policy

def inv(gamma: float = 0.001, power: float = 2):
    def policy(base_rate: float, iteration: int) -> float:
        return base_rate * (1 + gamma * iteration) ** -power
    return policy
