"""
Run Package

Modules:
    config:     Config class (INI file configuration)
    trainer:    Gradient-based training and testing of a network
    evaluation: Fitness scoring, population evaluation and the evolution loop
"""

from evonet.run.config import Config

__all__ = ['Config']
