"""
Shared fixtures for integration tests.
"""

import pytest


@pytest.fixture
def sine_dataset():
    """Samples of a scaled sine wave, inputs and outputs in [0, 1]."""
    import math
    return [{"input": [i / 10], "output": [0.5 + 0.4 * math.sin(i / 10 * math.pi)]} for i in range(11)]
