"""Pytest configuration and shared fixtures."""

import pytest
import random
import sys
import numpy as np
from pathlib import Path

# Add the source directory to the Python path
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir / "src"))


@pytest.fixture(autouse=True)
def set_random_seeds():
    """Set random seeds for reproducibility and reset global state."""
    from evonet.architecture.innovation_tracker import InnovationTracker

    np.random.seed(42)
    random.seed(42)

    # Gene IDs are handed out by a global tracker: start every test afresh
    InnovationTracker.initialize()

    yield

    np.random.seed(None)
    random.seed(None)


@pytest.fixture
def xor_dataset():
    """The XOR truth table as a dataset."""
    return [{"input": [0.0, 0.0], "output": [0.0]},
            {"input": [0.0, 1.0], "output": [1.0]},
            {"input": [1.0, 0.0], "output": [1.0]},
            {"input": [1.0, 1.0], "output": [0.0]}]


@pytest.fixture
def warning_config():
    """Default configuration with warnings enabled."""
    from evonet.run.config import Config
    config = Config()
    config.warnings = True
    return config
