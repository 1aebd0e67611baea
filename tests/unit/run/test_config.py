"""
Unit tests for Config class.
"""

import pytest
import os
from evonet.activations          import activations
from evonet.architecture.network import Network
from evonet.run.config           import Config


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def test_config_dir():
    """Return the directory containing test configuration files."""
    return os.path.join(os.path.dirname(__file__), 'test_configs')


@pytest.fixture
def full_config(test_config_dir):
    return Config(os.path.join(test_config_dir, 'full.ini'))


# ============================================================================
# Test Config Initialization
# ============================================================================

class TestConfigInit:
    """Test Config initialization."""

    def test_init_without_file_uses_defaults(self):
        """Test that Config() without file holds the default values."""
        config = Config()

        assert config.warnings is False
        assert config.default_squash == "logistic"
        assert config.weight_init_range == 0.1
        assert config.learning_rate == 0.3
        assert config.batch_size == 1
        assert config.growth == 0.0001
        assert config.activation_options == list(activations.keys())

    def test_init_with_nonexistent_file_raises_error(self):
        """Test that Config with nonexistent file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="Configuration file .* not found"):
            Config('nonexistent_file.ini')

    def test_minimal_config_overrides_only_listed_options(self, test_config_dir):
        """Test that options absent from the file keep their defaults."""
        config = Config(os.path.join(test_config_dir, 'minimal.ini'))

        assert config.default_squash == "tanh"
        assert config.bias_init_range == 0.1
        assert config.reenable_probability == 0.25
        assert config.max_degenerate == 5


# ============================================================================
# Test Config Sections
# ============================================================================

class TestConfigSections:
    """Test parsing of every section of a complete file."""

    def test_general(self, full_config):
        assert full_config.warnings is True

    def test_network(self, full_config):
        assert full_config.weight_init_range == 0.5
        assert full_config.bias_init_range == 0.2
        assert full_config.default_squash == "relu"
        assert full_config.enforce_acyclic is True

    def test_mutation(self, full_config):
        assert (full_config.mod_weight_min, full_config.mod_weight_max) == (-0.5, 0.5)
        assert (full_config.mod_bias_min, full_config.mod_bias_max) == (-0.25, 0.25)
        assert full_config.mutate_output is False
        assert full_config.keep_gates is False
        assert full_config.activation_options == ["logistic", "tanh", "relu"]

    def test_crossover(self, full_config):
        assert full_config.reenable_probability == 0.5

    def test_training(self, full_config):
        assert full_config.learning_rate == 0.05
        assert full_config.momentum == 0.9
        assert full_config.batch_size == 4
        assert full_config.log_interval == 100
        assert full_config.loss_scale == 256.0
        assert full_config.loss_scale_min == 2.0
        assert full_config.loss_scale_max == 1024.0
        assert full_config.loss_scale_increase_every == 50

    def test_evolution(self, full_config):
        assert full_config.growth == 0.001
        assert full_config.amount == 3
        assert full_config.max_degenerate == 10

    def test_types(self, full_config):
        assert isinstance(full_config.batch_size, int)
        assert isinstance(full_config.loss_scale, float)
        assert isinstance(full_config.warnings, bool)


# ============================================================================
# Test Config Validation
# ============================================================================

class TestConfigValidation:
    """Test rejection of invalid values."""

    def test_invalid_default_squash(self, test_config_dir):
        with pytest.raises(ValueError, match="Invalid activation function 'no_such_function' for default_squash"):
            Config(os.path.join(test_config_dir, 'invalid_squash.ini'))

    def test_invalid_activation_options(self, test_config_dir):
        with pytest.raises(ValueError, match="Invalid activation function 'no_such_function' in activation_options"):
            Config(os.path.join(test_config_dir, 'invalid_activation_options.ini'))


# ============================================================================
# Test Activation Options Assignment
# ============================================================================

class TestActivationOptions:
    """Test that assigning activation_options parses it."""

    def test_assign_comma_separated_string(self):
        config = Config()
        config.activation_options = "tanh, relu"
        assert config.activation_options == ["tanh", "relu"]

    def test_assign_all(self):
        config = Config()
        config.activation_options = ["tanh"]
        config.activation_options = "all"
        assert config.activation_options == list(activations.keys())

    def test_assign_invalid_list_raises(self):
        config = Config()
        with pytest.raises(ValueError, match="Invalid activation function"):
            config.activation_options = ["tanh", "bogus"]


# ============================================================================
# Test Config Usage
# ============================================================================

class TestConfigUsage:

    def test_config_drives_new_networks(self, full_config):
        """Test that a network created with a config follows it."""
        net = Network(2, 1, config=full_config)
        assert net.enforce_acyclic
        assert net.config is full_config
        assert all(node.squash == "relu" for node in net.nodes)
