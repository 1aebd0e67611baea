"""
Activations Package

This package provides the squash (activation) functions used by network nodes,
together with their derivatives.

Exported:
    activations:         Dictionary mapping activation function names to functions
    derivatives:         Dictionary mapping activation function names to derivatives
    activation_codes:    Dictionary mapping activation function names to 3-letter codes
    register_activation: Add a custom activation (derivative optional, via autograd)
"""

from evonet.activations.basic_activations import (
    activations,
    derivatives,
    activation_codes,
    register_activation,
    logistic_activation,
    tanh_activation,
    identity_activation,
    step_activation,
    relu_activation,
    softsign_activation,
    sinusoid_activation,
    gaussian_activation,
    bent_identity_activation,
    bipolar_activation,
    bipolar_sigmoid_activation,
    hard_tanh_activation,
    absolute_activation,
    inverse_activation,
    selu_activation,
    softplus_activation,
    swish_activation,
    gelu_activation,
    mish_activation
)

__all__ = [
    'activations',
    'derivatives',
    'activation_codes',
    'register_activation',
    'logistic_activation',
    'tanh_activation',
    'identity_activation',
    'step_activation',
    'relu_activation',
    'softsign_activation',
    'sinusoid_activation',
    'gaussian_activation',
    'bent_identity_activation',
    'bipolar_activation',
    'bipolar_sigmoid_activation',
    'hard_tanh_activation',
    'absolute_activation',
    'inverse_activation',
    'selu_activation',
    'softplus_activation',
    'swish_activation',
    'gelu_activation',
    'mish_activation'
]
