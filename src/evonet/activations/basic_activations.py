import autograd.numpy as np  # type: ignore
from autograd import grad   # type: ignore

_SELU_ALPHA = 1.6732632423543772848170429916717
_SELU_SCALE = 1.0507009873554804934193349852946
_GELU_C     = np.sqrt(2.0 / np.pi)

def logistic_activation(z):
    z = np.clip(z, -500, 500)   # to prevent overflow when calculating exp
    return 1.0 / (1.0 + np.exp(-z))

def tanh_activation(z):
    return np.tanh(z)

def identity_activation(z):
    return z

def step_activation(z):
    return np.where(z > 0, 1.0, 0.0)

def relu_activation(z):
    return np.maximum(0.0, z)

def softsign_activation(z):
    return z / (1.0 + np.abs(z))

def sinusoid_activation(z):
    return np.sin(z)

def gaussian_activation(z):
    return np.exp(-z ** 2)

def bent_identity_activation(z):
    return (np.sqrt(z ** 2 + 1.0) - 1.0) / 2.0 + z

def bipolar_activation(z):
    return np.where(z > 0, 1.0, -1.0)

def bipolar_sigmoid_activation(z):
    return 2.0 * logistic_activation(z) - 1.0

def hard_tanh_activation(z):
    return np.clip(z, -1.0, 1.0)

def absolute_activation(z):
    return np.abs(z)

def inverse_activation(z):
    return 1.0 - z

def selu_activation(z):
    # exp is only evaluated on the non-positive branch
    negative = _SELU_ALPHA * (np.exp(np.minimum(z, 0.0)) - 1.0)
    return _SELU_SCALE * np.where(z > 0, z, negative)

def softplus_activation(z):
    return np.logaddexp(0.0, z)

def swish_activation(z):
    return z * logistic_activation(z)

def gelu_activation(z):
    return 0.5 * z * (1.0 + np.tanh(_GELU_C * (z + 0.044715 * z ** 3)))

def mish_activation(z):
    return z * np.tanh(softplus_activation(z))

# Derivatives, with respect to the pre-activation state 'z'

def logistic_derivative(z):
    f = logistic_activation(z)
    return f * (1.0 - f)

def tanh_derivative(z):
    return 1.0 - np.tanh(z) ** 2

def identity_derivative(z):
    return np.ones_like(z)

def step_derivative(z):
    return np.zeros_like(z)

def relu_derivative(z):
    return np.where(z > 0, 1.0, 0.0)

def softsign_derivative(z):
    return 1.0 / (1.0 + np.abs(z)) ** 2

def sinusoid_derivative(z):
    return np.cos(z)

def gaussian_derivative(z):
    return -2.0 * z * np.exp(-z ** 2)

def bent_identity_derivative(z):
    return z / (2.0 * np.sqrt(z ** 2 + 1.0)) + 1.0

def bipolar_derivative(z):
    return np.zeros_like(z)

def bipolar_sigmoid_derivative(z):
    f = bipolar_sigmoid_activation(z)
    return (1.0 + f) * (1.0 - f) / 2.0

def hard_tanh_derivative(z):
    return np.where(np.abs(z) < 1.0, 1.0, 0.0)

def absolute_derivative(z):
    return np.where(z < 0, -1.0, 1.0)

def inverse_derivative(z):
    return -np.ones_like(z)

def selu_derivative(z):
    return _SELU_SCALE * np.where(z > 0, 1.0, _SELU_ALPHA * np.exp(np.minimum(z, 0.0)))

def softplus_derivative(z):
    return logistic_activation(z)

def swish_derivative(z):
    s = logistic_activation(z)
    return s + z * s * (1.0 - s)

def gelu_derivative(z):
    inner = _GELU_C * (z + 0.044715 * z ** 3)
    t     = np.tanh(inner)
    return 0.5 * (1.0 + t) + 0.5 * z * (1.0 - t ** 2) * _GELU_C * (1.0 + 3 * 0.044715 * z ** 2)

def mish_derivative(z):
    t = np.tanh(softplus_activation(z))
    return t + z * (1.0 - t ** 2) * logistic_activation(z)

activations = {
    "logistic"       : logistic_activation,
    "tanh"           : tanh_activation,
    "identity"       : identity_activation,
    "step"           : step_activation,
    "relu"           : relu_activation,
    "softsign"       : softsign_activation,
    "sinusoid"       : sinusoid_activation,
    "gaussian"       : gaussian_activation,
    "bent_identity"  : bent_identity_activation,
    "bipolar"        : bipolar_activation,
    "bipolar_sigmoid": bipolar_sigmoid_activation,
    "hard_tanh"      : hard_tanh_activation,
    "absolute"       : absolute_activation,
    "inverse"        : inverse_activation,
    "selu"           : selu_activation,
    "softplus"       : softplus_activation,
    "swish"          : swish_activation,
    "gelu"           : gelu_activation,
    "mish"           : mish_activation
    }

derivatives = {
    "logistic"       : logistic_derivative,
    "tanh"           : tanh_derivative,
    "identity"       : identity_derivative,
    "step"           : step_derivative,
    "relu"           : relu_derivative,
    "softsign"       : softsign_derivative,
    "sinusoid"       : sinusoid_derivative,
    "gaussian"       : gaussian_derivative,
    "bent_identity"  : bent_identity_derivative,
    "bipolar"        : bipolar_derivative,
    "bipolar_sigmoid": bipolar_sigmoid_derivative,
    "hard_tanh"      : hard_tanh_derivative,
    "absolute"       : absolute_derivative,
    "inverse"        : inverse_derivative,
    "selu"           : selu_derivative,
    "softplus"       : softplus_derivative,
    "swish"          : swish_derivative,
    "gelu"           : gelu_derivative,
    "mish"           : mish_derivative
    }

# 3-letter identifiers for each activation function
activation_codes = {
    "logistic"       : "LOG",
    "tanh"           : "TNH",
    "identity"       : "IDN",
    "step"           : "STP",
    "relu"           : "RLU",
    "softsign"       : "SSN",
    "sinusoid"       : "SIN",
    "gaussian"       : "GAU",
    "bent_identity"  : "BNT",
    "bipolar"        : "BIP",
    "bipolar_sigmoid": "BPS",
    "hard_tanh"      : "HTH",
    "absolute"       : "ABS",
    "inverse"        : "INV",
    "selu"           : "SLU",
    "softplus"       : "SPL",
    "swish"          : "SWS",
    "gelu"           : "GLU",
    "mish"           : "MSH"
    }

def register_activation(name: str, function, derivative=None, code: str | None = None):
    """
    Add a custom activation function to the registry.

    When no derivative is given, it is obtained by automatic
    differentiation of 'function' (which must then be written
    with 'autograd.numpy' primitives).

    Parameters:
        name:       Name under which the function is registered
        function:   Scalar map R -> R
        derivative: Derivative of 'function' (optional)
        code:       3-letter identifier (defaults to the first 3 letters of the name)
    """
    if not callable(function):
        raise ValueError(f"Activation '{name}' is not callable")
    if derivative is None:
        gradient   = grad(lambda z: function(z))
        derivative = lambda z: gradient(float(z))
    activations[name]      = function
    derivatives[name]      = derivative
    activation_codes[name] = code or name[:3].upper()
