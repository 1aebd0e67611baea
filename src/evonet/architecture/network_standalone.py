"""
Network Standalone Module

Export of a network as the Python source code of a self-contained
'activate(input)' function, which depends on nothing but the 'math' module.
The generated code embeds the activation functions it needs, the current
activation and state vectors (A and S), and one line per non-input node.

Functions:
    standalone(net): Python source of a standalone forward function
"""

from typing import TYPE_CHECKING

from evonet.architecture.node import NodeType

if TYPE_CHECKING:
    from evonet.architecture.network import Network

# Source of each built-in activation function, in terms of the 'math' module
_SNIPPETS = {
    "logistic"       : "def logistic(x):\n    x = min(max(x, -500.0), 500.0)\n    return 1.0 / (1.0 + math.exp(-x))",
    "tanh"           : "def tanh(x):\n    return math.tanh(x)",
    "identity"       : "def identity(x):\n    return x",
    "step"           : "def step(x):\n    return 1.0 if x > 0 else 0.0",
    "relu"           : "def relu(x):\n    return x if x > 0 else 0.0",
    "softsign"       : "def softsign(x):\n    return x / (1.0 + abs(x))",
    "sinusoid"       : "def sinusoid(x):\n    return math.sin(x)",
    "gaussian"       : "def gaussian(x):\n    return math.exp(-x * x)",
    "bent_identity"  : "def bent_identity(x):\n    return (math.sqrt(x * x + 1.0) - 1.0) / 2.0 + x",
    "bipolar"        : "def bipolar(x):\n    return 1.0 if x > 0 else -1.0",
    "bipolar_sigmoid": "def bipolar_sigmoid(x):\n    x = min(max(x, -500.0), 500.0)\n    return 2.0 / (1.0 + math.exp(-x)) - 1.0",
    "hard_tanh"      : "def hard_tanh(x):\n    return max(-1.0, min(1.0, x))",
    "absolute"       : "def absolute(x):\n    return abs(x)",
    "inverse"        : "def inverse(x):\n    return 1.0 - x",
    "selu"           : ("def selu(x):\n"
                        "    alpha, scale = 1.6732632423543772, 1.0507009873554805\n"
                        "    return scale * (x if x > 0 else alpha * (math.exp(x) - 1.0))"),
    "softplus"       : ("def softplus(x):\n"
                        "    return max(x, 0.0) + math.log1p(math.exp(-abs(x)))"),
    "swish"          : ("def swish(x):\n"
                        "    return x / (1.0 + math.exp(-min(max(x, -500.0), 500.0)))"),
    "gelu"           : ("def gelu(x):\n"
                        "    c = math.sqrt(2.0 / math.pi)\n"
                        "    return 0.5 * x * (1.0 + math.tanh(c * (x + 0.044715 * x ** 3)))"),
    "mish"           : ("def mish(x):\n"
                        "    sp = max(x, 0.0) + math.log1p(math.exp(-abs(x)))\n"
                        "    return x * math.tanh(sp)"),
}

def standalone(net: 'Network') -> str:
    """
    Python source code of a standalone forward function for a network.

    The code reproduces 'no_trace_activate' on the network as it is now:
    the state of the network (activations and states of every node) is
    captured, so recurrent networks carry on from where they were. Dropout,
    DropConnect and weight noise are not exported.

    Parameters:
        net: the network to export

    Returns:
        Python source defining 'activate(input) -> list[float]'
    """
    if not any(node.type is NodeType.OUTPUT for node in net.nodes):
        raise ValueError("Cannot create standalone function: network has no output nodes")

    net._reindex()
    functions = []
    index_of  = {}
    lines     = [f"    for i in range({net.input}):",
                 "        A[i] = input[i]"]

    for node in net.nodes[net.input:]:
        if node.squash not in index_of:
            if node.squash not in _SNIPPETS:
                raise ValueError(f"Activation function '{node.squash}' has no standalone definition")
            index_of[node.squash] = len(functions)
            functions.append(node.squash)

        i     = node.index
        terms = []
        for conn in node.incoming:
            if not conn.enabled:
                continue
            term = f"A[{conn.from_node.index}] * {conn.weight!r}"
            if conn.gater is not None:
                term += f" * A[{conn.gater.index}]"
            terms.append(term)
        sc = node.self_connection
        if sc is not None and sc.enabled:
            term = f"S[{i}] * {sc.weight!r}"
            if sc.gater is not None:
                term += f" * A[{sc.gater.index}]"
            terms.append(term)

        terms.append(repr(node.bias))
        lines.append(f"    S[{i}] = {' + '.join(terms)}")
        lines.append(f"    A[{i}] = F[{index_of[node.squash]}](S[{i}])")

    outputs = ", ".join(f"A[{node.index}]" for node in net.nodes[len(net.nodes) - net.output:])
    lines.append(f"    return [{outputs}]")

    source  = "import math\n\n"
    source += "\n\n".join(_SNIPPETS[name] for name in functions) + "\n\n" if functions else ""
    source += f"F = [{', '.join(functions)}]\n"
    source += f"A = {[float(node.activation) for node in net.nodes]!r}\n"
    source += f"S = {[float(node.state) for node in net.nodes]!r}\n\n"
    source += "def activate(input):\n"
    source += f"    if input is None or len(input) != {net.input}:\n"
    source += (f"        raise ValueError('Invalid input size. Expected {net.input}, got ' "
               f"+ ('None' if input is None else str(len(input))))\n")
    source += "\n".join(lines) + "\n"
    return source
