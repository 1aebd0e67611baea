"""
Mutation Operators Module

This module defines the structural and parametric mutation operators
that 'Network.mutate()' understands, and the standard operator lists.

Classes:
    MutationOperator: A named operator, optionally carrying parameters

Constants:
    ADD_NODE, SUB_NODE, ADD_CONN, SUB_CONN, MOD_WEIGHT, MOD_BIAS, MOD_ACTIVATION,
    ADD_SELF_CONN, SUB_SELF_CONN, ADD_GATE, SUB_GATE, ADD_BACK_CONN, SUB_BACK_CONN,
    SWAP_NODES, REINIT_WEIGHT: the operators
    ALL: every operator that may be used for recurrent networks
    FFW: the operators that keep a feed-forward network feed-forward
"""

class MutationOperator:
    """
    A mutation operator.

    Operators are identified by name. Parameters left to None are
    taken from the configuration of the network being mutated:

        min, max:      range of the additive modification (MOD_WEIGHT, MOD_BIAS, REINIT_WEIGHT)
        mutate_output: whether output nodes may be mutated (MOD_ACTIVATION, SWAP_NODES)
        allowed:       activation functions to choose from (MOD_ACTIVATION)
        keep_gates:    whether to redistribute gates when removing a node (SUB_NODE)

    Public Methods:
        with_params(**params): Copy of this operator with some parameters overridden
    """

    def __init__(self, name: str, **params):
        self.name   = name
        self.params = params

    def __getattr__(self, key):
        # only called for attributes that are not found normally
        params = self.__dict__.get('params', {})
        if key in params:
            return params[key]
        raise AttributeError(key)

    def with_params(self, **params) -> 'MutationOperator':
        """
        Create a copy of this operator with some parameters overridden.

        Parameters:
            **params: parameter values, e.g. min=-0.5, max=0.5

        Returns:
            new operator, with the same name
        """
        unknown = set(params) - set(self.params)
        if unknown:
            raise ValueError(f"Operator {self.name} has no parameter(s) {sorted(unknown)}")
        return MutationOperator(self.name, **{**self.params, **params})

    def __eq__(self, other):
        return isinstance(other, MutationOperator) and other.name == self.name

    def __hash__(self):
        return hash(self.name)

    def __repr__(self):
        return f"MutationOperator({self.name})"

ADD_NODE       = MutationOperator("ADD_NODE")
SUB_NODE       = MutationOperator("SUB_NODE", keep_gates=None)
ADD_CONN       = MutationOperator("ADD_CONN")
SUB_CONN       = MutationOperator("SUB_CONN")
MOD_WEIGHT     = MutationOperator("MOD_WEIGHT", min=None, max=None)
MOD_BIAS       = MutationOperator("MOD_BIAS", min=None, max=None)
MOD_ACTIVATION = MutationOperator("MOD_ACTIVATION", mutate_output=None, allowed=None)
ADD_SELF_CONN  = MutationOperator("ADD_SELF_CONN")
SUB_SELF_CONN  = MutationOperator("SUB_SELF_CONN")
ADD_GATE       = MutationOperator("ADD_GATE")
SUB_GATE       = MutationOperator("SUB_GATE")
ADD_BACK_CONN  = MutationOperator("ADD_BACK_CONN")
SUB_BACK_CONN  = MutationOperator("SUB_BACK_CONN")
SWAP_NODES     = MutationOperator("SWAP_NODES", mutate_output=None)
REINIT_WEIGHT  = MutationOperator("REINIT_WEIGHT", min=None, max=None)

ALL = [
    ADD_NODE,
    SUB_NODE,
    ADD_CONN,
    SUB_CONN,
    MOD_WEIGHT,
    MOD_BIAS,
    MOD_ACTIVATION,
    ADD_GATE,
    SUB_GATE,
    ADD_SELF_CONN,
    SUB_SELF_CONN,
    ADD_BACK_CONN,
    SUB_BACK_CONN,
    SWAP_NODES
    ]

FFW = [
    ADD_NODE,
    SUB_NODE,
    ADD_CONN,
    SUB_CONN,
    MOD_WEIGHT,
    MOD_BIAS,
    MOD_ACTIVATION,
    SWAP_NODES
    ]

operators = {op.name: op for op in ALL + [REINIT_WEIGHT]}
