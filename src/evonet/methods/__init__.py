"""
Methods Package

Modules:
    mutation:  Mutation operators and the standard operator lists
    cost:      Cost functions (and derivatives)
    rate:      Learning rate policies
    optimizer: Update rules applied by the training loop
"""
