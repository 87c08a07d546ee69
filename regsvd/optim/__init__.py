from .sgd import SGD, DecomposableFunction, SparseGradientFunction

__all__ = ["SGD", "DecomposableFunction", "SparseGradientFunction"]
