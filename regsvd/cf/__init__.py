from .traits import FactorizerTraits, get_factorizer_traits, register_factorizer_traits

__all__ = ["FactorizerTraits", "get_factorizer_traits", "register_factorizer_traits"]
