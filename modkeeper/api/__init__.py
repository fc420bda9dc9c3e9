from modkeeper.api.base import CompatibilityProvider

__all__ = ["CompatibilityProvider"]
