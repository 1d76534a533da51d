from .client import ClientModel

__all__ = ["ClientModel"]
