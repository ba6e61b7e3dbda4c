from .inventory import InventoryClient
from .secrets import SecretStore
from .tokens import TokenProvider

__all__ = [
    "InventoryClient",
    "SecretStore",
    "TokenProvider",
]
