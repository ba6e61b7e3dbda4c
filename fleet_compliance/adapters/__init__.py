from .iamaas_tokens import IamaasTokenProvider
from .ocs_inventory import OcsInventoryClient
from .vault_secrets import VaultSecretStore

__all__ = [
    "IamaasTokenProvider",
    "OcsInventoryClient",
    "VaultSecretStore",
]
