from __future__ import annotations


class TokenProvider:
    """Strategy interface: client-credentials exchange for a bearer token."""

    def get_access_token(self, token_endpoint: str, client_id: str, client_secret: str, scope: str) -> str:
        raise NotImplementedError
