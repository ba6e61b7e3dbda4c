def build_scope(account_id: str, scope_template: str) -> str:
    """
    "{account}:sgcp:{scope}" for each whitespace-separated scope, joined by single spaces.
    Input order is kept.
    """
    return " ".join(f"{account_id}:sgcp:{s}" for s in (scope_template or "").split())
