import pytest

from fleet_compliance.services.scope_builder import build_scope


@pytest.mark.parametrize(
    "account, template, expected",
    [
        ("acc", "read", "acc:sgcp:read"),
        ("acc", "read write", "acc:sgcp:read acc:sgcp:write"),
        ("acc", "  b   a\tc\n", "acc:sgcp:b acc:sgcp:a acc:sgcp:c"),   # order kept, whitespace collapsed
        ("acc", "", ""),
    ],
)
def test_build_scope(account, template, expected):
    assert build_scope(account, template) == expected
