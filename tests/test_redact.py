from __future__ import annotations

from pycrownstone._redact import describe_secret, mask_email, redact_for_log


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "email": "user@example.com",
        "password": "0b9c2625dc21ef05f6ad4ddf47c5f203837aa32c",
        "id": "user-1",
        "accessToken": "TOKEN",
        "sphereKeys": [{"keyType": "ADMIN_KEY", "key": "deadbeef"}],
        "nested": {"adminKey": "a", "basic_key": "b"},
    }

    redacted = redact_for_log(payload)
    assert redacted["password"] == "<redacted>"
    assert redacted["accessToken"] == "<redacted>"
    assert redacted["sphereKeys"][0]["key"] == "<redacted>"
    assert redacted["sphereKeys"][0]["keyType"] == "ADMIN_KEY"
    assert redacted["nested"] == {"adminKey": "<redacted>", "basic_key": "<redacted>"}
    assert redacted["email"] == "user@example.com"


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_mask_email() -> None:
    assert mask_email("ada@example.com") == "a**@example.com"
    assert mask_email("a@example.com") == "*@example.com"
    assert mask_email("not-an-email") == "<redacted>"


def test_describe_secret() -> None:
    assert describe_secret(None) == "<missing>"
    assert describe_secret("abcd") == "<4 chars>"
