import pytest

from kaspa_deposit.abort import AbortToken
from kaspa_deposit.errors import OperationAborted
from kaspa_deposit.secret import Secret


def test_secret_never_renders_its_value() -> None:
    secret = Secret("hunter2")

    assert "hunter2" not in repr(secret)
    assert "hunter2" not in str(secret)
    assert "hunter2" not in f"{secret}"
    assert secret.expose() == "hunter2"


def test_secret_identity_does_not_leak_its_value() -> None:
    secret = Secret("hunter2")

    assert hash(secret) != hash("hunter2")
    assert secret != Secret("hunter2")
    assert secret == secret


def test_secret_redacts_foreign_messages() -> None:
    secret = Secret("hunter2")

    assert secret.redact("bad password hunter2 for hunter2") == "bad password *** for ***"
    assert Secret("").redact("unchanged") == "unchanged"


def test_abort_token_blocks_after_abort() -> None:
    token = AbortToken()
    token.check("send")
    assert token.remaining() is None

    token.abort("operator cancelled")

    assert token.is_aborted
    with pytest.raises(OperationAborted) as excinfo:
        token.check("send")
    assert "operator cancelled" in str(excinfo.value)


def test_abort_token_fires_after_deadline() -> None:
    token = AbortToken(timeout=0)

    assert token.is_aborted
    assert token.reason == "deadline exceeded"
    assert token.remaining() == 0.0
