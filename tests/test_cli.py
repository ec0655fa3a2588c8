"""CLI tests — commands that work without a running server.

Learn: click's CliRunner invokes the command group in-process and
captures stdout/stderr and the exit code.
"""

import json

import pytest
from click.testing import CliRunner

from orderhub.auth.jwt import TokenService
from orderhub.cli.main import main
from orderhub.config import settings as process_settings


@pytest.fixture()
def runner():
    return CliRunner()


def test_token_shows_verified_claims(runner, seeded_users):
    token = TokenService.from_settings(process_settings).issue_token(seeded_users["admin"])
    result = runner.invoke(main, ["token", token])
    assert result.exit_code == 0, result.output
    claims = json.loads(result.output)
    assert claims["username"] == "admin"
    assert claims["role"] == "Admin"
    assert claims["iss"] == process_settings.jwt_issuer


def test_token_with_foreign_signature(runner, make_test_settings, seeded_users):
    foreign_tokens = TokenService.from_settings(make_test_settings())
    foreign = foreign_tokens.issue_token(seeded_users["user"])
    assert runner.invoke(main, ["token", foreign]).exit_code == 1

    unverified = runner.invoke(main, ["token", foreign, "--no-verify"])
    assert unverified.exit_code == 0
    assert json.loads(unverified.output)["sub"] == seeded_users["user"].id


def test_token_garbage(runner):
    result = runner.invoke(main, ["token", "not.a.token", "--no-verify"])
    assert result.exit_code == 1


def test_orders_requires_token(runner, monkeypatch):
    monkeypatch.delenv("ORDERHUB_TOKEN", raising=False)
    result = runner.invoke(main, ["orders"])
    assert result.exit_code == 1
    assert "ORDERHUB_TOKEN" in result.output
