"""OrderHub CLI — run the services and poke the GraphQL API.

Usage:
    orderhub api                                  # Serve the GraphQL API (port 7071)
    orderhub hub                                  # Serve the notification hub (port 5000)
    orderhub login admin admin123                 # Print a bearer token
    orderhub orders                               # List orders visible to $ORDERHUB_TOKEN
    orderhub create-order "Office chairs" -d "x"  # Create a Draft order
    orderhub token <jwt>                          # Show a token's claims
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:7071"

LOGIN_MUTATION = """
mutation Login($username: String!, $password: String!) {
  login(username: $username, password: $password) {
    token
    user { id username role }
    errorMessage
    errorCode
  }
}
"""

ORDERS_QUERY = """
query { orders { id title status total createdBy { username } items { id } } }
"""

CREATE_ORDER_MUTATION = """
mutation CreateOrder($title: String!, $description: String) {
  createOrder(title: $title, description: $description) {
    order { id title status }
    errorMessage
    errorCode
  }
}
"""


def _api_url() -> str:
    return os.environ.get("ORDERHUB_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(token: Optional[str] = None) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the OrderHub API."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0, headers=headers)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _token_from_ctx(token: Optional[str]) -> str:
    """Resolve the bearer token from --token or ORDERHUB_TOKEN."""
    tok = token or os.environ.get("ORDERHUB_TOKEN")
    if not tok:
        click.secho(
            "Error: --token required (or set ORDERHUB_TOKEN, see `orderhub login`)",
            fg="red",
            err=True,
        )
        sys.exit(1)
    return tok


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "—"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


def _status_color(status: str) -> str:
    colors = {
        "DRAFT": "white",
        "PENDING": "yellow",
        "APPROVED": "green",
        "ARCHIVED": "blue",
    }
    return colors.get(status, "white")


async def _graphql(c: httpx.AsyncClient, query: str, variables: Optional[dict] = None) -> dict:
    r = await c.post("/graphql", json={"query": query, "variables": variables or {}})
    r.raise_for_status()
    body = r.json()
    if body.get("errors"):
        for err in body["errors"]:
            code = (err.get("extensions") or {}).get("code", "ERROR")
            click.secho(f"{code}: {err['message']}", fg="red", err=True)
        sys.exit(1)
    return body["data"]


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="orderhub")
def main():
    """OrderHub — orders over GraphQL with live change notifications."""


# ---------------------------------------------------------------------------
# orderhub api / hub
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default: ORDERHUB_HOST)")
@click.option("--port", type=int, default=None, help="Port (default: ORDERHUB_PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def api(host: Optional[str], port: Optional[int], reload: bool):
    """Serve the GraphQL API."""
    import uvicorn

    from orderhub.config import settings
    from orderhub.logging_config import configure_logging

    configure_logging(service_name="orderhub-api", level=settings.log_level)
    uvicorn.run(
        "orderhub.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command()
@click.option("--host", default=None, help="Bind address (default: ORDERHUB_HUB_HOST)")
@click.option("--port", type=int, default=None, help="Port (default: ORDERHUB_HUB_PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def hub(host: Optional[str], port: Optional[int], reload: bool):
    """Serve the real-time notification hub."""
    import uvicorn

    from orderhub.config import settings
    from orderhub.logging_config import configure_logging

    configure_logging(service_name="orderhub-hub", level=settings.log_level)
    uvicorn.run(
        "orderhub.hub_main:app",
        host=host or settings.hub_host,
        port=port or settings.hub_port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# orderhub login
# ---------------------------------------------------------------------------


@main.command()
@click.argument("username")
@click.argument("password")
@click.option("--json-output", "as_json", is_flag=True, help="Print the raw payload")
def login(username: str, password: str, as_json: bool):
    """Log in and print a bearer token.

    Export it for the other commands:  export ORDERHUB_TOKEN=$(orderhub login admin admin123)
    """
    _run(_login_impl(username, password, as_json))


async def _login_impl(username: str, password: str, as_json: bool):
    async with _client() as c:
        data = await _graphql(c, LOGIN_MUTATION, {"username": username, "password": password})

    payload = data["login"]
    if as_json:
        click.echo(_pretty_json(payload))
        return
    if payload["errorMessage"]:
        click.secho(f"Login failed: {payload['errorMessage']}", fg="red", err=True)
        sys.exit(1)
    user = payload["user"]
    click.secho(f"Logged in as {user['username']} ({user['role']})", fg="green", err=True)
    click.echo(payload["token"])


# ---------------------------------------------------------------------------
# orderhub orders
# ---------------------------------------------------------------------------


@main.command()
@click.option("--token", help="Bearer token (or set ORDERHUB_TOKEN)")
@click.option("--json-output", "as_json", is_flag=True, help="Print raw JSON")
def orders(token: Optional[str], as_json: bool):
    """List the orders you can see."""
    _run(_orders_impl(token, as_json))


async def _orders_impl(token: Optional[str], as_json: bool):
    tok = _token_from_ctx(token)
    async with _client(tok) as c:
        data = await _graphql(c, ORDERS_QUERY)

    rows = data["orders"]
    if as_json:
        click.echo(_pretty_json(rows))
        return
    if not rows:
        click.echo("No orders.")
        return

    for row in rows:
        row["owner"] = (row.get("createdBy") or {}).get("username", "—")
        row["item_count"] = len(row.get("items") or [])
        row["total_str"] = f"{row['total']:.2f}"
    _print_table(rows, [
        ("ID", "id", 36),
        ("TITLE", "title", 30),
        ("STATUS", "status", 9),
        ("ITEMS", "item_count", 5),
        ("TOTAL", "total_str", 10),
        ("OWNER", "owner", 12),
    ])


# ---------------------------------------------------------------------------
# orderhub create-order
# ---------------------------------------------------------------------------


@main.command("create-order")
@click.argument("title")
@click.option("--description", "-d", default="", help="Order description")
@click.option("--token", help="Bearer token (or set ORDERHUB_TOKEN)")
def create_order(title: str, description: str, token: Optional[str]):
    """Create a Draft order owned by you."""
    _run(_create_order_impl(title, description, token))


async def _create_order_impl(title: str, description: str, token: Optional[str]):
    tok = _token_from_ctx(token)
    async with _client(tok) as c:
        data = await _graphql(
            c, CREATE_ORDER_MUTATION, {"title": title, "description": description}
        )

    payload = data["createOrder"]
    if payload["errorMessage"]:
        click.secho(f"{payload['errorCode']}: {payload['errorMessage']}", fg="red", err=True)
        sys.exit(1)
    order = payload["order"]
    status_str = click.style(order["status"], fg=_status_color(order["status"]))
    click.echo(f"Order {order['id']} created: {order['title']} [{status_str}]")


# ---------------------------------------------------------------------------
# orderhub token
# ---------------------------------------------------------------------------


@main.command()
@click.argument("token")
@click.option("--verify/--no-verify", default=True,
              help="Check signature, issuer, audience and expiry against local settings")
def token(token: str, verify: bool):
    """Show the claims inside a token."""
    from orderhub.auth.jwt import TokenService
    from orderhub.config import settings

    tokens = TokenService.from_settings(settings)
    claims = tokens.validate_token(token) if verify else tokens.read_unverified(token)
    if claims is None:
        click.secho("Invalid token", fg="red", err=True)
        sys.exit(1)

    click.echo(_pretty_json({
        "sub": claims.subject,
        "username": claims.username,
        "email": claims.email,
        "role": claims.role.value,
        "jti": claims.token_id,
        "iss": claims.issuer,
        "aud": claims.audience,
        "iat": claims.issued_at,
        "exp": claims.expires_at,
    }))


if __name__ == "__main__":
    main()
