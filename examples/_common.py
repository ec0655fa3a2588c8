"""
Shared helpers for OrderHub examples.

Handles the health check, GraphQL calls and login so each example can
focus on its specific workflow.
"""

import sys

import httpx

BASE = "http://localhost:7071"


def check_backend() -> None:
    """Verify the API is reachable and healthy."""
    try:
        resp = httpx.get(f"{BASE}/health", timeout=5)
    except httpx.ConnectError:
        print(f"ERROR: API not reachable at {BASE}")
        print("Start it with:  orderhub api   (and `orderhub hub` for live updates)")
        sys.exit(1)

    if resp.status_code != 200:
        print(f"ERROR: Health check returned {resp.status_code}")
        sys.exit(1)

    health = resp.json()
    print(f"API health: {health['status']} (v{health['version']})")


def graphql(client: httpx.Client, query: str, **variables) -> dict:
    """POST a GraphQL document and return `data`, exiting on protocol errors."""
    resp = client.post("/graphql", json={"query": query, "variables": variables})
    assert resp.status_code == 200, f"GraphQL request failed: {resp.text}"
    body = resp.json()
    if body.get("errors"):
        for err in body["errors"]:
            print(f"ERROR [{err['extensions']['code']}]: {err['message']}")
        sys.exit(1)
    return body["data"]


def login(username: str, password: str) -> str:
    """Log in as one of the seeded users and return the bearer token."""
    with httpx.Client(base_url=BASE, timeout=10) as client:
        data = graphql(
            client,
            """
            mutation Login($username: String!, $password: String!) {
              login(username: $username, password: $password) {
                token
                errorMessage
              }
            }
            """,
            username=username,
            password=password,
        )
    payload = data["login"]
    if payload["errorMessage"]:
        print(f"ERROR: Login failed: {payload['errorMessage']}")
        sys.exit(1)
    return payload["token"]


def create_client(username: str = "user", password: str = "user123") -> httpx.Client:
    """Check backend, log in, and return an httpx Client with auth headers."""
    check_backend()
    token = login(username, password)
    print(f"  Auth:     ✓ (JWT for {username})")
    return httpx.Client(
        base_url=BASE,
        timeout=10,
        headers={"Authorization": f"Bearer {token}"},
    )
