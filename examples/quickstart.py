#!/usr/bin/env python3
"""
OrderHub Quickstart — an order's whole lifecycle in one script.

Logs in → creates an order → adds items → submits it → admin approves →
admin deletes. Run `orderhub hub` alongside to see the OrderCreated /
OrderUpdated / OrderDeleted events go out.

Run with: python examples/quickstart.py

Requires: pip install httpx
API must be running: http://localhost:7071
"""

from _common import create_client, graphql

ORDER_FIELDS = "id title status total items { id name quantity price subtotal }"


def main():
    user = create_client("user", "user123")
    admin = create_client("admin", "admin123")

    # ── Create order ──────────────────────────────────────────────
    print("\n1. Creating order as 'user'...")
    data = graphql(
        user,
        f"""
        mutation($title: String!, $description: String) {{
          createOrder(title: $title, description: $description) {{
            order {{ {ORDER_FIELDS} }}
            errorMessage
          }}
        }}
        """,
        title="Quickstart order",
        description="Created by examples/quickstart.py",
    )
    order = data["createOrder"]["order"]
    print(f"   Order: {order['title']} ({order['id'][:8]}...) [{order['status']}]")

    # ── Add items ─────────────────────────────────────────────────
    print("\n2. Adding items...")
    for name, quantity, price in [("Desk lamp", 2, 24.99), ("Monitor arm", 1, 89.0)]:
        data = graphql(
            user,
            """
            mutation($orderId: ID!, $name: String!, $quantity: Int!, $price: Float!) {
              addOrderItem(orderId: $orderId, name: $name, quantity: $quantity, price: $price) {
                item { id name subtotal }
                errorMessage
              }
            }
            """,
            orderId=order["id"],
            name=name,
            quantity=quantity,
            price=price,
        )
        item = data["addOrderItem"]["item"]
        print(f"   + {item['name']}: {item['subtotal']:.2f}")

    # ── Validation error comes back in the payload ────────────────
    print("\n3. Trying quantity=0...")
    data = graphql(
        user,
        """
        mutation($orderId: ID!) {
          addOrderItem(orderId: $orderId, name: "Nothing", quantity: 0, price: 1) {
            item { id }
            errorMessage
            errorCode
          }
        }
        """,
        orderId=order["id"],
    )
    payload = data["addOrderItem"]
    print(f"   {payload['errorCode']}: {payload['errorMessage']}")

    # ── Submit, then approve as admin ─────────────────────────────
    update = f"""
        mutation($id: ID!, $status: OrderStatus) {{
          updateOrder(id: $id, status: $status) {{
            order {{ {ORDER_FIELDS} }}
            errorMessage
          }}
        }}
    """
    print("\n4. Submitting (PENDING) as 'user'...")
    data = graphql(user, update, id=order["id"], status="PENDING")
    print(f"   Status: {data['updateOrder']['order']['status']}")

    print("\n5. Approving as 'admin'...")
    data = graphql(admin, update, id=order["id"], status="APPROVED")
    approved = data["updateOrder"]["order"]
    print(f"   Status: {approved['status']}  Total: {approved['total']:.2f}")

    # ── Delete ────────────────────────────────────────────────────
    delete = """
        mutation($id: ID!) {
          deleteOrder(id: $id) { success errorMessage }
        }
    """
    print("\n6. Deleting as 'user' (admin-only by default)...")
    data = graphql(user, delete, id=order["id"])
    print(f"   success={data['deleteOrder']['success']}  {data['deleteOrder']['errorMessage']}")

    print("\n7. Deleting as 'admin'...")
    data = graphql(admin, delete, id=order["id"])
    print(f"   success={data['deleteOrder']['success']}")

    # ── Stats ─────────────────────────────────────────────────────
    data = graphql(admin, "{ orderStats { totalOrders totalUsers pendingOrders totalValue } }")
    stats = data["orderStats"]
    print(
        f"\nDone. {stats['totalOrders']} orders, {stats['pendingOrders']} pending, "
        f"{stats['totalValue']:.2f} total value across {stats['totalUsers']} users."
    )


if __name__ == "__main__":
    main()
