"""Demo seed data — two users, three orders, seven items.

Learn: seeding is idempotent. It runs from the API lifespan when
ORDERHUB_SEED_DEMO_DATA is on and does nothing if the admin already exists.
"""

from datetime import timedelta
from decimal import Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from orderhub.auth.password import hash_password
from orderhub.db.models import Order, OrderItem, OrderStatus, User, UserRole, utcnow

logger = structlog.get_logger()

ADMIN_ID = "admin-001"
USER_ID = "user-001"

DEMO_USERS = [
    (ADMIN_ID, "admin", "admin@orderhub.dev", "admin123", UserRole.ADMIN),
    (USER_ID, "user", "user@orderhub.dev", "user123", UserRole.USER),
]

# (id, title, description, status, owner, created days ago, updated days ago)
DEMO_ORDERS = [
    ("order-001", "Office Supplies", "Monthly office supplies order",
     OrderStatus.PENDING, ADMIN_ID, 5, 5),
    ("order-002", "IT Equipment", "New laptops for development team",
     OrderStatus.APPROVED, ADMIN_ID, 10, 3),
    ("order-003", "Training Materials", "Books and courses for team training",
     OrderStatus.DRAFT, USER_ID, 2, 2),
]

DEMO_ITEMS = [
    ("item-001", "order-001", "Notebooks", 50, "5.99"),
    ("item-002", "order-001", "Pens (Box)", 20, "12.50"),
    ("item-003", "order-001", "Sticky Notes", 100, "2.25"),
    ("item-004", "order-002", 'MacBook Pro 14"', 5, "2499.00"),
    ("item-005", "order-002", 'External Monitor 27"', 5, "449.00"),
    ("item-006", "order-003", "Clean Code Book", 10, "45.00"),
    ("item-007", "order-003", "Pluralsight Subscription", 5, "299.00"),
]


async def seed_demo_data(db: AsyncSession, *, bcrypt_rounds: int = 12) -> bool:
    """Insert the demo rows. Returns False when they were already present."""
    existing = await db.execute(select(User.id).where(User.id == ADMIN_ID))
    if existing.scalar_one_or_none() is not None:
        return False

    now = utcnow()
    for user_id, username, email, password, role in DEMO_USERS:
        db.add(User(
            id=user_id,
            username=username,
            email=email,
            password_hash=hash_password(password, rounds=bcrypt_rounds),
            role=role,
            created_at=now,
        ))

    for order_id, title, description, status, owner, created, updated in DEMO_ORDERS:
        db.add(Order(
            id=order_id,
            title=title,
            description=description,
            status=status,
            created_by_id=owner,
            created_at=now - timedelta(days=created),
            updated_at=now - timedelta(days=updated),
        ))

    for item_id, order_id, name, quantity, price in DEMO_ITEMS:
        db.add(OrderItem(
            id=item_id,
            order_id=order_id,
            name=name,
            quantity=quantity,
            price=Decimal(price),
        ))

    await db.commit()
    logger.info(
        "orderhub.seeded",
        users=len(DEMO_USERS),
        orders=len(DEMO_ORDERS),
        items=len(DEMO_ITEMS),
    )
    return True
