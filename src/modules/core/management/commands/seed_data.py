from __future__ import annotations

import random
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management.base import BaseCommand

from modules.core.actors import ActorContext, ActorRole
from modules.orders.constants import OrderStatus
from modules.orders.dtos import PlaceOrderDTO
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService
from modules.products.ledger import DjangoStockLedger
from modules.products.models import Product, ProductStatus
from modules.products.repositories.django_repository import ProductDjangoRepository
from shared.infrastructure.bus import event_bus

DEMO_USERS = [
    ("retailer", "retailer123", ActorRole.RETAILER),
    ("wholesaler", "wholesaler123", ActorRole.WHOLESALER),
    ("transporter", "transporter123", ActorRole.TRANSPORTER),
]

CATALOG = [
    ("FLOUR-25", "Wheat flour 25kg", "bag", Decimal("18.50"), 10),
    ("RICE-05", "Long grain rice 5kg", "bag", Decimal("7.90"), 20),
    ("OIL-900", "Sunflower oil 900ml", "bottle", Decimal("2.35"), 48),
    ("SUGAR-01", "Refined sugar 1kg", "kg", Decimal("1.10"), 50),
    ("COFFEE-500", "Ground coffee 500g", "pack", Decimal("6.40"), 12),
    ("BEANS-01", "Black beans 1kg", "kg", Decimal("1.95"), 30),
    ("PASTA-500", "Spaghetti 500g", "pack", Decimal("0.89"), 60),
    ("SALT-01", "Table salt 1kg", "kg", Decimal("0.45"), 100),
]

# Path walked by the demo orders, starting after placement.
DEMO_PATHS = [
    [],
    [OrderStatus.ACCEPTED],
    [OrderStatus.ACCEPTED, OrderStatus.PROCESSING],
    [
        OrderStatus.ACCEPTED,
        OrderStatus.PROCESSING,
        OrderStatus.ASSIGNED_TO_TRANSPORTER,
        OrderStatus.ACCEPTED_BY_TRANSPORTER,
        OrderStatus.IN_TRANSIT,
        OrderStatus.DELIVERED,
        OrderStatus.CERTIFIED,
    ],
    [OrderStatus.REJECTED],
    [OrderStatus.CANCELLED_BY_RETAILER],
]


class Command(BaseCommand):
    help = "Seed database with marketplace roles, demo users, products and orders."

    def handle(self, *args, **options):
        random.seed(42)
        self.stdout.write("Seeding development data...")

        users = self._seed_users()
        products = self._seed_products(users[ActorRole.WHOLESALER])
        orders_created = self._seed_orders(users, products)

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={len(users)}, "
                f"products={len(products)}, "
                f"orders={orders_created}"
            )
        )

    def _seed_users(self) -> dict[ActorRole, ActorContext]:
        self.stdout.write("Creating role groups and users...")
        User = get_user_model()
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")

        actors = {}
        for username, password, role in DEMO_USERS:
            group, _ = Group.objects.get_or_create(name=role.value)
            user = User.objects.filter(username=username).first()
            if user is None:
                user = User.objects.create_user(username, password=password)
            user.groups.add(group)
            actors[role] = ActorContext(role=role, id=str(user.pk))
        self.stdout.write(self.style.SUCCESS("Creating role groups and users... Done!"))
        return actors

    def _seed_products(self, wholesaler: ActorContext) -> list[Product]:
        self.stdout.write("Creating products...")
        products: list[Product] = []
        for sku, name, unit, price, min_quantity in CATALOG:
            product, _ = Product.objects.get_or_create(
                sku=sku,
                defaults={
                    "wholesaler_id": wholesaler.id,
                    "name": name,
                    "measurement_unit": unit,
                    "price": price,
                    "min_order_quantity": min_quantity,
                    "stock_quantity": random.randint(500, 2000),
                    "status": ProductStatus.ACTIVE,
                },
            )
            products.append(product)
        self.stdout.write(self.style.SUCCESS("Creating products... Done!"))
        return products

    def _seed_orders(self, actors: dict[ActorRole, ActorContext], products: list[Product]) -> int:
        self.stdout.write("Creating orders...")
        service = OrderService(
            order_repository=OrderDjangoRepository(),
            product_repository=ProductDjangoRepository(),
            ledger=DjangoStockLedger(),
            event_bus=event_bus,
        )
        retailer = actors[ActorRole.RETAILER]
        wholesaler = actors[ActorRole.WHOLESALER]
        transporter = actors[ActorRole.TRANSPORTER]
        actor_for = {
            OrderStatus.ACCEPTED: wholesaler,
            OrderStatus.REJECTED: wholesaler,
            OrderStatus.PROCESSING: wholesaler,
            OrderStatus.ASSIGNED_TO_TRANSPORTER: wholesaler,
            OrderStatus.ACCEPTED_BY_TRANSPORTER: transporter,
            OrderStatus.IN_TRANSIT: transporter,
            OrderStatus.DELIVERED: transporter,
            OrderStatus.CERTIFIED: retailer,
            OrderStatus.CANCELLED_BY_RETAILER: retailer,
        }

        orders_created = 0
        for i in range(24):
            product = products[i % len(products)]
            order = service.place_order(
                retailer,
                PlaceOrderDTO(
                    product_id=product.id,
                    quantity=product.min_order_quantity * random.randint(1, 3),
                    delivery_place=f"Store #{i % 4 + 1}",
                    order_notes=f"Seed order {i + 1}",
                    idempotency_key=f"seed-order-{i + 1}",
                ),
            )
            if order.status != OrderStatus.PENDING:
                # Already seeded on a previous run.
                continue
            for target in random.choice(DEMO_PATHS):
                needs_reason = target in {OrderStatus.REJECTED, OrderStatus.CANCELLED_BY_RETAILER}
                assigns = target == OrderStatus.ASSIGNED_TO_TRANSPORTER
                order = service.update_status(
                    order.id,
                    target,
                    actor_for[target],
                    reason="Seed data" if needs_reason else None,
                    transporter_id=transporter.id if assigns else None,
                )
            orders_created += 1

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return orders_created
