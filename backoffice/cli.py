"""
Flask CLI commands: ``init-db``, ``create-admin`` and ``seed``.

Run them with ``flask --app backoffice.main <command>``.
"""
from __future__ import annotations

import logging
import random

import click
from flask import Flask

from backoffice.config import Config
from backoffice.database import Base, SessionLocal, engine, init_database
from backoffice.models import Role
from backoffice.services.delivery_service import DeliveryCatalogService
from backoffice.services.order_service import OrderService
from backoffice.services.product_service import ProductService
from backoffice.services.user_service import UserService

logger = logging.getLogger(__name__)

FIRST_NAMES = ["Ana", "Bruno", "Carla", "Diego", "Elena", "Felipe", "Gabriela", "Hugo", "Irene", "Jorge",
               "Karen", "Luis", "Marta", "Nicolas", "Olga", "Pablo", "Rosa", "Sergio", "Teresa", "Victor"]
LAST_NAMES = ["Alvarez", "Benitez", "Castro", "Dominguez", "Estrada", "Fuentes", "Gimenez", "Herrera",
              "Ibarra", "Juarez", "Lopez", "Medina", "Navarro", "Ortega", "Paredes", "Quiroga"]
CITIES = [
    ("Springfield", "Illinois", "USA"),
    ("Portland", "Oregon", "USA"),
    ("Austin", "Texas", "USA"),
    ("Denver", "Colorado", "USA"),
    ("Toronto", "Ontario", "Canada"),
    ("Vancouver", "British Columbia", "Canada"),
    ("Guadalajara", "Jalisco", "Mexico"),
    ("Monterrey", "Nuevo Leon", "Mexico"),
    ("Cordoba", "Cordoba", "Argentina"),
    ("Rosario", "Santa Fe", "Argentina"),
]
CARRIERS = ["Swift", "Rapid", "Northwind", "Blue Line", "Atlas", "Express Route", "Harbor", "Summit"]
CATEGORIES = {
    "Electronics": ["Audio", "Computers", "Phones"],
    "Clothing": ["Men", "Women", "Kids"],
    "Books": ["Fiction", "Science", "History"],
    "Home": ["Kitchen", "Garden", "Decor"],
    "Sports": ["Outdoor", "Fitness", "Team Sports"],
}
ADJECTIVES = ["Ergonomic", "Rustic", "Sleek", "Handmade", "Refined", "Practical", "Modern", "Compact"]
NOUNS = ["Chair", "Lamp", "Headphones", "Jacket", "Backpack", "Notebook", "Kettle", "Ball", "Watch", "Speaker"]


def _person(index: int, role: Role) -> tuple[str, str]:
    name = f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}"
    email = f"{role.value}{index}@example.com"
    return name, email


def register_cli(app: Flask) -> None:
    @app.cli.command("init-db")
    @click.option("--drop", is_flag=True, help="Drop every table before creating them.")
    def init_db_command(drop: bool) -> None:
        """Create the database tables."""
        if drop:
            Base.metadata.drop_all(bind=engine)
            click.echo("Dropped all tables.")
        init_database()
        click.echo("Database tables created.")

    @app.cli.command("create-admin")
    @click.option("--name", default=Config.ADMIN_NAME, show_default=True)
    @click.option("--email", default=Config.ADMIN_EMAIL, show_default=True)
    @click.option("--password", default=Config.ADMIN_PASSWORD)
    def create_admin_command(name: str, email: str, password: str) -> None:
        """Create the bootstrap administrator unless the email is taken."""
        init_database()
        db = SessionLocal()
        try:
            users = UserService(db)
            existing = users.get_by_email(email)
            if existing:
                click.echo(f"User {existing.email} already exists")
                return
            admin = users.create_user(name, email, password, role=Role.ADMIN)
            db.commit()
            logger.info("Admin user created", extra={"user_id": admin.userID})
            click.echo(f"Admin user created: {admin.email} ({admin.userID})")
        finally:
            db.close()

    @app.cli.command("seed")
    @click.option("--staff", "staff_count", default=5, show_default=True)
    @click.option("--salesmen", "salesman_count", default=10, show_default=True)
    @click.option("--customers", "customer_count", default=20, show_default=True)
    @click.option("--services", "service_count", default=5, show_default=True)
    @click.option("--products", "product_count", default=30, show_default=True)
    @click.option("--orders", "order_count", default=25, show_default=True)
    @click.option("--seed", "random_seed", type=int, default=None, help="Seed for reproducible data.")
    def seed_command(
        staff_count: int,
        salesman_count: int,
        customer_count: int,
        service_count: int,
        product_count: int,
        order_count: int,
        random_seed: int | None,
    ) -> None:
        """Drop all tables and fill the database with demo data."""
        if random_seed is not None:
            random.seed(random_seed)
        Base.metadata.drop_all(bind=engine)
        init_database()

        db = SessionLocal()
        try:
            users = UserService(db)
            users.create_user(Config.ADMIN_NAME, Config.ADMIN_EMAIL, Config.ADMIN_PASSWORD, role=Role.ADMIN)
            staff = [users.create_user(*_person(i, Role.STAFF), "staff123", role=Role.STAFF)
                     for i in range(1, staff_count + 1)]
            salesmen = [
                users.create_user(*_person(i, Role.SALESMAN), "salesman123", role=Role.SALESMAN,
                                  staff=random.choice(staff))
                for i in range(1, salesman_count + 1)
            ] if staff else []
            customers = [users.create_user(*_person(i, Role.CUSTOMER), "customer123")
                         for i in range(1, customer_count + 1)]
            db.commit()
            click.echo(f"Users created: {len(staff)} staff, {len(salesmen)} salesmen, {len(customers)} customers")

            catalog = DeliveryCatalogService(db)
            cities = []
            for name, state, country in CITIES:
                _, _, city = catalog.create_city({
                    "name": name,
                    "state": state,
                    "country": country,
                    "isActive": random.random() < 0.9,
                })
                cities.append(city)
            active_city_ids = [city.cityID for city in cities if city.is_active]

            services = []
            for index in range(1, service_count + 1):
                _, _, service = catalog.create_service({
                    "name": f"{random.choice(CARRIERS)} Delivery #{index}",
                    "basePrice": round(random.uniform(5, 20), 2),
                    "pricePerKm": round(random.uniform(0.5, 2), 2),
                    "estimatedDays": random.randint(1, 7),
                    "isActive": random.random() < 0.9,
                })
                covered = random.sample(active_city_ids, k=min(len(active_city_ids), random.randint(3, 6)))
                catalog.assign_cities(service.deliveryServiceID, covered)
                services.append(service)
            click.echo(f"Delivery catalog created: {len(cities)} cities, {len(services)} services")

            catalog_products = ProductService(db)
            products = []
            for _ in range(product_count):
                category = random.choice(list(CATEGORIES))
                success, message, product = catalog_products.create_product({
                    "name": f"{random.choice(ADJECTIVES)} {random.choice(NOUNS)}",
                    "description": "Demo catalog item",
                    "price": round(random.uniform(10, 1000), 2),
                    "category": category,
                    "subcategory": random.choice(CATEGORIES[category]),
                    "stock": random.randint(10, 100),
                    "weight": round(random.uniform(0.1, 20), 1),
                    "dimensions": {
                        "length": random.randint(5, 100),
                        "width": random.randint(5, 100),
                        "height": random.randint(5, 100),
                        "unit": "cm",
                    },
                    "tags": random.sample(ADJECTIVES, k=random.randint(1, 3)),
                    "featured": random.random() < 0.2,
                })
                if not success:
                    raise click.ClickException(message)
                products.append(product)
            click.echo(f"Products created: {len(products)}")

            active_services = [service for service in services if service.is_active]
            created = 0
            if not (salesmen and customers and products and active_services and active_city_ids):
                click.echo("Not enough active data to create orders")
            else:
                orders = OrderService(db)
                for _ in range(order_count):
                    picked = random.sample(products, k=min(len(products), random.randint(1, 5)))
                    city_id = random.choice(active_city_ids)
                    success, message, order = orders.create_order(random.choice(salesmen), {
                        "customerId": random.choice(customers).userID,
                        "deliveryServiceId": random.choice(active_services).deliveryServiceID,
                        "deliveryCityId": city_id,
                        "shippingAddress": {
                            "street": f"{random.randint(1, 9999)} Main St",
                            "city": next(city.name for city in cities if city.cityID == city_id),
                            "zipCode": f"{random.randint(10000, 99999)}",
                        },
                        "items": [
                            {"productId": product.productID, "quantity": random.randint(1, 3)}
                            for product in picked
                        ],
                    })
                    if not success:
                        logger.warning("Skipped demo order: %s", message)
                        continue
                    created += 1
            click.echo(f"Orders created: {created}")
        finally:
            db.close()
