# ordering/cli.py
import click
from flask import current_app
from werkzeug.security import generate_password_hash

from .extensions import db
from .model import DeliveryConfig, Ingredient, Product, User
from .services.delivery_service import DeliverySettings

SAMPLE_MENU = [
    {"name": "Classic Burger", "category": "burgers", "price": 8000},
    {"name": "Cheese Burger", "category": "burgers", "price": 8500},
    {"name": "Chicken Sandwich", "category": "sandwiches", "price": 7500},
    {"name": "Veggie Wrap", "category": "sandwiches", "price": 6900},
    {"name": "French Fries", "category": "sides", "price": 2500},
    {"name": "Onion Rings", "category": "sides", "price": 2900},
    {"name": "Soft Drink", "category": "drinks", "price": 1500},
    {"name": "Lemonade", "category": "drinks", "price": 1900},
]

SAMPLE_INGREDIENTS = [
    {"name": "Extra Cheese", "extra_price": 500},
    {"name": "Bacon", "extra_price": 500},
    {"name": "Avocado", "extra_price": 900},
    {"name": "Fried Egg", "extra_price": 600},
]


@click.command("create-admin")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", required=True)
def create_admin(email, password, name):
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        click.echo("Email already exists"); return
    u = User(email=email, name=name, password_hash=generate_password_hash(password), role="admin")
    db.session.add(u); db.session.commit()
    click.echo(f"Admin created: {u.id} {u.email}")


@click.command("seed-delivery-config")
@click.option("--store-name", default="Main store")
@click.option("--force", is_flag=True, help="Replace the saved config with the app defaults.")
def seed_delivery_config(store_name, force):
    """Saves the delivery settings from the app config as the delivery_config row."""
    row = DeliveryConfig.query.order_by(DeliveryConfig.id.desc()).first()
    if row and not force:
        click.echo(f"Delivery config already exists (id={row.id}); use --force to overwrite"); return

    s = DeliverySettings.from_config(current_app.config)
    if row is None:
        row = DeliveryConfig()
        db.session.add(row)
    row.store_name = store_name
    row.store_latitude = s.store.lat
    row.store_longitude = s.store.lng
    row.tiers = [{"max_km": t.max_km, "fee": float(t.fee)} for t in s.tiers]
    row.free_delivery_enabled = s.free_delivery_enabled
    row.free_delivery_threshold = s.free_delivery_threshold
    row.max_delivery_distance_km = s.max_distance_km
    db.session.commit()
    click.echo(f"Delivery config saved: {len(s.tiers)} tiers, max {s.max_distance_km:g} km")


@click.command("seed-menu")
def seed_menu():
    """Inserts a small sample menu; existing names are skipped."""
    added = 0
    for data in SAMPLE_MENU:
        if not Product.query.filter_by(name=data["name"]).first():
            db.session.add(Product(**data, available=True)); added += 1
    for data in SAMPLE_INGREDIENTS:
        if not Ingredient.query.filter_by(name=data["name"]).first():
            db.session.add(Ingredient(**data, available=True)); added += 1
    db.session.commit()
    click.echo(f"{added} menu rows added")


def register_cli(app):
    app.cli.add_command(create_admin)
    app.cli.add_command(seed_delivery_config)
    app.cli.add_command(seed_menu)
