"""
Demo catalogue and admin account for a fresh database.
"""

import logging

from auth import hash_password
from schemas import ProductCreate, User
from storage import PRODUCTS, ShopStorage

logger = logging.getLogger(__name__)

DEMO_PRODUCTS = [
    {
        "name": "Crystal Nova Pendant",
        "description": "Modern geometric design with premium crystal elements and smart RGB lighting system.",
        "price": 1599,
        "sale_price": 1299,
        "image_url": "https://images.unsplash.com/photo-1592833167001-55c6233fc83e?auto=format&fit=crop&w=600&q=80",
        "category": "Pendants",
        "tags": ["modern", "crystal", "smart"],
        "features": {"material": "Crystal", "dimensions": "60cm x 60cm", "bulbType": "LED", "smartFeatures": True},
        "is_featured": True,
        "rating": 4.5,
        "rating_count": 42,
    },
    {
        "name": "Geometric Hexa Light",
        "description": "Hexagonal pendant with warm ambient lighting, perfect for dining rooms and modern interiors.",
        "price": 849,
        "image_url": "https://images.unsplash.com/photo-1513506003901-1e6a229e2d15?auto=format&fit=crop&w=600&q=80",
        "category": "Pendants",
        "tags": ["modern", "geometric"],
        "features": {"material": "Aluminum", "dimensions": "45cm diameter", "bulbType": "LED", "smartFeatures": False},
        "rating": 4.0,
        "rating_count": 36,
    },
    {
        "name": "Celestial Smart Ceiling",
        "description": "Wi-Fi enabled smart lighting with customizable patterns, voice control and app integration.",
        "price": 2299,
        "sale_price": 1999,
        "image_url": "https://images.unsplash.com/photo-1536528906775-c0c07c0ac0f1?auto=format&fit=crop&w=600&q=80",
        "category": "Smart Lighting",
        "tags": ["smart", "ceiling", "modern"],
        "features": {
            "material": "Aluminum and Acrylic",
            "dimensions": "120cm x 80cm",
            "bulbType": "LED RGB",
            "smartFeatures": True,
        },
        "is_featured": True,
        "rating": 5.0,
        "rating_count": 59,
    },
    {
        "name": "Linear Float Chandelier",
        "description": "Minimalist linear design with adjustable height and warm LED lighting for dining tables.",
        "price": 699,
        "image_url": "https://images.unsplash.com/photo-1572385226827-c9c0abed35e6?auto=format&fit=crop&w=600&q=80",
        "category": "Chandeliers",
        "tags": ["modern", "minimalist", "dining"],
        "features": {"material": "Metal", "dimensions": "120cm length", "bulbType": "LED", "smartFeatures": False},
        "rating": 3.5,
        "rating_count": 28,
    },
    {
        "name": "Royal Gold Cascades",
        "description": "Luxury gold-plated chandelier with cascading crystal elements for grand entrances and halls.",
        "price": 4299,
        "image_url": "https://images.unsplash.com/photo-1565814329452-e1efa11c5b89?auto=format&fit=crop&w=600&q=80",
        "category": "Chandeliers",
        "tags": ["luxury", "gold", "crystal"],
        "features": {
            "material": "Gold-plated metal and crystal",
            "dimensions": "100cm diameter, 120cm height",
            "bulbType": "LED",
            "smartFeatures": False,
        },
        "is_featured": True,
        "rating": 5.0,
        "rating_count": 47,
    },
    {
        "name": "Industrial Pendant Cluster",
        "description": "Industrial-style pendant cluster with vintage Edison bulbs, perfect for restaurants and lofts.",
        "price": 699,
        "sale_price": 549,
        "image_url": "https://images.unsplash.com/photo-1524484485831-a92ffc0de03f?auto=format&fit=crop&w=600&q=80",
        "category": "Pendants",
        "tags": ["industrial", "vintage", "cluster"],
        "features": {"material": "Metal", "dimensions": "Cluster of 5-8 pendants", "bulbType": "Edison", "smartFeatures": False},
        "rating": 4.0,
        "rating_count": 32,
    },
]


def seed_demo_data(storage: ShopStorage, admin_password: str) -> dict:
    """Add the demo catalogue to an empty product collection and an admin if none exists."""
    result = {"products": 0, "admin_created": False}
    if storage.db[PRODUCTS].count_documents({}) == 0:
        for p in DEMO_PRODUCTS:
            storage.create_product(ProductCreate(**p))
        result["products"] = len(DEMO_PRODUCTS)
        logger.info("Seeded %d demo products", len(DEMO_PRODUCTS))
    if storage.has_admin():
        return result
    if storage.get_user_by_username("admin") is not None:
        logger.warning("No admin account exists and the 'admin' username is taken by a regular user")
    else:
        storage.create_user(
            User(
                username="admin",
                password=hash_password(admin_password),
                email="admin@lumina.com",
                first_name="Admin",
                last_name="User",
                is_admin=True,
            )
        )
        result["admin_created"] = True
        logger.info("Created default admin account")
    return result
