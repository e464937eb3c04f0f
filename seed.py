from mfg_inventory.core.database import SessionLocal
from mfg_inventory.models.product import ProductType
from mfg_inventory.models.unit import Unit
from mfg_inventory.models.user import UserRole
from mfg_inventory.schemas.auth import Principal
from mfg_inventory.services.hierarchy_service import create_hierarchy
from mfg_inventory.services.product_service import create_product
from mfg_inventory.services.template_service import list_templates
from mfg_inventory.models.template import TemplateKind
from mfg_inventory.services.unit_service import get_unit_by_code
from mfg_inventory.services.user_service import create_user, get_user_by_email

from faker import Faker
import random

fake = Faker()
db = SessionLocal()

try:
    print("🔄 Creating unit...")
    unit = get_unit_by_code(db, "U1")
    if not unit:
        unit = Unit(
            name=f"{fake.city()} Plant",
            code="U1",
            description=fake.sentence(),
            location=fake.address().replace('\n', ', '),
        )
        db.add(unit)
        db.commit()
        db.refresh(unit)
    print(f"✅ Unit {unit.code} ready")

    print("🔄 Creating users...")
    admin = get_user_by_email(db, "admin@example.com") or create_user(
        db, email="admin@example.com", password="admin123", name=fake.name(), role=UserRole.admin
    )
    operator = get_user_by_email(db, "operator@example.com") or create_user(
        db,
        email="operator@example.com",
        password="operator123",
        name=fake.name(),
        role=UserRole.user,
        unit_id=unit.id,
        permissions={"create": True, "read": True, "update": True, "delete": False},
    )
    print(f"✅ Users ready: {admin.email}, {operator.email}")

    if not list_templates(db, TemplateKind.fractile):
        print("🔄 Creating template hierarchy...")
        created = create_hierarchy(
            db,
            fractile={"name": "F1", "description": fake.sentence()},
            cells=[
                {
                    "name": f"C{c}",
                    "description": fake.sentence(),
                    "tiers": [{"name": f"T{t}", "description": fake.sentence()} for t in range(1, 4)],
                }
                for c in range(1, 3)
            ],
            created_by=admin.id,
        )
        print(f"✅ Seeded {len(created['cells'])} cells and {len(created['tiers'])} tiers")

        principal = Principal.from_user(admin)
        for tier in created["tiers"]:
            product = create_product(
                db,
                principal,
                name=f"{fake.word().capitalize()} {tier.name}",
                product_type=random.choice(list(ProductType)),
                unit_id=unit.id,
                description=fake.sentence(),
                specifications={"bore_mm": random.randint(60, 120)},
                tier_template_id=tier.id,
            )
            print(f"📦 Product {product.name} created from tier {tier.name}")
    print("🎉 All data seeded successfully!")
except Exception as e:
    db.rollback()
    print(f"❌ Seeding failed: {e}")
    raise
finally:
    db.close()
