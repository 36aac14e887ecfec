"""
Seed the default roles and their permission maps.
Run after the tables exist; existing roles get their permission maps refreshed.

Usage:
    python scripts/seed_permissions.py
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fieldops.db import SessionLocal, Base, engine
from fieldops.models.models import Role


AREAS = [
    "customers",
    "jobs",
    "fleet",
    "equipment",
    "inventory",
    "maintenance",
    "billing",
    "settings",
]


def _grant(areas, levels=("read", "write")):
    return {f"{area}:{level}": True for area in areas for level in levels}


ROLES = [
    {
        "name": "admin",
        "description": "Full access; bypasses permission checks",
        "permissions": {},
    },
    {
        "name": "dispatcher",
        "description": "Schedules jobs, drivers, vehicles and equipment",
        "permissions": {
            **_grant(["customers", "jobs", "fleet", "equipment"]),
            **_grant(["inventory", "maintenance", "billing"], levels=("read",)),
            "portal:read": True,
        },
    },
    {
        "name": "driver",
        "description": "Works assigned jobs and files service reports",
        "permissions": {
            **_grant(["jobs", "fleet", "equipment", "inventory", "customers"], levels=("read",)),
            **_grant(["maintenance"]),
        },
    },
    {
        "name": "warehouse",
        "description": "Manages consumables, storage locations and purchasing",
        "permissions": {
            **_grant(["inventory", "equipment"]),
            **_grant(["jobs", "fleet"], levels=("read",)),
        },
    },
    {
        "name": "billing",
        "description": "Quotes, invoices, payments and QuickBooks export",
        "permissions": {
            **_grant(["billing"]),
            **_grant(["customers", "jobs"], levels=("read",)),
            "portal:read": True,
        },
    },
    {
        "name": "customer",
        "description": "Customer portal user; scoped to the linked customer",
        "permissions": {f"{area}:access": False for area in AREAS},
    },
]


def seed_permissions():
    """Create or refresh the default roles"""
    db = SessionLocal()
    try:
        created = updated = 0
        for role_def in ROLES:
            role = db.query(Role).filter(Role.name == role_def["name"]).first()
            if role:
                role.description = role_def["description"]
                role.permissions = dict(role_def["permissions"])
                updated += 1
            else:
                db.add(Role(name=role_def["name"], description=role_def["description"], permissions=dict(role_def["permissions"])))
                created += 1
        db.commit()
        print(f"Roles created: {created}, updated: {updated}")
    except Exception as e:
        db.rollback()
        print(f"ERROR: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    from fieldops.models import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    seed_permissions()
