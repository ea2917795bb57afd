"""
Database initialization script
Run this after creating the database to create tables and seed the admin
"""
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import app, db
from models.user import ROLE_ADMIN, User


def seed_admin(phone):
    """Create (or promote) the admin account for `phone`"""
    print("Creating admin user...")

    user = User.query.filter_by(phone=phone).first()
    if user is None:
        user = User(phone=phone, display_name='Admin', role=ROLE_ADMIN)
        db.session.add(user)
        print(f"  ✓ Admin user {phone} created")
    elif user.role != ROLE_ADMIN:
        user.role = ROLE_ADMIN
        print(f"  ✓ User {phone} promoted to admin")
    else:
        print(f"  - Admin user {phone} already exists")

    db.session.commit()


def main():
    with app.app_context():
        print("Creating tables...")
        db.create_all()
        print("  ✓ Tables ready")

        admin_phone = (os.getenv('ADMIN_PHONE') or '').strip()
        if admin_phone:
            seed_admin(admin_phone)
        else:
            print("  - ADMIN_PHONE not set, skipping admin seed")

    print("\n✅ Database initialization complete!")


if __name__ == '__main__':
    main()
