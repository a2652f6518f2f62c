#!/usr/bin/env python3
"""
Initialize the default admin and demo doctor for the telemedicine backend.
Run with: python3 init_admin.py
"""
from flask import current_app

from telemed import create_app
from telemed.extensions import db
from telemed.seeds import DEMO_DOCTORS, seed_default_users


def create_admins():
    """Create default users"""
    app = create_app()

    with app.app_context():
        print("=" * 60)
        print("Initializing Default Users")
        print("=" * 60)
        print()

        db.create_all()
        created = seed_default_users()

        passwords = {doc['email']: doc['password'] for doc in DEMO_DOCTORS}
        passwords[current_app.config['DEFAULT_ADMIN_EMAIL']] = current_app.config['DEFAULT_ADMIN_PASSWORD']
        for user in created:
            print(f"  ✓ Created: {user.email} ({user.role}) - Password: {passwords.get(user.email)}")

        print()
        print("=" * 60)
        print(f"✅ Created {len(created)} new user(s)")
        print("=" * 60)
        print("\n⚠️  IMPORTANT: Change passwords after first login!")
        print("\nRoles:")
        print("  - admin   (provisioned here)")
        print("  - doctor  (provisioned here)")
        print("  - patient (self-registration via POST /api/auth/register)")


if __name__ == '__main__':
    create_admins()
