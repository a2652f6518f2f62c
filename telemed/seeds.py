"""
Default accounts. Doctors and admins cannot self-register, so a fresh
database needs at least one admin; a demo doctor makes the booking flow
usable right away.
"""
import logging

from flask import current_app

from telemed.extensions import db
from telemed.models import User

logger = logging.getLogger(__name__)

DEMO_DOCTORS = [
    {
        "name": "Dr. Demo Doctor",
        "email": "doctor@telemedicine.com",
        "password": "doctor123",
        "specialty": "General Practice",
        "phone_number": "",
    },
]


def _create_user(role, name, email, password, **fields):
    if User.query.filter_by(email=email).first():
        logger.info("User %s already exists (skipping)", email)
        return None
    user = User(name=name, email=email, role=role, is_active=True, **fields)
    user.set_password(password)
    db.session.add(user)
    return user


def seed_default_users(include_demo_doctors=True):
    """
    Create the default admin (and demo doctors) if missing.

    Returns:
        list: the User rows created in this call
    """
    created = []
    admin = _create_user(
        "admin",
        "System Administrator",
        current_app.config["DEFAULT_ADMIN_EMAIL"],
        current_app.config["DEFAULT_ADMIN_PASSWORD"],
    )
    if admin:
        created.append(admin)

    if include_demo_doctors:
        for doc in DEMO_DOCTORS:
            doctor = _create_user(
                "doctor",
                doc["name"],
                doc["email"],
                doc["password"],
                specialty=doc["specialty"],
                phone_number=doc["phone_number"],
            )
            if doctor:
                created.append(doctor)

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    if created:
        logger.info("Seeded %d default user(s)", len(created))
    return created
