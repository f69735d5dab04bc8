"""
Shared fixtures for the address book tests.

Records are created inside short-lived app contexts so every request made
through the test client gets fresh request state, just like in production.
"""
from contextlib import contextmanager
from itertools import count

import pytest
from flask import template_rendered

from addressbook import create_app
from addressbook.config import TestingConfig
from addressbook.extensions import db
from addressbook.models import Contact, Phone, User

_sequence = count(1)


@pytest.fixture
def app():
    """Create and configure a test app instance."""
    test_app = create_app(TestingConfig)
    yield test_app
    with test_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create a test client for the app."""
    return app.test_client()


@contextmanager
def captured_templates(app):
    """Record (template, context) pairs rendered while the block runs."""
    recorded = []

    def record(sender, template, context, **extra):
        recorded.append((template, context))

    template_rendered.connect(record, app)
    try:
        yield recorded
    finally:
        template_rendered.disconnect(record, app)


def rendered(recorded):
    """Name of the first template rendered."""
    return recorded[0][0].name


def create_user(app, role='user', password='secret123', **attrs):
    n = next(_sequence)
    with app.app_context():
        user = User(
            username=attrs.get('username', f'user{n}'),
            email=attrs.get('email', f'user{n}@example.com'),
            role=role
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user.id


def create_contact(app, firstname='John', lastname='Doe', email=None, phones=()):
    """Insert a contact (and phones given as (number, type) pairs); returns its id."""
    with app.app_context():
        contact = Contact(firstname=firstname, lastname=lastname, email=email)
        for number, phone_type in phones:
            contact.phones.append(Phone(number=number, phone_type=phone_type))
        db.session.add(contact)
        db.session.commit()
        return contact.id


def contact_count(app):
    with app.app_context():
        return db.session.query(Contact).count()


def phone_count(app):
    with app.app_context():
        return db.session.query(Phone).count()


def load_contact(app, contact_id):
    """Return the stored contact as a dict, or None."""
    with app.app_context():
        contact = db.session.get(Contact, contact_id)
        if contact is None:
            return None
        return {
            'firstname': contact.firstname,
            'lastname': contact.lastname,
            'email': contact.email,
            'phones': [(p.number, p.phone_type) for p in contact.phones],
        }


def load_phone_ids(app, contact_id):
    with app.app_context():
        return [p.id for p in db.session.get(Contact, contact_id).phones]


def log_in(client, user_id):
    """Put the user into the client's session the way Flask-Login stores it."""
    with client.session_transaction() as sess:
        sess['_user_id'] = str(user_id)
        sess['_fresh'] = True
