"""
Database models for the address book.

A ``Contact`` owns many ``Phone`` rows through ``phones.contact_id``. The
relationship carries no delete cascade: removing a contact's phones is the
job of ``ContactRepository.delete``.

The ``validate_*`` helpers check submitted attributes without touching the
database session, so a failed create or update never leaves dirty state
behind.
"""
import re
from datetime import datetime

import phonenumbers
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from addressbook.extensions import db

PHONE_TYPES = ('home', 'office', 'mobile')
ROLES = ('user', 'admin')

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


class User(UserMixin, db.Model):
    """
    Account that can log in.

    Attributes:
        id: Primary key
        username: Unique username for login
        email: Unique email address
        password_hash: Hashed password
        role: 'user' or 'admin'
        created_at: Account creation timestamp
    """
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), default='user', nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def set_password(self, password):
        """Hash and set user password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify user password."""
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == 'admin'

    def __repr__(self):
        return f'<User {self.username!r} ({self.role})>'


class Contact(db.Model):
    """
    Address book entry.

    Attributes:
        id: Primary key
        firstname: Given name, optional
        lastname: Family name, required
        email: Email address, optional
        phones: Phones owned by this contact, oldest first
    """
    __tablename__ = 'contacts'

    id = db.Column(db.Integer, primary_key=True)
    firstname = db.Column(db.String(100))
    lastname = db.Column(db.String(100), nullable=False, index=True)
    email = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    phones = db.relationship('Phone', back_populates='contact', order_by='Phone.id')

    @property
    def name(self):
        return ' '.join(part for part in (self.firstname, self.lastname) if part)

    def __repr__(self):
        return f'<Contact {self.id} {self.name!r}>'


class Phone(db.Model):
    """
    Phone number belonging to exactly one contact.

    Attributes:
        id: Primary key
        contact_id: Owning contact
        number: Number in E.164 format
        phone_type: One of PHONE_TYPES
    """
    __tablename__ = 'phones'
    __table_args__ = (
        db.UniqueConstraint('contact_id', 'number', name='uq_phones_contact_number'),
    )

    id = db.Column(db.Integer, primary_key=True)
    contact_id = db.Column(db.Integer, db.ForeignKey('contacts.id'), nullable=False, index=True)
    number = db.Column(db.String(32), nullable=False)
    phone_type = db.Column(db.String(20), default='mobile', nullable=False)

    contact = db.relationship('Contact', back_populates='phones')

    @property
    def display_number(self):
        try:
            parsed = phonenumbers.parse(self.number, None)
        except phonenumbers.NumberParseException:
            return self.number
        return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.INTERNATIONAL)

    def __repr__(self):
        return f'<Phone {self.number} ({self.phone_type})>'


def clean(value):
    """Strip strings, turning blank values into None."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _add_error(errors, field, message):
    errors.setdefault(field, []).append(message)


def validate_contact(attrs):
    """Return a field -> messages dict for contact attributes (empty if valid)."""
    errors = {}
    if not clean(attrs.get('lastname')):
        _add_error(errors, 'lastname', "can't be blank")
    email = clean(attrs.get('email'))
    if email and not EMAIL_RE.match(email):
        _add_error(errors, 'email', 'is invalid')
    return errors


def normalize_number(number, region):
    """
    Parse a phone number and format it as E.164.

    Raises:
        ValueError: If the number cannot be parsed or is not a possible number
    """
    try:
        parsed = phonenumbers.parse(number, region)
    except phonenumbers.NumberParseException as e:
        raise ValueError(str(e))
    if not phonenumbers.is_possible_number(parsed):
        raise ValueError(f"{number!r} is not a possible phone number")
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def validate_phone(attrs, region):
    """
    Validate phone attributes.

    Returns:
        Tuple of (normalized attributes, errors)
    """
    errors = {}
    normalized = {'phone_type': clean(attrs.get('phone_type')) or 'mobile'}

    number = clean(attrs.get('number'))
    if not number:
        _add_error(errors, 'number', "can't be blank")
    else:
        try:
            normalized['number'] = normalize_number(number, region)
        except ValueError:
            normalized['number'] = number
            _add_error(errors, 'number', 'is not a valid phone number')

    if normalized['phone_type'] not in PHONE_TYPES:
        _add_error(errors, 'phone_type', f"must be one of {', '.join(PHONE_TYPES)}")

    return normalized, errors


def validate_user(attrs, creating=True):
    """Field checks for user attributes; uniqueness is checked by the repository."""
    errors = {}
    if creating or 'username' in attrs:
        if not clean(attrs.get('username')):
            _add_error(errors, 'username', "can't be blank")
    if creating or 'email' in attrs:
        email = clean(attrs.get('email'))
        if not email:
            _add_error(errors, 'email', "can't be blank")
        elif not EMAIL_RE.match(email):
            _add_error(errors, 'email', 'is invalid')
    password = attrs.get('password')
    if creating and not password:
        _add_error(errors, 'password', "can't be blank")
    elif password and len(password) < 6:
        _add_error(errors, 'password', 'is too short (minimum is 6 characters)')
    role = attrs.get('role')
    if role is not None and role not in ROLES:
        _add_error(errors, 'role', 'is not included in the list')
    return errors
