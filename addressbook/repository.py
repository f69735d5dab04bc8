# addressbook/repository.py
import logging
from typing import Optional, List, Dict, Any, Iterable

from flask import current_app
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import NotFound

from addressbook.extensions import db
from addressbook.exceptions import DatabaseError, InvalidRecord
from addressbook.models import (
    Contact, Phone, User, clean, validate_contact, validate_phone, validate_user
)

logger = logging.getLogger(__name__)

CONTACT_FIELDS = ('firstname', 'lastname', 'email')
TRUTHY = ('1', 'true', 'yes', 'on')


def _truthy(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or '').strip().lower() in TRUTHY


def _is_blank_phone(entry: Dict[str, Any]) -> bool:
    return not clean(entry.get('number')) and not clean(entry.get('id'))


def _prefixed(errors: Dict[str, List[str]], prefix: str) -> Dict[str, List[str]]:
    return {f"{prefix}-{field}": messages for field, messages in errors.items()}


class BaseRepository:
    """Shared session handling for the repositories"""

    def __init__(self, session=None):
        self.session = session or db.session

    @property
    def region(self) -> str:
        return current_app.config.get('PHONE_DEFAULT_REGION', 'US')

    def _commit(self, action: str):
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Database error while {action}: {str(e)}")
            raise DatabaseError(f"{action} failed: {str(e)}")

    def _count(self, model) -> int:
        return self.session.execute(select(func.count(model.id))).scalar_one()


class PhoneRepository(BaseRepository):
    """Phones, each owned by exactly one contact"""

    def count(self) -> int:
        return self._count(Phone)

    def for_contact(self, contact: Contact) -> List[Phone]:
        """Get a contact's phones, oldest first"""
        stmt = select(Phone).filter_by(contact_id=contact.id).order_by(Phone.id)
        return list(self.session.execute(stmt).scalars())

    def get_for_contact(self, contact: Contact, phone_id: int) -> Optional[Phone]:
        """Get a phone only if it belongs to the contact"""
        phone = self.session.get(Phone, phone_id)
        if phone is None or phone.contact_id != contact.id:
            return None
        return phone

    def get_for_contact_or_404(self, contact: Contact, phone_id: int) -> Phone:
        phone = self.get_for_contact(contact, phone_id)
        if phone is None:
            raise NotFound(f"Phone {phone_id} not found for contact {contact.id}")
        return phone

    def build(self, contact: Contact, attrs: Optional[Dict[str, Any]] = None) -> Phone:
        """Unsaved phone for forms; not attached to the session"""
        attrs = attrs or {}
        return Phone(
            contact_id=contact.id,
            number=clean(attrs.get('number')),
            phone_type=clean(attrs.get('phone_type')) or 'mobile'
        )

    def _number_taken(self, contact_id: int, number: str, exclude_id: Optional[int] = None) -> bool:
        stmt = select(Phone.id).filter_by(contact_id=contact_id, number=number)
        if exclude_id is not None:
            stmt = stmt.where(Phone.id != exclude_id)
        return self.session.execute(stmt).first() is not None

    def create(self, contact: Contact, attrs: Dict[str, Any]) -> Phone:
        normalized, errors = validate_phone(attrs, self.region)
        if not errors and self._number_taken(contact.id, normalized['number']):
            errors['number'] = ['has already been taken']
        if errors:
            raise InvalidRecord(errors, Phone(contact_id=contact.id, **normalized))

        phone = Phone(contact_id=contact.id, **normalized)
        self.session.add(phone)
        self._commit('creating phone')
        logger.info(f"Created phone {phone.id} for contact {contact.id}")
        return phone

    def update(self, phone: Phone, attrs: Dict[str, Any]) -> Phone:
        merged = {'number': phone.number, 'phone_type': phone.phone_type}
        merged.update({k: v for k, v in attrs.items() if k in merged})
        normalized, errors = validate_phone(merged, self.region)
        if not errors and self._number_taken(phone.contact_id, normalized['number'], exclude_id=phone.id):
            errors['number'] = ['has already been taken']
        if errors:
            raise InvalidRecord(errors, Phone(id=phone.id, contact_id=phone.contact_id, **normalized))

        phone.number = normalized['number']
        phone.phone_type = normalized['phone_type']
        self._commit(f'updating phone {phone.id}')
        logger.info(f"Updated phone {phone.id}")
        return phone

    def delete(self, phone: Phone):
        phone_id = phone.id
        self.session.delete(phone)
        self._commit(f'deleting phone {phone_id}')
        logger.info(f"Deleted phone {phone_id}")

    def delete_for_contact(self, contact: Contact) -> int:
        """Mark every phone of a contact for deletion; the caller commits"""
        phones = self.for_contact(contact)
        for phone in phones:
            self.session.delete(phone)
        return len(phones)


class ContactRepository(BaseRepository):
    """Contacts ordered by last name then first name"""

    def __init__(self, session=None, phones: Optional[PhoneRepository] = None):
        super().__init__(session)
        self.phones = phones or PhoneRepository(self.session)

    def _ordered(self):
        return select(Contact).order_by(Contact.lastname, Contact.firstname, Contact.id)

    def count(self) -> int:
        return self._count(Contact)

    def all(self) -> List[Contact]:
        return list(self.session.execute(self._ordered()).scalars())

    def starting_with(self, letter: str) -> List[Contact]:
        """Contacts whose last name starts with ``letter``, case-sensitively"""
        # substr comparison instead of LIKE, which ignores case on SQLite
        stmt = self._ordered().where(func.substr(Contact.lastname, 1, len(letter)) == letter)
        return list(self.session.execute(stmt).scalars())

    def index(self, letter: Optional[str] = None) -> List[Contact]:
        if letter:
            return self.starting_with(letter)
        return self.all()

    def get(self, contact_id: int) -> Optional[Contact]:
        return self.session.get(Contact, contact_id)

    def get_or_404(self, contact_id: int) -> Contact:
        contact = self.get(contact_id)
        if contact is None:
            raise NotFound(f"Contact {contact_id} not found")
        return contact

    def build(self, attrs: Optional[Dict[str, Any]] = None) -> Contact:
        """Unsaved contact for forms; not attached to the session"""
        attrs = attrs or {}
        return Contact(**{field: clean(attrs.get(field)) for field in CONTACT_FIELDS})

    def _draft(self, attrs: Dict[str, Any], phones: Iterable[Dict[str, Any]], contact_id=None) -> Contact:
        draft = self.build(attrs)
        draft.id = contact_id
        for entry in phones:
            draft.phones.append(Phone(
                id=entry.get('id'),
                number=entry.get('number'),
                phone_type=entry.get('phone_type') or 'mobile'
            ))
        return draft

    def create(self, attrs: Dict[str, Any], phones: Iterable[Dict[str, Any]] = ()) -> Contact:
        """
        Persist a contact together with its nested phones.

        Raises:
            InvalidRecord: If the contact or any phone is invalid; nothing is saved
        """
        errors = validate_contact(attrs)
        accepted = []
        seen = set()
        for i, entry in enumerate(phones):
            if _is_blank_phone(entry) or _truthy(entry.get('_destroy')):
                continue
            normalized, phone_errors = validate_phone(entry, self.region)
            if not phone_errors and normalized['number'] in seen:
                phone_errors['number'] = ['has already been taken']
            errors.update(_prefixed(phone_errors, f'phones-{i}'))
            seen.add(normalized.get('number'))
            accepted.append(normalized)

        if errors:
            raise InvalidRecord(errors, self._draft(attrs, accepted))

        contact = self.build(attrs)
        for normalized in accepted:
            contact.phones.append(Phone(**normalized))
        self.session.add(contact)
        self._commit('creating contact')
        logger.info(f"Created contact {contact.id} with {len(accepted)} phone(s)")
        return contact

    def update(self, contact: Contact, attrs: Dict[str, Any],
               phones: Iterable[Dict[str, Any]] = ()) -> Contact:
        """
        Update a contact and its nested phones.

        Phone entries with an ``id`` update that phone (or remove it when
        ``_destroy`` is set), entries without one add a phone.

        Raises:
            InvalidRecord: If anything is invalid; the stored records are left untouched
        """
        merged = {field: getattr(contact, field) for field in CONTACT_FIELDS}
        merged.update({k: v for k, v in attrs.items() if k in CONTACT_FIELDS})
        errors = validate_contact(merged)

        existing = {phone.id: phone for phone in self.phones.for_contact(contact)}
        changes = {}
        removals = set()
        additions = []
        for i, entry in enumerate(phones):
            phone_id = clean(entry.get('id'))
            if phone_id is None:
                if _is_blank_phone(entry) or _truthy(entry.get('_destroy')):
                    continue
                normalized, phone_errors = validate_phone(entry, self.region)
                additions.append(normalized)
                errors.update(_prefixed(phone_errors, f'phones-{i}'))
                continue

            try:
                phone = existing[int(phone_id)]
            except (KeyError, ValueError):
                errors[f'phones-{i}-id'] = ['does not belong to this contact']
                continue
            if _truthy(entry.get('_destroy')):
                removals.add(phone.id)
                continue
            current = {'number': phone.number, 'phone_type': phone.phone_type}
            current.update({k: v for k, v in entry.items() if k in current})
            normalized, phone_errors = validate_phone(current, self.region)
            changes[phone.id] = normalized
            errors.update(_prefixed(phone_errors, f'phones-{i}'))

        final_numbers = [
            changes.get(phone_id, {'number': phone.number}).get('number')
            for phone_id, phone in existing.items() if phone_id not in removals
        ] + [normalized.get('number') for normalized in additions]
        # blank numbers are already reported by validate_phone
        final_numbers = [number for number in final_numbers if number]
        if len(final_numbers) != len(set(final_numbers)):
            errors.setdefault('phones', []).append('contain a duplicate number')

        if errors:
            kept = [
                dict(changes.get(phone_id, {'number': phone.number, 'phone_type': phone.phone_type}), id=phone_id)
                for phone_id, phone in existing.items() if phone_id not in removals
            ]
            raise InvalidRecord(errors, self._draft(merged, kept + additions, contact_id=contact.id))

        for field in CONTACT_FIELDS:
            setattr(contact, field, clean(merged[field]))
        for phone_id, normalized in changes.items():
            existing[phone_id].number = normalized['number']
            existing[phone_id].phone_type = normalized['phone_type']
        for phone_id in removals:
            self.session.delete(existing[phone_id])
        for normalized in additions:
            self.session.add(Phone(contact_id=contact.id, **normalized))
        self._commit(f'updating contact {contact.id}')
        logger.info(f"Updated contact {contact.id}")
        return contact

    def delete(self, contact: Contact) -> int:
        """Delete a contact and its phones in one transaction; returns the phone count"""
        contact_id = contact.id
        removed = self.phones.delete_for_contact(contact)
        self.session.delete(contact)
        self._commit(f'deleting contact {contact_id}')
        logger.info(f"Deleted contact {contact_id} and {removed} phone(s)")
        return removed


class UserRepository(BaseRepository):
    """Accounts that can log in"""

    def count(self) -> int:
        return self._count(User)

    def all(self) -> List[User]:
        return list(self.session.execute(select(User).order_by(User.username)).scalars())

    def get(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def get_or_404(self, user_id: int) -> User:
        user = self.get(user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")
        return user

    def find_by_username(self, username: str) -> Optional[User]:
        return self.session.execute(select(User).filter_by(username=username)).scalar_one_or_none()

    def authenticate(self, username: Optional[str], password: Optional[str]) -> Optional[User]:
        """Return the user when the credentials match, else None"""
        username = clean(username)
        if not username or not password:
            return None
        user = self.find_by_username(username)
        if user and user.check_password(password):
            return user
        return None

    def build(self, attrs: Optional[Dict[str, Any]] = None) -> User:
        attrs = attrs or {}
        return User(
            username=clean(attrs.get('username')),
            email=clean(attrs.get('email')),
            role=attrs.get('role') or 'user'
        )

    def _uniqueness_errors(self, attrs: Dict[str, Any], exclude_id: Optional[int] = None) -> Dict[str, List[str]]:
        errors = {}
        for field in ('username', 'email'):
            value = clean(attrs.get(field))
            if not value:
                continue
            stmt = select(User.id).where(getattr(User, field) == value)
            if exclude_id is not None:
                stmt = stmt.where(User.id != exclude_id)
            if self.session.execute(stmt).first() is not None:
                errors[field] = ['has already been taken']
        return errors

    def create(self, attrs: Dict[str, Any]) -> User:
        errors = validate_user(attrs, creating=True)
        errors.update(self._uniqueness_errors(attrs))
        if errors:
            raise InvalidRecord(errors, self.build(attrs))

        user = self.build(attrs)
        user.set_password(attrs['password'])
        self.session.add(user)
        self._commit('creating user')
        logger.info(f"Created user {user.username!r} with role {user.role}")
        return user

    def update(self, user: User, attrs: Dict[str, Any]) -> User:
        """Update username, email, role and (when given) password"""
        attrs = {k: v for k, v in attrs.items() if k in ('username', 'email', 'password', 'role')}
        if not attrs.get('password'):
            attrs.pop('password', None)
        errors = validate_user(attrs, creating=False)
        errors.update(self._uniqueness_errors(attrs, exclude_id=user.id))
        if errors:
            draft = self.build({
                'username': attrs.get('username', user.username),
                'email': attrs.get('email', user.email),
                'role': attrs.get('role', user.role),
            })
            draft.id = user.id
            raise InvalidRecord(errors, draft)

        for field in ('username', 'email'):
            if field in attrs:
                setattr(user, field, clean(attrs[field]))
        if 'role' in attrs:
            user.role = attrs['role']
        if 'password' in attrs:
            user.set_password(attrs['password'])
        self._commit(f'updating user {user.id}')
        logger.info(f"Updated user {user.id}")
        return user

    def delete(self, user: User):
        user_id = user.id
        self.session.delete(user)
        self._commit(f'deleting user {user_id}')
        logger.info(f"Deleted user {user_id}")
