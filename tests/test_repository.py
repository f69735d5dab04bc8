import pytest

from addressbook.exceptions import InvalidRecord
from addressbook.models import validate_contact, validate_phone, normalize_number
from addressbook.repository import ContactRepository, PhoneRepository, UserRepository


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield


@pytest.fixture
def contacts(ctx):
    return ContactRepository()


def test_validate_contact_requires_lastname():
    assert validate_contact({'lastname': 'Smith'}) == {}
    assert validate_contact({'lastname': '   '}) == {'lastname': ["can't be blank"]}
    assert validate_contact({}) == {'lastname': ["can't be blank"]}


def test_validate_contact_checks_email():
    assert validate_contact({'lastname': 'Smith', 'email': 'nope'}) == {'email': ['is invalid']}
    assert validate_contact({'lastname': 'Smith', 'email': ''}) == {}


def test_validate_phone_normalizes_number():
    normalized, errors = validate_phone({'number': '(415) 555-0101', 'phone_type': 'home'}, 'US')
    assert errors == {}
    assert normalized == {'number': '+14155550101', 'phone_type': 'home'}


def test_validate_phone_defaults_type_to_mobile():
    normalized, errors = validate_phone({'number': '+44 20 7946 0958'}, 'US')
    assert errors == {}
    assert normalized['phone_type'] == 'mobile'
    assert normalized['number'] == '+442079460958'


def test_normalize_number_rejects_garbage():
    with pytest.raises(ValueError):
        normalize_number('12', 'US')


def test_create_and_index(contacts):
    smith = contacts.create({'firstname': 'Lawrence', 'lastname': 'Smith'})
    jones = contacts.create({'lastname': 'Jones'})
    assert contacts.count() == 2
    assert contacts.index('S') == [smith]
    assert contacts.index() == [jones, smith]
    assert contacts.index('') == [jones, smith]


def test_starting_with_multiple_letters(contacts):
    smith = contacts.create({'lastname': 'Smith'})
    contacts.create({'lastname': 'Stone'})
    assert contacts.starting_with('Sm') == [smith]


def test_invalid_create_raises_with_draft(contacts):
    with pytest.raises(InvalidRecord) as info:
        contacts.create({'firstname': 'Aaron'}, [{'number': '415-555-0101'}])
    assert info.value.errors == {'lastname': ["can't be blank"]}
    assert info.value.record.firstname == 'Aaron'
    assert info.value.record.id is None
    assert contacts.count() == 0
    assert PhoneRepository().count() == 0


def test_create_rejects_duplicate_nested_numbers(contacts):
    with pytest.raises(InvalidRecord) as info:
        contacts.create({'lastname': 'Smith'}, [{'number': '415-555-0101'}, {'number': '(415) 555-0101'}])
    assert 'phones-1-number' in info.value.errors


def test_failed_update_keeps_stored_values(contacts):
    contact = contacts.create({'firstname': 'Lawrence', 'lastname': 'Smith'})
    with pytest.raises(InvalidRecord) as info:
        contacts.update(contact, {'firstname': 'Larry', 'lastname': None})
    assert info.value.record.firstname == 'Larry'
    assert contacts.get(contact.id).firstname == 'Lawrence'
    assert contacts.get(contact.id).lastname == 'Smith'


def test_update_rejects_duplicate_numbers(contacts):
    contact = contacts.create({'lastname': 'Smith'}, [{'number': '415-555-0101'}])
    with pytest.raises(InvalidRecord) as info:
        contacts.update(contact, {}, [{'number': '415-555-0101'}])
    assert 'phones' in info.value.errors
    assert len(PhoneRepository().for_contact(contact)) == 1


def test_delete_cascades_to_phones(contacts):
    contact = contacts.create({'lastname': 'Smith'}, [{'number': '415-555-0101'}, {'number': '415-555-0102'}])
    other = contacts.create({'lastname': 'Jones'}, [{'number': '415-555-0101'}])
    assert contacts.delete(contact) == 2
    assert contacts.count() == 1
    assert [p.contact_id for p in PhoneRepository().for_contact(other)] == [other.id]
    assert PhoneRepository().count() == 1


def test_same_number_allowed_on_different_contacts(contacts):
    first = contacts.create({'lastname': 'Smith'})
    second = contacts.create({'lastname': 'Jones'})
    phones = PhoneRepository()
    phones.create(first, {'number': '415-555-0101'})
    phones.create(second, {'number': '415-555-0101'})
    assert phones.count() == 2


def test_authenticate(ctx):
    users = UserRepository()
    users.create({'username': 'aaron', 'email': 'aaron@example.com', 'password': 'secret123'})
    assert users.authenticate('aaron', 'secret123').username == 'aaron'
    assert users.authenticate('aaron', 'wrong') is None
    assert users.authenticate('nobody', 'secret123') is None
    assert users.authenticate('', '') is None


def test_user_validation(ctx):
    users = UserRepository()
    with pytest.raises(InvalidRecord) as info:
        users.create({'username': '', 'email': 'bad', 'password': '123'})
    assert set(info.value.errors) == {'username', 'email', 'password'}


def test_update_keeps_password_when_blank(ctx):
    users = UserRepository()
    user = users.create({'username': 'aaron', 'email': 'aaron@example.com', 'password': 'secret123'})
    users.update(user, {'email': 'aaron@example.org', 'password': ''})
    assert users.authenticate('aaron', 'secret123') is not None


def test_update_with_blank_stored_number_is_invalid(contacts):
    contact = contacts.create({'lastname': 'Smith'}, [{'number': '415-555-0101', 'phone_type': 'home'}])
    (phone,) = PhoneRepository().for_contact(contact)
    with pytest.raises(InvalidRecord) as info:
        contacts.update(contact, {}, [{'id': str(phone.id), 'number': ''}])
    assert info.value.errors == {'phones-0-number': ["can't be blank"]}
    assert [(p.number, p.phone_type) for p in PhoneRepository().for_contact(contact)] == [('+14155550101', 'home')]
