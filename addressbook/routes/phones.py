from flask import Blueprint, request, render_template, redirect, url_for, flash, current_app

from addressbook.auth import login_required, with_principal
from addressbook.exceptions import InvalidRecord
from addressbook.repository import ContactRepository, PhoneRepository
from addressbook.routes import form_params

bp = Blueprint('phones', __name__, url_prefix='/contacts/<int:contact_id>/phones')

PHONE_FIELDS = ('number', 'phone_type')


def _load(contact_id, phone_id=None):
    """Find the contact and, when asked, one of its phones; 404 otherwise."""
    contacts = ContactRepository()
    contact = contacts.get_or_404(contact_id)
    if phone_id is None:
        return contact, None
    return contact, contacts.phones.get_for_contact_or_404(contact, phone_id)


@bp.route('')
@with_principal
def index(contact_id, principal):
    contact, _ = _load(contact_id)
    phones = PhoneRepository().for_contact(contact)
    return render_template('phones/index.html', contact=contact, phones=phones, principal=principal)


@bp.route('/<int:phone_id>')
@with_principal
def show(contact_id, phone_id, principal):
    contact, phone = _load(contact_id, phone_id)
    return render_template('phones/show.html', contact=contact, phone=phone, principal=principal)


@bp.route('/new')
@login_required
def new(contact_id, principal):
    contact, _ = _load(contact_id)
    phone = PhoneRepository().build(contact)
    return render_template('phones/new.html', contact=contact, phone=phone, errors={}, principal=principal)


@bp.route('/<int:phone_id>/edit')
@login_required
def edit(contact_id, phone_id, principal):
    contact, phone = _load(contact_id, phone_id)
    return render_template('phones/edit.html', contact=contact, phone=phone, errors={}, principal=principal)


@bp.route('', methods=['POST'])
@login_required
def create(contact_id, principal):
    contact, _ = _load(contact_id)
    try:
        phone = PhoneRepository().create(contact, form_params(request.form, PHONE_FIELDS))
    except InvalidRecord as e:
        current_app.logger.info(f"Rejected new phone for contact {contact_id}: {e}")
        return render_template('phones/new.html', contact=contact, phone=e.record, errors=e.errors,
                               principal=principal)

    current_app.logger.info(f"{principal.username} added phone {phone.id} to contact {contact_id}")
    flash('Phone was successfully created.', 'success')
    return redirect(url_for('contacts.show', contact_id=contact_id))


@bp.route('/<int:phone_id>', methods=['PATCH', 'PUT', 'POST'])
@login_required
def update(contact_id, phone_id, principal):
    contact, phone = _load(contact_id, phone_id)
    try:
        PhoneRepository().update(phone, form_params(request.form, PHONE_FIELDS))
    except InvalidRecord as e:
        current_app.logger.info(f"Rejected update of phone {phone_id}: {e}")
        return render_template('phones/edit.html', contact=contact, phone=e.record, errors=e.errors,
                               principal=principal)

    current_app.logger.info(f"{principal.username} updated phone {phone_id}")
    flash('Phone was successfully updated.', 'success')
    return redirect(url_for('contacts.show', contact_id=contact_id))


@bp.route('/<int:phone_id>', methods=['DELETE'])
@bp.route('/<int:phone_id>/delete', methods=['POST'])
@login_required
def destroy(contact_id, phone_id, principal):
    contact, phone = _load(contact_id, phone_id)
    PhoneRepository().delete(phone)

    current_app.logger.info(f"{principal.username} deleted phone {phone_id} of contact {contact_id}")
    flash('Phone was successfully deleted.', 'success')
    return redirect(url_for('contacts.show', contact_id=contact_id))
