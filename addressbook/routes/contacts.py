from flask import Blueprint, request, render_template, redirect, url_for, flash, current_app

from addressbook.auth import login_required, with_principal
from addressbook.exceptions import InvalidRecord
from addressbook.repository import ContactRepository, CONTACT_FIELDS
from addressbook.routes import form_params, nested_params

bp = Blueprint('contacts', __name__)

# Blank phone rows offered on the new contact form
NEW_PHONE_SLOTS = 3


def contact_params():
    return form_params(request.form, CONTACT_FIELDS), nested_params(request.form, 'phones')


@bp.route('/')
@bp.route('/contacts')
@with_principal
def index(principal):
    """
    List contacts.

    Query parameters:
        letter: Only contacts whose last name starts with it
    """
    letter = request.args.get('letter', '')
    contacts = ContactRepository().index(letter)
    return render_template('contacts/index.html', contacts=contacts, letter=letter, principal=principal)


@bp.route('/contacts/<int:contact_id>')
@with_principal
def show(contact_id, principal):
    contact = ContactRepository().get_or_404(contact_id)
    return render_template('contacts/show.html', contact=contact, principal=principal)


@bp.route('/contacts/new')
@login_required
def new(principal):
    contact = ContactRepository().build()
    return render_template('contacts/new.html', contact=contact, errors={},
                           phone_slots=NEW_PHONE_SLOTS, principal=principal)


@bp.route('/contacts/<int:contact_id>/edit')
@login_required
def edit(contact_id, principal):
    contact = ContactRepository().get_or_404(contact_id)
    return render_template('contacts/edit.html', contact=contact, errors={},
                           phone_slots=1, principal=principal)


@bp.route('/contacts', methods=['POST'])
@login_required
def create(principal):
    attrs, phones = contact_params()
    try:
        contact = ContactRepository().create(attrs, phones)
    except InvalidRecord as e:
        current_app.logger.info(f"Rejected new contact from {principal.username}: {e}")
        return render_template('contacts/new.html', contact=e.record, errors=e.errors,
                               phone_slots=0, principal=principal)

    current_app.logger.info(f"{principal.username} created contact {contact.id}")
    flash('Contact was successfully created.', 'success')
    return redirect(url_for('contacts.show', contact_id=contact.id))


@bp.route('/contacts/<int:contact_id>', methods=['PATCH', 'PUT', 'POST'])
@login_required
def update(contact_id, principal):
    repository = ContactRepository()
    contact = repository.get_or_404(contact_id)
    attrs, phones = contact_params()
    try:
        repository.update(contact, attrs, phones)
    except InvalidRecord as e:
        current_app.logger.info(f"Rejected update of contact {contact_id} from {principal.username}: {e}")
        return render_template('contacts/edit.html', contact=e.record, errors=e.errors,
                               phone_slots=0, principal=principal)

    current_app.logger.info(f"{principal.username} updated contact {contact_id}")
    flash('Contact was successfully updated.', 'success')
    return redirect(url_for('contacts.show', contact_id=contact_id))


@bp.route('/contacts/<int:contact_id>', methods=['DELETE'])
@bp.route('/contacts/<int:contact_id>/delete', methods=['POST'])
@login_required
def destroy(contact_id, principal):
    repository = ContactRepository()
    contact = repository.get_or_404(contact_id)
    repository.delete(contact)

    current_app.logger.info(f"{principal.username} deleted contact {contact_id}")
    flash('Contact was successfully deleted.', 'success')
    return redirect(url_for('contacts.index'))
