from flask import Blueprint, request, render_template, redirect, url_for, flash, current_app
from flask_login import logout_user

from addressbook.auth import login_required, with_principal, require_manage
from addressbook.exceptions import InvalidRecord
from addressbook.repository import UserRepository
from addressbook.routes import form_params

bp = Blueprint('users', __name__, url_prefix='/users')

USER_FIELDS = ('username', 'email', 'password', 'role')


def user_params(principal):
    attrs = form_params(request.form, USER_FIELDS)
    # Only administrators hand out roles
    if not principal.is_admin:
        attrs.pop('role', None)
    return attrs


@bp.route('')
@login_required
def index(principal):
    users = UserRepository().all()
    return render_template('users/index.html', users=users, principal=principal)


@bp.route('/<int:user_id>')
@login_required
def show(user_id, principal):
    user = UserRepository().get_or_404(user_id)
    return render_template('users/show.html', user=user, principal=principal)


@bp.route('/new')
@with_principal
def new(principal):
    """Sign-up form"""
    user = UserRepository().build()
    return render_template('users/new.html', user=user, errors={}, principal=principal)


@bp.route('', methods=['POST'])
@with_principal
def create(principal):
    try:
        user = UserRepository().create(user_params(principal))
    except InvalidRecord as e:
        return render_template('users/new.html', user=e.record, errors=e.errors, principal=principal)

    current_app.logger.info(f"Registered user {user.username!r}")
    flash('Account was successfully created.', 'success')
    if principal.is_authenticated:
        return redirect(url_for('users.show', user_id=user.id))
    return redirect(url_for('sessions.new'))


@bp.route('/<int:user_id>/edit')
@login_required
def edit(user_id, principal):
    user = UserRepository().get_or_404(user_id)
    require_manage(principal, user)
    return render_template('users/edit.html', user=user, errors={}, principal=principal)


@bp.route('/<int:user_id>', methods=['PATCH', 'PUT', 'POST'])
@login_required
def update(user_id, principal):
    repository = UserRepository()
    user = repository.get_or_404(user_id)
    require_manage(principal, user)
    try:
        repository.update(user, user_params(principal))
    except InvalidRecord as e:
        return render_template('users/edit.html', user=e.record, errors=e.errors, principal=principal)

    current_app.logger.info(f"{principal.username} updated user {user_id}")
    flash('Account was successfully updated.', 'success')
    return redirect(url_for('users.show', user_id=user_id))


@bp.route('/<int:user_id>', methods=['DELETE'])
@bp.route('/<int:user_id>/delete', methods=['POST'])
@login_required
def destroy(user_id, principal):
    repository = UserRepository()
    user = repository.get_or_404(user_id)
    require_manage(principal, user)
    repository.delete(user)

    current_app.logger.info(f"{principal.username} deleted user {user_id}")
    if principal.user_id == user_id:
        logout_user()
        return redirect(url_for('contacts.index'))
    flash('Account was successfully deleted.', 'success')
    return redirect(url_for('users.index'))
