from flask import Blueprint, request, render_template, redirect, url_for, flash, current_app
from flask_login import login_user, logout_user

from addressbook.auth import with_principal
from addressbook.extensions import limiter
from addressbook.repository import UserRepository

bp = Blueprint('sessions', __name__)


def login_rate_limit():
    return current_app.config['LOGIN_RATE_LIMIT']


@bp.route('/sessions/new')
@bp.route('/login')
@with_principal
def new(principal):
    """Display login form"""
    return render_template('sessions/new.html', principal=principal)


@bp.route('/sessions', methods=['POST'])
@limiter.limit(login_rate_limit)
@with_principal
def create(principal):
    """Process login credentials"""
    username = request.form.get('username')
    user = UserRepository().authenticate(username, request.form.get('password'))

    if user is None:
        current_app.logger.warning(f"Failed login for {username!r} from {request.remote_addr}")
        flash('Invalid username or password', 'error')
        return render_template('sessions/new.html', principal=principal)

    login_user(user)
    current_app.logger.info(f"User {user.username!r} logged in")
    flash('Login successful!', 'success')
    return redirect(url_for('contacts.index'))


@bp.route('/sessions/<int:session_id>', methods=['DELETE'])
@bp.route('/logout')
@with_principal
def destroy(principal, session_id=None):
    """Forget the logged-in user"""
    if principal.is_authenticated:
        current_app.logger.info(f"User {principal.username!r} logged out")
    logout_user()
    flash('You have been logged out.', 'info')
    return redirect(url_for('contacts.index'))
