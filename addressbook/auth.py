"""
auth.py
-------
Request principals and the access guard.

The logged-in identity lives in the Flask-Login session. Each request turns
it into an immutable ``Principal`` which the decorators below hand to the
view as the ``principal`` keyword argument, so handlers never read ambient
login state themselves.
"""
from dataclasses import dataclass
from functools import wraps
from typing import Optional

from flask import redirect, url_for, abort
from flask_login import current_user

from addressbook.extensions import db, login_manager
from addressbook.models import User

GUEST = 'guest'
USER = 'user'
ADMIN = 'admin'


@dataclass(frozen=True)
class Principal:
    role: str = GUEST
    user_id: Optional[int] = None
    username: Optional[str] = None

    @property
    def is_authenticated(self):
        return self.role != GUEST

    @property
    def is_admin(self):
        return self.role == ADMIN

    def can_manage(self, user):
        """Admins manage every account, everybody else only their own."""
        return self.is_admin or (self.is_authenticated and self.user_id == user.id)


ANONYMOUS = Principal()


def principal_for(user):
    """Build the principal for a user object (None or anonymous means guest)."""
    if user is None or not getattr(user, 'is_authenticated', False):
        return ANONYMOUS
    return Principal(role=ADMIN if user.is_admin else USER, user_id=user.id, username=user.username)


def current_principal():
    return principal_for(current_user._get_current_object())


@login_manager.user_loader
def load_user(user_id):
    """
    Load user by ID for Flask-Login.

    Returns:
        User object or None
    """
    try:
        return db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None


def with_principal(f):
    """Pass the request principal to a public view."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        return f(*args, principal=current_principal(), **kwargs)
    return decorated_function


def login_required(f):
    """Redirect guests to the login page before the view runs."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        principal = current_principal()
        if not principal.is_authenticated:
            return redirect(url_for('sessions.new'))
        return f(*args, principal=principal, **kwargs)
    return decorated_function


def require_manage(principal, user):
    if not principal.can_manage(user):
        abort(403)
