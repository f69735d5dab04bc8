import re

NESTED_KEY = re.compile(r'^(?P<prefix>\w+?)-(?P<index>\d+)-(?P<field>\w+)$')


def form_params(form, fields):
    """Pick the submitted top-level fields out of a form."""
    return {field: form.get(field) for field in fields if field in form}


def nested_params(form, prefix):
    """
    Collect ``<prefix>-<n>-<field>`` form keys into a list of dicts, ordered by n.

    ``phones-0-number=555&phones-0-phone_type=home`` becomes
    ``[{'number': '555', 'phone_type': 'home'}]``.
    """
    grouped = {}
    for key in form.keys():
        match = NESTED_KEY.match(key)
        if not match or match.group('prefix') != prefix:
            continue
        grouped.setdefault(int(match.group('index')), {})[match.group('field')] = form.get(key)
    return [grouped[index] for index in sorted(grouped)]


def register_blueprints(app):
    from addressbook.routes.contacts import bp as contacts_bp
    from addressbook.routes.phones import bp as phones_bp
    from addressbook.routes.sessions import bp as sessions_bp
    from addressbook.routes.users import bp as users_bp

    app.register_blueprint(contacts_bp)
    app.register_blueprint(phones_bp)
    app.register_blueprint(sessions_bp)
    app.register_blueprint(users_bp)
