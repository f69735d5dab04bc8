from urllib.parse import urlparse

from addressbook.extensions import db
from addressbook.models import User
from tests.conftest import captured_templates, rendered, create_user, log_in


def redirect_path(response):
    assert response.status_code == 302
    return urlparse(response.headers['Location']).path


def load_user(app, user_id):
    with app.app_context():
        user = db.session.get(User, user_id)
        return None if user is None else (user.username, user.email, user.role)


def test_sign_up_creates_plain_user(app, client):
    response = client.post('/users', data={
        'username': 'aaron', 'email': 'aaron@example.com', 'password': 'secret123', 'role': 'admin'})
    assert redirect_path(response) == '/login'
    with app.app_context():
        user = db.session.query(User).filter_by(username='aaron').one()
        assert user.role == 'user'
        assert user.check_password('secret123')


def test_sign_up_with_taken_username_rerenders_form(app, client):
    create_user(app, username='aaron')
    with captured_templates(app) as templates:
        client.post('/users', data={'username': 'aaron', 'email': 'new@example.com', 'password': 'secret123'})
    assert rendered(templates) == 'users/new.html'
    assert templates[0][1]['errors']['username'] == ['has already been taken']


def test_admin_can_create_admin(app, client):
    log_in(client, create_user(app, role='admin'))
    response = client.post('/users', data={
        'username': 'boss', 'email': 'boss@example.com', 'password': 'secret123', 'role': 'admin'})
    user_id = int(redirect_path(response).rsplit('/', 1)[1])
    assert load_user(app, user_id) == ('boss', 'boss@example.com', 'admin')


def test_index_requires_login(client):
    assert redirect_path(client.get('/users')) == '/login'


def test_index_lists_users(app, client):
    log_in(client, create_user(app, username='aaron'))
    create_user(app, username='bella')
    with captured_templates(app) as templates:
        client.get('/users')
    assert [u.username for u in templates[0][1]['users']] == ['aaron', 'bella']


def test_user_edits_own_account(app, client):
    user_id = create_user(app, username='aaron')
    log_in(client, user_id)
    response = client.patch(f'/users/{user_id}', data={'email': 'aaron@example.org'})
    assert redirect_path(response) == f'/users/{user_id}'
    assert load_user(app, user_id)[1] == 'aaron@example.org'


def test_user_cannot_promote_self(app, client):
    user_id = create_user(app)
    log_in(client, user_id)
    client.patch(f'/users/{user_id}', data={'role': 'admin'})
    assert load_user(app, user_id)[2] == 'user'


def test_user_cannot_edit_someone_else(app, client):
    log_in(client, create_user(app))
    other_id = create_user(app, username='bella')
    assert client.get(f'/users/{other_id}/edit').status_code == 403
    assert client.patch(f'/users/{other_id}', data={'username': 'hacked'}).status_code == 403
    assert client.delete(f'/users/{other_id}').status_code == 403
    assert load_user(app, other_id)[0] == 'bella'


def test_admin_manages_other_accounts(app, client):
    log_in(client, create_user(app, role='admin'))
    other_id = create_user(app, username='bella')
    client.patch(f'/users/{other_id}', data={'role': 'admin'})
    assert load_user(app, other_id)[2] == 'admin'

    response = client.delete(f'/users/{other_id}')
    assert redirect_path(response) == '/users'
    assert load_user(app, other_id) is None


def test_deleting_own_account_logs_out(app, client):
    user_id = create_user(app)
    log_in(client, user_id)
    response = client.post(f'/users/{user_id}/delete')
    assert redirect_path(response) == '/contacts'
    assert redirect_path(client.get('/contacts/new')) == '/login'
