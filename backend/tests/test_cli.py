"""
CLI command tests (flask users / catalog).
"""

from storefront.extensions import db
from storefront.models import Category, User
from conftest import PASSWORD


def test_create_admin(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        'users', 'create-admin',
        '--email', 'Root@Example.com',
        '--password', PASSWORD,
        '--first-name', 'Root',
        '--last-name', 'Admin',
    ])
    assert result.exit_code == 0, result.output
    assert 'PASS Created admin: root@example.com' in result.output

    user = db.session.query(User).filter_by(email='root@example.com').one()
    assert user.role == 'admin'


def test_create_admin_rejects_weak_password(app, db_session):
    result = app.test_cli_runner().invoke(args=[
        'users', 'create-admin', '--email', 'root@example.com', '--password', 'short',
    ])
    assert result.exit_code != 0
    assert 'WEAK_PASSWORD' in result.output


def test_make_admin(app, customer):
    runner = app.test_cli_runner()
    result = runner.invoke(args=['users', 'make-admin', 'ADA@example.com'])
    assert result.exit_code == 0
    db.session.expire_all()
    assert db.session.get(User, customer.id).role == 'admin'

    result = runner.invoke(args=['users', 'make-admin', 'ada@example.com'])
    assert 'already an admin' in result.output


def test_make_admin_unknown_email(app, db_session):
    result = app.test_cli_runner().invoke(args=['users', 'make-admin', 'nobody@example.com'])
    assert result.exit_code != 0


def test_list_users(app, customer, admin):
    result = app.test_cli_runner().invoke(args=['users', 'list'])
    assert result.exit_code == 0
    assert 'ada@example.com' in result.output
    assert 'admin@example.com' in result.output


def test_seed_categories_is_idempotent(app, category):
    runner = app.test_cli_runner()
    result = runner.invoke(args=['catalog', 'seed-categories'])
    assert result.exit_code == 0
    # "skincare" already exists from the fixture
    assert 'PASS Created 4 categories' in result.output

    result = runner.invoke(args=['catalog', 'seed-categories'])
    assert 'PASS Created 0 categories' in result.output
    assert db.session.query(Category).count() == 5
