"""
Shared pytest fixtures for the family tree test suite.

All tests run against an in-memory SQLite database (TestingConfig).
A single app context is pushed for the whole session so that SQLAlchemy
objects remain attached throughout.  After each test, clean_db wipes all
rows so tests are fully independent.
"""
import pytest
from flask import g

from app import create_app
from extensions import db as _db


# ---------------------------------------------------------------------------
# Application / database lifecycle
# ---------------------------------------------------------------------------

@pytest.fixture(scope='session')
def app():
    """Create a test Flask application with an in-memory SQLite database."""
    application = create_app('testing')

    # Test requests share the session-wide app context (and its ``g``), so
    # drop Flask-Login's cached user before each request.
    @application.before_request
    def _forget_cached_user():
        g.pop('_login_user', None)

    ctx = application.app_context()
    ctx.push()
    _db.create_all()
    yield application
    _db.session.remove()
    _db.drop_all()
    ctx.pop()


@pytest.fixture(autouse=True)
def clean_db(app):
    """Wipe every table after each test so tests never share state."""
    yield
    _db.session.rollback()
    for table in reversed(_db.metadata.sorted_tables):
        _db.session.execute(table.delete())
    _db.session.commit()
    _db.session.expunge_all()


@pytest.fixture
def client(app):
    return app.test_client()


# ---------------------------------------------------------------------------
# Users and sessions
# ---------------------------------------------------------------------------

def _make_user(email, role, name, assigned_branch=None, status='ACTIVE'):
    from models.users import User
    u = User(
        email=email,
        name_arabic=name,
        role=role,
        status=status,
        assigned_branch=assigned_branch,
    )
    u.set_password('TestPass1!')
    _db.session.add(u)
    _db.session.commit()
    return u


@pytest.fixture
def super_admin(app):
    return _make_user('super@example.com', 'SUPER_ADMIN', 'المدير العام')


@pytest.fixture
def admin(app):
    return _make_user('admin@example.com', 'ADMIN', 'مدير')


@pytest.fixture
def branch_leader(app):
    return _make_user('leader@example.com', 'BRANCH_LEADER', 'مسؤول فرع', assigned_branch='Fahad')


@pytest.fixture
def member_user(app):
    return _make_user('member@example.com', 'MEMBER', 'عضو')


@pytest.fixture
def auth_headers(app):
    """Return a helper that logs *user* in and builds a bearer header."""
    from models.users import Session

    def _headers(user):
        session = Session.issue(user)
        _db.session.add(session)
        _db.session.commit()
        return {'Authorization': f'Bearer {session.token}'}
    return _headers


# ---------------------------------------------------------------------------
# Family members
# ---------------------------------------------------------------------------

@pytest.fixture
def make_member(app):
    """Return a helper that inserts a FamilyMember with sensible defaults."""
    from models.members import FamilyMember

    def _make(member_id, first_name='Saad', father_id=None, generation=1, branch='Fahad', **extra):
        m = FamilyMember(
            id=member_id,
            first_name=first_name,
            father_id=father_id,
            gender=extra.pop('gender', 'Male'),
            generation=generation,
            branch=branch,
            **extra,
        )
        _db.session.add(m)
        _db.session.commit()
        return m
    return _make
