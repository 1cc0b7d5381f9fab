"""
Campus Hub - Test Configuration and Fixtures
"""
import os
import tempfile

# Set testing environment before the app reads its settings
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['JWT_SECRET'] = 'test-jwt-secret-for-testing-only'
os.environ['LOCAL_STORAGE_DIR'] = tempfile.mkdtemp(prefix='campushub-storage-')
os.environ['RATE_LIMIT'] = '100000/minute'
os.environ['PUBLIC_BASE_URL'] = 'http://testserver'

import pytest
from faker import Faker
from fastapi.testclient import TestClient

from campushub.main import app
from campushub.db import Base, SessionLocal, engine
from campushub.models.models import Role, User
from campushub.auth.security import actor_from_user, create_access_token, get_password_hash
from campushub.store import RecordStore

fake = Faker()

TEST_PASSWORD = 'password-123'
# pbkdf2 is slow; hash once for every fixture user
TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


@pytest.fixture(autouse=True)
def db():
    """Fresh in-memory schema for each test"""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store() -> RecordStore:
    return RecordStore()


@pytest.fixture
def make_actor():
    """Create a user with the given roles and return it as an Actor"""
    def _make(*roles, institution_id=None, department='CSE', name=None):
        with SessionLocal() as session:
            role_rows = []
            for role_name in roles or ('student',):
                role = session.query(Role).filter(Role.name == role_name).first()
                if role is None:
                    role = Role(name=role_name)
                    session.add(role)
                    session.flush()
                role_rows.append(role)
            user = User(
                email=fake.unique.email(),
                full_name=name or fake.name(),
                institution_id=institution_id or f"VTU{fake.unique.random_number(digits=6, fix_len=True)}",
                department=department,
                password_hash=TEST_PASSWORD_HASH,
            )
            user.roles = role_rows
            session.add(user)
            session.commit()
            session.refresh(user)
            return actor_from_user(user)
    return _make


@pytest.fixture
def student(make_actor):
    return make_actor('student')


@pytest.fixture
def other_student(make_actor):
    return make_actor('student')


@pytest.fixture
def faculty(make_actor):
    return make_actor('faculty', institution_id='FAC900')


@pytest.fixture
def hod(make_actor):
    return make_actor('hod', institution_id='FAC901')


@pytest.fixture
def dean(make_actor):
    return make_actor('dean', institution_id='FAC902')


@pytest.fixture
def admin(make_actor):
    return make_actor('admin', institution_id='ADM900')


def auth_headers(actor) -> dict:
    return {'Authorization': f"Bearer {create_access_token(str(actor.id), actor.roles)}"}


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
