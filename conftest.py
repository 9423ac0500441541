import pytest

from app import app
from models import db, create_sample_words, set_tutor_pin

TEST_PIN = '1234'


def reset_database():
    """Fresh tables with the seed words and a known tutor PIN."""
    db.drop_all()
    db.create_all()
    create_sample_words()
    set_tutor_pin(TEST_PIN)


@pytest.fixture
def client():
    """Create a test client for the Flask app."""
    app.config['TESTING'] = True
    app.config['SECRET_KEY'] = 'test_secret_key'
    app.config['USE_ADMIN_WORDS'] = False
    app.config['USE_MOCK_WORDS'] = True
    app.config['USE_MOCK_IMAGES'] = True
    app.config['TRANSLATION_LANGUAGE'] = 'es'

    with app.app_context():
        reset_database()

    with app.test_client() as client:
        yield client


@pytest.fixture
def app_context():
    """App context over a freshly seeded store, for model-level tests."""
    with app.app_context():
        reset_database()
        yield
        db.session.remove()
