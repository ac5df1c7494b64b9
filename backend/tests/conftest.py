import os
import sys
import pytest

# Ensure the backend root (containing the `moo` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from moo import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = 4
    CORS_ORIGINS = []
    ROOM_CODE_ATTEMPTS = 10
    ROOM_ACTIVE_HOLD_SEC = 24 * 60 * 60
    ROOM_EMPTY_GRACE_SEC = 300
    ROOM_CLEANUP_INTERVAL_SEC = 120
    ROOM_CLEANUP_ENABLED = False


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import moo.models  # noqa: F401
        db.create_all()
    # Flask-Login caches current_user on `g`; keep no context open between
    # requests so each test client gets its own user
    yield application
    application.extensions['room_cleanup'].stop()
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def notifier(flask_app):
    return flask_app.extensions['game_events']


def _register(application, username):
    test_client = application.test_client()
    res = test_client.post('/register', json={'username': username, 'password': 'password'})
    assert res.status_code == 201, res.get_json()
    test_client.user_id = res.get_json()['user']['id']
    return test_client


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def alice(flask_app):
    return _register(flask_app, 'alice')


@pytest.fixture()
def bob(flask_app):
    return _register(flask_app, 'bob')


@pytest.fixture()
def carol(flask_app):
    return _register(flask_app, 'carol')


@pytest.fixture()
def room(alice):
    """A waiting room created by alice."""
    res = alice.post('/api/games/rooms')
    assert res.status_code == 201
    return res.get_json()


@pytest.fixture()
def joined_room(room, bob):
    res = bob.post(f"/api/games/rooms/{room['code']}/join")
    assert res.status_code == 200
    return {**room, 'game_id': res.get_json()['game_id']}


@pytest.fixture()
def playing_room(joined_room, alice, bob):
    """Alice's secret is 0123, bob's is 5432."""
    code = joined_room['code']
    assert alice.post(f'/api/games/rooms/{code}/code', json={'code': '0123'}).status_code == 200
    assert bob.post(f'/api/games/rooms/{code}/code', json={'code': '5432'}).status_code == 200
    return joined_room


@pytest.fixture()
def sio_client(flask_app, alice):
    """A /ws socket carrying alice's login session."""
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=alice,
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
