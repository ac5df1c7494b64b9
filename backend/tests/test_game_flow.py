import pytest
from sqlalchemy.exc import IntegrityError

from moo import db
from moo.models import Room, Game, Move, utcnow
from moo.services.games.errors import BadRequestError
from moo.services.games.state import GameLookup, make_guess


def _state(client, code):
    res = client.get(f'/api/games/rooms/{code}/state')
    assert res.status_code == 200
    return res.get_json()


def test_codes_must_be_valid(joined_room, alice):
    code = joined_room['code']
    for bad in ('012', '0126', 'abcd', None):
        res = alice.post(f'/api/games/rooms/{code}/code', json={'code': bad})
        assert res.status_code == 400
        assert res.get_json()['error'] == 'Invalid code format'


def test_game_waits_for_both_codes(joined_room, alice, bob, notifier):
    code = joined_room['code']
    events = []
    notifier.subscribe(joined_room['room_id'], events.append)

    assert alice.post(f'/api/games/rooms/{code}/code', json={'code': '0123'}).get_json() == {'success': True}
    state = _state(alice, code)
    assert state['game']['status'] == 'code_selection'
    assert state['game']['player1_code'] == '0123'
    assert state['game']['player2_ready'] is False
    assert events == []

    # guessing before the game starts is refused
    res = alice.post(f'/api/games/rooms/{code}/guess', json={'guess': '0000'})
    assert res.status_code == 400
    assert res.get_json()['error'] == 'Game is not in playing state'

    assert bob.post(f"/api/games/{joined_room['game_id']}/code", json={'code': '5432'}).status_code == 200
    state = _state(bob, code)
    assert state['game']['status'] == 'playing'
    assert state['game']['current_round'] == 1
    assert [(e.type, e.data) for e in events] == [('game_started', {'status': 'playing'})]


def test_code_can_only_be_chosen_once(joined_room, alice):
    code = joined_room['code']
    assert alice.post(f'/api/games/rooms/{code}/code', json={'code': '0123'}).status_code == 200
    res = alice.post(f'/api/games/rooms/{code}/code', json={'code': '4444'})
    assert res.status_code == 400
    assert _state(alice, code)['game']['player1_code'] == '0123'


def test_codes_cannot_change_once_playing(playing_room, alice):
    res = alice.post(f"/api/games/rooms/{playing_room['code']}/code", json={'code': '1111'})
    assert res.status_code == 400
    assert res.get_json()['error'] == 'Game is not in code selection phase'


def test_outsiders_are_forbidden(joined_room, carol):
    code = joined_room['code']
    res = carol.post(f'/api/games/rooms/{code}/code', json={'code': '0123'})
    assert res.status_code == 403
    assert res.get_json()['kind'] == 'forbidden'
    assert carol.get(f'/api/games/rooms/{code}/state').status_code == 403
    assert carol.get(f"/api/games/{joined_room['game_id']}/state").status_code == 403


def test_missing_room_or_game(room, alice):
    res = alice.post('/api/games/rooms/QQQQ/code', json={'code': '0123'})
    assert res.status_code == 404
    assert res.get_json()['error'] == 'Room not found'
    res = alice.get(f"/api/games/rooms/{room['code']}/state")
    assert res.status_code == 404
    assert res.get_json()['error'] == 'No game found in this room'
    res = alice.post('/api/games/does-not-exist/guess', json={'guess': '0123'})
    assert res.status_code == 404
    assert res.get_json()['error'] == 'Game not found'


def test_opponent_code_is_hidden_while_playing(playing_room, alice, bob):
    game = _state(alice, playing_room['code'])['game']
    assert game['player1_code'] == '0123'
    assert game['player2_code'] is None
    game = _state(bob, playing_room['code'])['game']
    assert game['player1_code'] is None
    assert game['player2_code'] == '5432'


def test_round_advances_only_after_both_players_move(playing_room, alice, bob, notifier):
    code = playing_room['code']
    events = []
    notifier.subscribe(playing_room['room_id'], events.append)

    res = alice.post(f'/api/games/rooms/{code}/guess', json={'guess': '5403'})
    assert res.status_code == 200
    assert res.get_json() == {'bulls': 2, 'cows': 1, 'is_win': False}
    assert _state(alice, code)['game']['current_round'] == 1

    # a second guess in the same round is refused
    res = alice.post(f'/api/games/rooms/{code}/guess', json={'guess': '5432'})
    assert res.status_code == 400
    assert res.get_json()['error'] == 'You have already made a guess this round'

    res = bob.post(f"/api/games/{playing_room['game_id']}/guess", json={'guess': '1032'})
    assert res.get_json() == {'bulls': 0, 'cows': 4, 'is_win': False}

    state = _state(bob, code)
    assert state['game']['current_round'] == 2
    assert [(m['player_id'], m['round']) for m in state['moves']] == [(alice.user_id, 1), (bob.user_id, 1)]
    assert [e.type for e in events] == ['move_made', 'move_made']
    assert events[0].data == {'player_id': alice.user_id, 'round': 1, 'bulls': 2, 'cows': 1}


def test_winning_guess_finishes_game(playing_room, alice, bob, notifier, flask_app):
    code = playing_room['code']
    events = []
    notifier.subscribe(playing_room['room_id'], events.append)

    alice.post(f'/api/games/rooms/{code}/guess', json={'guess': '0000'})
    bob.post(f'/api/games/rooms/{code}/guess', json={'guess': '0000'})
    res = alice.post(f'/api/games/rooms/{code}/guess', json={'guess': '5432'})
    assert res.get_json() == {'bulls': 4, 'cows': 0, 'is_win': True}

    state = _state(bob, code)
    assert state['game']['status'] == 'finished'
    assert state['game']['winner_id'] == alice.user_id
    # both secrets are revealed once the game is over
    assert state['game']['player1_code'] == '0123'
    assert state['game']['player2_code'] == '5432'
    assert events[-1].type == 'game_finished'
    assert events[-1].data == {'winner_id': alice.user_id, 'bulls': 4, 'cows': 0}

    with flask_app.app_context():
        room = db.session.get(Room, playing_room['room_id'])
        # finished rooms go back to waiting with the empty clock started
        assert room.status == 'waiting'
        assert room.empty_at <= utcnow()

    res = bob.post(f'/api/games/rooms/{code}/guess', json={'guess': '0123'})
    assert res.status_code == 400
    assert res.get_json()['error'] == 'Game is not in playing state'


def test_guess_format_is_validated(playing_room, alice):
    res = alice.post(f"/api/games/rooms/{playing_room['code']}/guess", json={'guess': '99'})
    assert res.status_code == 400
    assert res.get_json()['error'] == 'Invalid guess format'


def test_outsider_cannot_guess(playing_room, carol):
    res = carol.post(f"/api/games/rooms/{playing_room['code']}/guess", json={'guess': '0123'})
    assert res.status_code == 403


def test_duplicate_move_rejected_by_service(playing_room, alice, flask_app, notifier):
    with flask_app.app_context():
        db.session.add(Move(game_id=playing_room['game_id'], player_id=alice.user_id,
                            round=1, guess='0000', bulls=0, cows=0))
        db.session.commit()

    with flask_app.test_request_context():
        with pytest.raises(BadRequestError):
            make_guess(alice.user_id, GameLookup.by_id(playing_room['game_id']), '1111', notifier)

    with flask_app.app_context():
        assert Move.query.filter_by(game_id=playing_room['game_id']).count() == 1


def test_one_move_per_player_per_round_is_a_storage_constraint(playing_room, alice, flask_app):
    with flask_app.app_context():
        for guess in ('0000', '1111'):
            db.session.add(Move(game_id=playing_room['game_id'], player_id=alice.user_id,
                                round=1, guess=guess, bulls=0, cows=0))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()


def test_my_games(playing_room, alice, carol):
    games = alice.get('/api/games/mine').get_json()
    assert [g['id'] for g in games] == [playing_room['game_id']]
    assert carol.get('/api/games/mine').get_json() == []


def test_game_lookup_requires_one_key():
    with pytest.raises(ValueError):
        GameLookup()
    with pytest.raises(ValueError):
        GameLookup(game_id='a', room_code='ABCD')


def test_creator_is_player_one(joined_room, alice, flask_app):
    with flask_app.app_context():
        game = db.session.get(Game, joined_room['game_id'])
        assert game.player1_id == alice.user_id
        assert game.winner_id is None


def test_round_advances_when_opponent_move_already_stored(playing_room, alice, bob, flask_app):
    with flask_app.app_context():
        db.session.add(Move(game_id=playing_room['game_id'], player_id=bob.user_id,
                            round=1, guess='1111', bulls=1, cows=0))
        db.session.commit()

    res = alice.post(f"/api/games/rooms/{playing_room['code']}/guess", json={'guess': '0000'})
    assert res.status_code == 200
    assert _state(alice, playing_room['code'])['game']['current_round'] == 2


class _NoMoveFound:
    def filter_by(self, **kwargs):
        return self

    def first(self):
        return None


def test_duplicate_move_rejected_by_storage(playing_room, alice, flask_app, notifier, monkeypatch):
    with flask_app.app_context():
        db.session.add(Move(game_id=playing_room['game_id'], player_id=alice.user_id,
                            round=1, guess='0000', bulls=0, cows=0))
        db.session.commit()

    events = []
    notifier.subscribe(playing_room['room_id'], events.append)
    with flask_app.test_request_context():
        # the read check misses, so only the unique index can refuse the move
        monkeypatch.setattr(Move, 'query', _NoMoveFound())
        with pytest.raises(BadRequestError, match='already made a guess'):
            make_guess(alice.user_id, GameLookup.by_id(playing_room['game_id']), '1111', notifier)

    with flask_app.app_context():
        assert db.session.query(Move).filter_by(game_id=playing_room['game_id']).count() == 1
    assert events == []


def test_late_winning_move_is_discarded(playing_room, alice, bob, flask_app, notifier, monkeypatch):
    from moo.services.games import state as state_module

    game_id = playing_room['game_id']

    def opponent_wins_first(guess, secret):
        # bob's win lands between alice's checks and her finish transition
        Game.query.filter_by(id=game_id).update(
            {'status': 'finished', 'winner_id': bob.user_id}, synchronize_session=False)
        return 4, 0

    monkeypatch.setattr(state_module, 'score_guess', opponent_wins_first)
    events = []
    notifier.subscribe(playing_room['room_id'], events.append)
    with flask_app.test_request_context():
        with pytest.raises(BadRequestError, match='Game is not in playing state'):
            make_guess(alice.user_id, GameLookup.by_id(game_id), '5432', notifier)

    with flask_app.app_context():
        assert Move.query.filter_by(game_id=game_id).count() == 0
        assert db.session.get(Game, game_id).winner_id is None
    assert events == []
