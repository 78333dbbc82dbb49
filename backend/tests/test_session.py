import pytest

from memory_match.services.game.engine import CardState, EnginePhase
from memory_match.services.game.errors import ValidationError
from memory_match.services.game.session import SessionController


def pairs_of(session):
    by_pair = {}
    for card in session.deck:
        by_pair.setdefault(card.pair_id, []).append(card.card_id)
    return by_pair


def play_perfect_game(controller, scheduler, step_ms=100):
    for a, b in pairs_of(controller.session).values():
        scheduler.advance(step_ms)
        controller.card_activated(a)
        controller.card_activated(b)
        scheduler.advance(controller.match_delay_ms)


def test_blank_name_is_rejected_before_any_state(controller, presenter, image_source, score_store):
    with pytest.raises(ValidationError) as err:
        controller.start_game('   ', 2)
    assert err.value.title == 'Name required'
    assert presenter.calls == []
    assert image_source.requests == []
    assert controller.session is None
    assert score_store.load_last_user() == ''


@pytest.mark.parametrize('pairs', [3, 'many', 0, 2.7, 2.0, True, '2.0', '-2', [2]])
def test_unsupported_pair_count_is_rejected(controller, image_source, pairs):
    with pytest.raises(ValidationError):
        controller.start_game('alice', pairs)
    assert image_source.requests == []


def test_start_builds_deck_and_renders(controller, presenter, image_source, score_store):
    session = controller.start_game('  alice ', 4)
    assert image_source.requests == [4]
    assert len(session.deck) == 8
    assert controller.status == 'ready'
    assert controller.username == 'alice'
    assert score_store.load_last_user() == 'alice'
    assert [c[0] for c in presenter.calls] == ['loading', 'timer', 'deck']
    assert presenter.named('timer') == [('00:00.00',)]
    assert presenter.named('deck') == [(session,)]


def test_pair_count_accepts_digit_strings(controller, image_source):
    controller.start_game('alice', ' 4 ')
    assert image_source.requests == [4]


def test_default_pair_count_is_used(controller, image_source):
    controller.start_game('alice')
    assert image_source.requests == [2]


def test_timer_waits_for_first_flip(controller, presenter, scheduler):
    controller.start_game('alice', 2)
    scheduler.advance(1000)
    assert presenter.named('timer') == [('00:00.00',)]
    assert controller.session.started_at is None

    controller.card_activated(controller.session.deck[0].card_id)
    scheduler.advance(60)
    assert presenter.named('timer')[-1] == ('00:00.05',)


def test_load_error_leaves_no_session(controller, presenter, image_source, scheduler):
    image_source.fail = True
    assert controller.start_game('alice', 2) is None
    assert controller.session is None
    assert controller.engine is None
    assert controller.status == 'load_error'
    assert presenter.named('load_error') == [('Could not load images',)]
    assert not controller.card_activated('0-a')
    assert scheduler.pending == 0


def test_unexpected_source_failure_is_a_load_error(controller, presenter, image_source, scheduler):
    def explode():
        raise RuntimeError('connection pool exhausted')

    image_source.before_return = explode
    assert controller.start_game('alice', 2) is None
    assert controller.status == 'load_error'
    assert controller.session is None
    assert presenter.named('load_error') == [('Could not load images',)]
    assert scheduler.pending == 0


def test_new_record_flow(controller, presenter, scheduler, score_store):
    controller.start_game('alice', 2)
    play_perfect_game(controller, scheduler)

    assert controller.session.phase == EnginePhase.COMPLETE
    assert controller.status == 'finished'
    assert controller.last_result['is_record'] is True
    assert controller.last_result['time_ms'] == 700
    best = score_store.load_best()
    assert (best.username, best.elapsed_ms, best.pair_count) == ('alice', 700, 2)
    assert presenter.named('best') == [(best,)]
    assert presenter.named('notify') == [
        ('New record', 'alice, your time was 00:00.70', 'success'),
    ]
    assert presenter.named('timer')[-1] == ('00:00.70',)
    assert scheduler.pending == 0


def test_slower_game_is_not_a_record(controller, presenter, scheduler, score_store):
    controller.start_game('alice', 2)
    play_perfect_game(controller, scheduler)
    controller.start_game('bob', 2)
    play_perfect_game(controller, scheduler, step_ms=400)

    assert controller.last_result['is_record'] is False
    assert score_store.load_best().username == 'alice'
    title, body, kind = presenter.named('notify')[-1]
    assert (title, kind) == ('Game finished', 'info')
    assert body == 'bob, your time was 00:01.00'


def test_card_state_updates_reach_presenter(controller, presenter, scheduler):
    session = controller.start_game('alice', 2)
    first, second = pairs_of(session).values()
    controller.card_activated(first[0])
    controller.card_activated(second[0])
    scheduler.advance(controller.mismatch_delay_ms)
    assert presenter.named('card') == [
        (first[0], CardState.FACE_UP),
        (second[0], CardState.FACE_UP),
        (first[0], CardState.FACE_DOWN),
        (second[0], CardState.FACE_DOWN),
    ]


def test_restart_drops_pending_callbacks(controller, presenter, scheduler):
    old = controller.start_game('alice', 2)
    first, second = pairs_of(old).values()
    controller.card_activated(first[0])
    controller.card_activated(second[0])

    new = controller.start_game('alice', 2)
    presenter.calls.clear()
    scheduler.advance(5000)

    assert old.states[first[0]] == CardState.FACE_UP
    assert not old.input_enabled
    assert presenter.calls == []
    assert new.epoch > old.epoch
    assert controller.session is new
    assert all(state == CardState.FACE_DOWN for state in new.states.values())


def test_abandon_resets_everything(controller, scheduler):
    controller.start_game('alice', 2)
    controller.card_activated(controller.session.deck[0].card_id)
    controller.abandon()
    assert controller.session is None
    assert controller.status == 'idle'
    assert scheduler.pending == 0
    assert not controller.card_activated('0-a')


def test_fetch_superseded_by_newer_start_is_discarded(controller, image_source, scheduler):
    image_source.before_return = controller.abandon
    assert controller.start_game('alice', 2) is None
    assert controller.session is None


def test_card_activated_without_game_is_ignored(controller):
    assert controller.card_activated('0-a') is False


def test_from_config_reads_delays(flask_app, image_source, score_store, presenter, scheduler):
    controller = SessionController.from_config(
        flask_app.config, image_source, score_store, presenter, scheduler,
    )
    assert controller.pair_choices == (1, 2, 8)
    assert controller.match_delay_ms == 10
    assert controller.mismatch_delay_ms == 30
    assert controller.tick_ms == 20


def test_controller_rejects_bad_delays(image_source, score_store, presenter, scheduler):
    with pytest.raises(ValueError):
        SessionController(image_source, score_store, presenter, scheduler,
                          match_delay_ms=900, mismatch_delay_ms=300)
