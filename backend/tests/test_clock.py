from timekeeper.services.session import Clock, QUANTUM_MS, format_elapsed


def test_tick_only_advances_while_running():
    clock = Clock()
    clock.tick()
    assert clock.turn_elapsed == 0
    assert clock.game_elapsed == 0

    clock.start()
    clock.tick()
    clock.tick()
    assert clock.turn_elapsed == 2 * QUANTUM_MS
    assert clock.game_elapsed == 2 * QUANTUM_MS


def test_total_elapsed_ignores_run_state():
    clock = Clock()
    clock.tick_total()
    clock.start()
    clock.tick_total()
    clock.stop()
    clock.tick_total()
    assert clock.total_elapsed == 3000
    assert clock.game_elapsed == 0


def test_reset_turn_keeps_game_time():
    clock = Clock(turn_elapsed=5000, game_elapsed=9000, total_elapsed=12000, running=True)
    clock.reset_turn()
    assert clock.turn_elapsed == 0
    assert clock.game_elapsed == 9000
    assert clock.total_elapsed == 12000


def test_from_dict_restores_counters_paused():
    clock = Clock.from_dict({'turn_elapsed': 1000, 'game_elapsed': 4000, 'total_elapsed': 6000, 'running': True})
    assert clock.to_dict() == {'turn_elapsed': 1000, 'game_elapsed': 4000, 'total_elapsed': 6000, 'running': False}
    assert Clock.from_dict(None) == Clock()


def test_format_elapsed():
    assert format_elapsed(0) == '00:00:00'
    assert format_elapsed(61_000) == '00:01:01'
    assert format_elapsed(3_723_999) == '01:02:03'
