def _play_game(client, payload, scores):
    """Create a game, give each player one turn with the given VP, then end it."""
    state = client.post('/api/games/create', json=payload).get_json()
    game_id = state['game_id']
    client.post(f'/api/games/{game_id}/toggle')
    for player, vp in zip(state['players'], scores):
        if vp:
            client.post(f'/api/games/{game_id}/vp', json={'player_id': player['id'], 'value': vp})
        client.post(f'/api/games/{game_id}/end-turn')
    assert client.post(f'/api/games/{game_id}/end').status_code == 200
    return game_id


def test_game_summaries(client, setup_payload):
    game_id = _play_game(client, setup_payload, [4, 9])
    games = client.get('/api/statistics/games').get_json()
    assert len(games) == 1
    summary = games[0]
    assert summary['id'] == game_id
    assert summary['status'] == 'completed'
    assert summary['total_turns'] == 2
    assert summary['winner'] == 'Bob'
    assert summary['vp_history'] == [
        {'player_name': 'Alice', 'vp_changes': [4]},
        {'player_name': 'Bob', 'vp_changes': [9]},
    ]


def test_game_summaries_filtering(client, setup_payload):
    _play_game(client, setup_payload, [1, 0])
    other = dict(setup_payload, gameName='Wingspan', location='Cafe',
                 players=[{'name': 'Cara'}, {'name': 'Dan', 'side': 'Birds'}])
    _play_game(client, other, [0, 2])

    by_game = client.get('/api/statistics/games?filter=game&q=wing').get_json()
    assert [g['name'] for g in by_game] == ['Wingspan']
    by_location = client.get('/api/statistics/games?filter=location&q=KITCHEN').get_json()
    assert [g['name'] for g in by_location] == ['Root']
    by_side = client.get('/api/statistics/games?filter=player&q=birds').get_json()
    assert [g['name'] for g in by_side] == ['Wingspan']
    assert client.get('/api/statistics/games?filter=nope').status_code == 400


def test_player_leaderboard(client, setup_payload):
    _play_game(client, setup_payload, [5, 2])
    _play_game(client, setup_payload, [1, 3])
    board = {row['name']: row for row in client.get('/api/statistics/players').get_json()}
    assert board['Alice']['games_played'] == 2
    assert board['Alice']['wins'] == 1
    assert board['Alice']['total_vp'] == 6
    assert board['Bob']['wins'] == 1
    assert board['Bob']['turn_count'] == 2
