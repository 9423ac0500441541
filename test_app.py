import io
from unittest.mock import patch

from app import app
from conftest import TEST_PIN
from models import db, GameSession, SpellingAttempt, Word, add_word


def login_tutor(client, pin=TEST_PIN):
    """Helper function to enter the tutor panel."""
    return client.post('/tutor/login', data={'pin': pin}, follow_redirects=True)


def start_game(client, mode, difficulty='easy', words_per_game=3):
    """Helper function to start a game; returns the game id."""
    with client.session_transaction() as sess:
        sess['words_per_game'] = words_per_game
    response = client.get(f'/play/{mode}/{difficulty}')
    assert response.status_code == 302
    return int(response.headers['Location'].rstrip('/').split('/')[-1])


def get_game(game_id):
    with app.app_context():
        game = db.session.get(GameSession, game_id)
        return {
            'words': [w['text'] for w in game.words],
            'current_index': game.current_index,
            'finished': game.is_finished,
            'attempts': game.attempts.count(),
        }


def spelled(word):
    return ', '.join([word] + list(word) + [word])


def get_word(text):
    with app.app_context():
        return Word.query.filter_by(text=text).first()


def test_index_lists_modes_and_difficulties(client):
    response = client.get('/')
    assert response.status_code == 200
    assert b'Practice mode' in response.data
    assert b'Test mode' in response.data
    assert b'/play/test/hard' in response.data


def test_unknown_mode_or_difficulty_is_404(client):
    assert client.get('/play/exam/easy').status_code == 404
    assert client.get('/play/practice/impossible').status_code == 404
    assert client.get('/game/999').status_code == 404


def test_start_game_uses_words_per_game_setting(client):
    game_id = start_game(client, 'practice', 'medium', words_per_game=4)
    game = get_game(game_id)
    assert len(game['words']) == 4
    assert game['current_index'] == 0

    response = client.get(f'/game/{game_id}')
    assert response.status_code == 200
    assert b'Word 1 of 4' in response.data
    assert b'text=Mock+' in response.data


def test_practice_correct_answer_advances(client):
    game_id = start_game(client, 'practice')
    word = get_game(game_id)['words'][0]

    response = client.post(f'/game/{game_id}/answer', data={'answer': spelled(word)}, follow_redirects=True)

    assert response.status_code == 200
    assert b'Great spelling!' in response.data
    assert b'Word 2 of 3' in response.data
    game = get_game(game_id)
    assert game['current_index'] == 1
    assert game['attempts'] == 1


def test_practice_wrong_answer_shows_hint(client):
    game_id = start_game(client, 'practice')

    response = client.post(f'/game/{game_id}/answer', data={'answer': 'zzz, z, z, z, zzz'})

    assert response.status_code == 200
    assert b'Almost, but not quite' in response.data
    assert b'The first word does not match.' in response.data
    game = get_game(game_id)
    assert game['current_index'] == 0
    assert game['attempts'] == 1


def test_practice_format_error_hint(client):
    game_id = start_game(client, 'practice')
    response = client.post(f'/game/{game_id}/answer', data={'answer': 'justoneword'})
    assert b'Wrong format' in response.data
    assert b'format_error_display' in response.data


def test_practice_game_finishes_with_summary(client):
    game_id = start_game(client, 'practice')
    for word in get_game(game_id)['words']:
        response = client.post(f'/game/{game_id}/answer', data={'answer': spelled(word)})

    assert response.headers['Location'].endswith(f'/game/{game_id}/summary')
    game = get_game(game_id)
    assert game['finished']
    with app.app_context():
        assert SpellingAttempt.query.filter(SpellingAttempt.recorded_at.isnot(None)).count() == 3

    response = client.get(f'/game/{game_id}/summary')
    assert b'Well done!' in response.data
    assert b'3 of 3' in response.data

    # A finished game always sends the player to the summary.
    assert client.get(f'/game/{game_id}').status_code == 302


def test_test_mode_always_advances(client):
    game_id = start_game(client, 'test')
    words = get_game(game_id)['words']

    client.post(f'/game/{game_id}/answer', data={'answer': spelled(words[0])})
    response = client.post(f'/game/{game_id}/answer', data={'answer': 'x'})
    assert response.status_code == 302
    assert get_game(game_id)['current_index'] == 2

    client.post(f'/game/{game_id}/answer', data={'answer': spelled(words[2])})
    assert get_game(game_id)['finished']

    response = client.get(f'/game/{game_id}/summary')
    assert b'Keep practising!' in response.data
    assert b'66.7%' in response.data


def test_summary_before_finish_redirects_to_game(client):
    game_id = start_game(client, 'test')
    response = client.get(f'/game/{game_id}/summary')
    assert response.headers['Location'].endswith(f'/game/{game_id}')


def test_practice_navigation(client):
    game_id = start_game(client, 'practice')

    client.post(f'/game/{game_id}/previous')
    assert get_game(game_id)['current_index'] == 0

    client.post(f'/game/{game_id}/next')
    client.post(f'/game/{game_id}/next')
    assert get_game(game_id)['current_index'] == 2

    client.post(f'/game/{game_id}/previous')
    assert get_game(game_id)['current_index'] == 1

    client.post(f'/game/{game_id}/next')
    response = client.post(f'/game/{game_id}/next')
    assert response.headers['Location'].endswith('/summary')
    assert get_game(game_id)['finished']


def test_navigation_not_allowed_in_test_mode(client):
    game_id = start_game(client, 'test')
    response = client.post(f'/game/{game_id}/next', follow_redirects=True)
    assert b'only available in practice mode' in response.data
    assert get_game(game_id)['current_index'] == 0


def test_translation_is_practice_only(client):
    game_id = start_game(client, 'test')
    assert client.get(f'/game/{game_id}/translation').status_code == 403


def test_translation_uses_ai_for_mock_words(client):
    game_id = start_game(client, 'practice')
    with patch('app.get_word_translation', return_value='gato') as translate:
        response = client.get(f'/game/{game_id}/translation')

    assert response.get_json()['translation'] == 'GATO'
    translate.assert_called_once_with(get_game(game_id)['words'][0], 'es')


def test_admin_words_use_custom_content(client):
    app.config['USE_ADMIN_WORDS'] = True
    game_id = start_game(client, 'practice', 'easy')
    assert get_game(game_id)['words'] == ['bicycle']

    with patch('app.get_word_translation') as translate:
        response = client.get(f'/game/{game_id}/translation')
    assert response.get_json()['translation'] == 'BICICLETA'
    translate.assert_not_called()

    with patch('app.get_translated_sentence', return_value='Me gusta montar en bicicleta.'):
        data = client.get(f'/game/{game_id}/sentence').get_json()
    assert data['sentence'] == 'I like to ride my bicycle.'
    assert data['translated_sentence'] == 'Me gusta montar en bicicleta.'


def test_ai_sentence_is_saved_to_admin_word(client):
    app.config['USE_ADMIN_WORDS'] = True
    with app.app_context():
        add_word('zebra', 'hard')
    game_id = start_game(client, 'test', 'hard')

    with patch('app.get_word_sentence', return_value='A zebra has stripes.'), \
            patch('app.get_translated_sentence', return_value='Una cebra tiene rayas.'):
        data = client.get(f'/game/{game_id}/sentence').get_json()

    assert data['sentence'] == 'A zebra has stripes.'
    assert get_word('zebra').custom_sentence == 'A zebra has stripes.'


def test_admin_words_without_active_words(client):
    app.config['USE_ADMIN_WORDS'] = True
    response = client.get('/play/practice/hard', follow_redirects=True)
    assert b'There are no hard words to play yet' in response.data
    with app.app_context():
        assert GameSession.query.count() == 0


def test_api_evaluate(client):
    response = client.post('/api/evaluate', json={'answer': 'cat, c, a, t, x, cat', 'word': 'cat', 'mode': 'test'})
    assert response.status_code == 200
    data = response.get_json()
    assert data['result']['score'] == 90.0
    assert data['result']['points_earned'] == 4.5
    assert data['feedback'][0] == {'text': 'CAT', 'is_correct': True, 'part_type': 'start_word'}

    practice = client.post('/api/evaluate', json={'answer': 'dog, d, o, x, dog', 'word': 'dog'}).get_json()
    assert practice['result']['error_type'] == 'letters'
    assert practice['message'] == 'Almost, but not quite. Word: DOG. You spelled: DOX.'


def test_api_evaluate_rejects_bad_requests(client):
    assert client.post('/api/evaluate', json={'answer': 'cat, c, a, t, cat'}).status_code == 400
    assert client.post('/api/evaluate', json={'word': 'cat'}).status_code == 400
    assert client.post('/api/evaluate', json={'answer': 'x', 'word': 'cat', 'mode': 'exam'}).status_code == 400
    assert client.post('/api/evaluate', data='not json').status_code == 400


def test_tutor_panel_requires_pin(client):
    response = client.get('/tutor')
    assert response.status_code == 403
    assert b'Tutors only' in response.data
    assert client.post('/tutor/words', data={'text': 'zebra'}).status_code == 403


def test_tutor_login(client):
    response = login_tutor(client, '0000')
    assert b'Incorrect PIN' in response.data

    response = login_tutor(client)
    assert response.status_code == 200
    assert b'Tutor panel' in response.data
    assert b'elephant' in response.data

    client.post('/tutor/logout')
    assert client.get('/tutor').status_code == 403


def test_tutor_add_word(client):
    login_tutor(client)
    response = client.post('/tutor/words', data={
        'text': 'zebra',
        'difficulty_level': 'hard',
        'custom_translation': 'Cebra',
    }, follow_redirects=True)

    assert response.status_code == 200
    word = get_word('zebra')
    assert word.difficulty_level == 'hard'
    assert word.custom_translation == 'Cebra'


def test_tutor_add_word_validation(client):
    login_tutor(client)
    response = client.post('/tutor/words', data={'text': '  ', 'difficulty_level': 'easy'}, follow_redirects=True)
    assert b'The word cannot be empty.' in response.data

    response = client.post('/tutor/words', data={'text': 'zebra', 'difficulty_level': 'impossible'}, follow_redirects=True)
    assert b'Unsupported difficulty' in response.data
    assert get_word('zebra') is None


def test_tutor_toggle_and_delete_word(client):
    login_tutor(client)
    bicycle = get_word('bicycle')

    client.post(f'/tutor/words/{bicycle.id}/toggle-active')
    assert not get_word('bicycle').is_active

    client.post(f'/tutor/words/{bicycle.id}/delete')
    assert get_word('bicycle') is None

    response = client.post(f'/tutor/words/{bicycle.id}/delete', follow_redirects=True)
    assert b'Word not found.' in response.data


def test_tutor_update_word(client):
    login_tutor(client)
    bicycle = get_word('bicycle')

    client.post(f'/tutor/words/{bicycle.id}/update', data={
        'text': 'bicycle',
        'difficulty_level': 'medium',
        'custom_translation': 'Bici',
        'custom_sentence': '',
    })
    word = get_word('bicycle')
    assert word.difficulty_level == 'medium'
    assert word.custom_translation == 'Bici'
    assert word.custom_sentence is None

    response = client.post(f'/tutor/words/{bicycle.id}/update', data={'custom_image_url': 'ftp://example.com/b.png'},
                           follow_redirects=True)
    assert b'valid image URL' in response.data

    client.post(f'/tutor/words/{bicycle.id}/update', data={'custom_image_url': 'https://example.com/b.png'})
    assert get_word('bicycle').custom_image_url == 'https://example.com/b.png'


def test_tutor_image_upload(client):
    login_tutor(client)
    bicycle = get_word('bicycle')

    client.post(f'/tutor/words/{bicycle.id}/image', data={
        'image': (io.BytesIO(b'fake-png'), 'bicycle.png', 'image/png'),
    }, content_type='multipart/form-data')
    assert get_word('bicycle').custom_image_url.startswith('data:image/png;base64,')

    response = client.post(f'/tutor/words/{bicycle.id}/image', data={
        'image': (io.BytesIO(b'hello'), 'notes.txt', 'text/plain'),
    }, content_type='multipart/form-data', follow_redirects=True)
    assert b'Only image files can be uploaded.' in response.data


def test_tutor_generate_content(client):
    login_tutor(client)
    bicycle = get_word('bicycle')

    client.post(f'/tutor/words/{bicycle.id}/generate-image')
    assert get_word('bicycle').custom_image_url == 'https://placehold.co/600x400.png?text=Mock+bicycle'

    with patch('app.get_word_sentence', return_value='My bicycle is red.'):
        client.post(f'/tutor/words/{bicycle.id}/generate-sentence')
    assert get_word('bicycle').custom_sentence == 'My bicycle is red.'

    with patch('app.get_word_translation', return_value='Bicicleta roja'):
        client.post(f'/tutor/words/{bicycle.id}/generate-translation')
    assert get_word('bicycle').custom_translation == 'Bicicleta roja'


def test_tutor_generate_content_failures_keep_existing_values(client):
    login_tutor(client)
    bicycle = get_word('bicycle')

    with patch('app.get_word_sentence', return_value='Could not generate a sentence for bicycle.'):
        response = client.post(f'/tutor/words/{bicycle.id}/generate-sentence', follow_redirects=True)
    assert b'could not generate a sentence' in response.data
    assert get_word('bicycle').custom_sentence == 'I like to ride my bicycle.'

    with patch('app.get_word_translation', return_value='bicycle (translation error)'):
        client.post(f'/tutor/words/{bicycle.id}/generate-translation')
    assert get_word('bicycle').custom_translation == 'Bicicleta'

    app.config['USE_MOCK_IMAGES'] = False
    with patch('app.get_word_image', return_value='https://placehold.co/600x400.png?text=Error+bicycle'):
        response = client.post(f'/tutor/words/{bicycle.id}/generate-image', follow_redirects=True)
    assert b'could not generate an image' in response.data
    assert get_word('bicycle').custom_image_url is None


def test_tutor_csv_import_and_bulk_delete(client):
    login_tutor(client)
    response = client.post('/tutor/words/import', data={
        'csv_file': (io.BytesIO(b'zebra,hard,Cebra\nlion,easy\nelephant,medium\nowl\n'), 'words.csv'),
    }, content_type='multipart/form-data', follow_redirects=True)

    assert b'2 word(s) added from the CSV. 1 duplicate(s) skipped.' in response.data
    assert b'Line 4' in response.data

    ids = [str(get_word('zebra').id), str(get_word('lion').id)]
    response = client.post('/tutor/words/bulk-delete', data={'word_ids': ids}, follow_redirects=True)
    assert b'2 word(s) deleted.' in response.data
    assert get_word('zebra') is None and get_word('lion') is None


def test_tutor_change_pin(client):
    login_tutor(client)

    response = client.post('/tutor/pin', data={'new_pin': '12a4', 'confirm_pin': '12a4'}, follow_redirects=True)
    assert b'exactly 4 digits' in response.data

    response = client.post('/tutor/pin', data={'new_pin': '4321', 'confirm_pin': '4322'}, follow_redirects=True)
    assert b'The PINs do not match.' in response.data

    response = client.post('/tutor/pin', data={'new_pin': '4321', 'confirm_pin': '4321'}, follow_redirects=True)
    assert b'PIN updated successfully.' in response.data

    client.post('/tutor/logout')
    assert b'Incorrect PIN' in login_tutor(client).data
    assert b'Welcome to the tutor panel.' in login_tutor(client, '4321').data


def test_tutor_statistics(client):
    game_id = start_game(client, 'test')
    words = get_game(game_id)['words']
    client.post(f'/game/{game_id}/answer', data={'answer': spelled(words[0])})
    client.post(f'/game/{game_id}/answer', data={'answer': spelled(words[1])})
    client.post(f'/game/{game_id}/answer', data={'answer': f'{words[2]}, x, {words[2]}'})

    login_tutor(client)
    response = client.get('/tutor')
    assert words[2].encode() in response.data
    assert b'Overall test average' in response.data

    response = client.get('/tutor/statistics/export')
    assert response.mimetype == 'text/csv'
    assert 'attachment' in response.headers['Content-Disposition']
    assert len(response.get_data(as_text=True).splitlines()) == 4

    response = client.post('/tutor/statistics/clear', follow_redirects=True)
    assert b'3 attempts removed' in response.data
    assert b'No test attempts yet' in response.data


def test_settings(client):
    response = client.get('/settings')
    assert response.status_code == 200
    # Two active seed words, so the limit stays at the minimum of three.
    assert b'3 to 3' in response.data

    response = client.post('/settings', data={'words_per_game': '4', 'theme': 'dark'}, follow_redirects=True)
    assert b'Words per game must be between 3 and 3.' in response.data

    response = client.post('/settings', data={'words_per_game': '3', 'theme': 'dark'}, follow_redirects=True)
    assert b'Settings updated successfully!' in response.data
    assert b'data-theme="dark"' in response.data
    with client.session_transaction() as sess:
        assert sess['words_per_game'] == 3
        assert sess['theme_preference'] == 'dark'


def test_settings_rejects_unknown_theme(client):
    response = client.post('/settings', data={'words_per_game': '3', 'theme': 'neon'}, follow_redirects=True)
    assert b'Unknown theme.' in response.data


def test_health_check(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'healthy'
