# Standard library imports
import logging
import os
import re

# Third-party imports
from dotenv import load_dotenv
from flask import Flask, render_template, request, redirect, url_for, session, flash, abort, jsonify, Response
from sqlalchemy.exc import SQLAlchemyError

# Local imports
from models import (
    db,
    Word,
    GameSession,
    get_words,
    count_active_words,
    add_word,
    update_word,
    set_word_image,
    delete_word,
    import_words_from_csv,
    create_sample_words,
    save_attempt,
    record_game_session,
    get_aggregated_word_stats,
    clear_all_game_attempts,
    export_attempts_to_csv,
    set_tutor_pin,
    check_tutor_pin,
    ensure_tutor_pin,
)
from spelling_logic import (
    DIFFICULTY_LEVELS,
    GAME_MODES,
    evaluate_answer,
    build_display_feedback,
    feedback_message,
    round_one_decimal,
)
from word_content import (
    SENTENCE_FALLBACK,
    get_spelling_words,
    get_word_image,
    get_word_translation,
    get_word_sentence,
    get_translated_sentence,
    is_placeholder_image,
    is_failed_image,
    is_translation_fallback,
    encode_image_upload,
)
from utils.roles import TUTOR_SESSION_KEY, is_tutor, tutor_required

load_dotenv()


def _env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


# Initialize Flask app
app = Flask(__name__)

# Configuration
app.secret_key = os.environ.get('SECRET_KEY', 'devkey')

# Database configuration; the default store lives only as long as the process
app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', 'sqlite:///:memory:')
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

# Game configuration
app.config['TUTOR_PIN'] = os.environ.get('TUTOR_PIN', '0000')
app.config['USE_ADMIN_WORDS'] = _env_flag('USE_ADMIN_WORDS')
app.config['USE_MOCK_WORDS'] = _env_flag('USE_MOCK_WORDS')
app.config['USE_MOCK_IMAGES'] = _env_flag('USE_MOCK_IMAGES')
app.config['TRANSLATION_LANGUAGE'] = os.environ.get('TRANSLATION_LANGUAGE', 'es')
app.config['MAX_IMAGE_UPLOAD_BYTES'] = 2 * 1024 * 1024

# Initialize extensions
db.init_app(app)

DEFAULT_WORDS_PER_GAME = 5
MIN_WORDS_PER_GAME = 3
MAX_WORDS_PER_GAME = 20
THEMES = ('light', 'dark', 'system')
PIN_PATTERN = re.compile(r'^\d{4}$')
SUCCESS_THRESHOLD = 70


def _normalize_difficulty(difficulty: str) -> str:
    """Return a sanitized difficulty value or abort if unsupported."""
    normalized = (difficulty or "medium").lower()
    if normalized not in DIFFICULTY_LEVELS:
        abort(404)
    return normalized


def _normalize_mode(mode: str) -> str:
    normalized = (mode or "").lower()
    if normalized not in GAME_MODES:
        abort(404)
    return normalized


def _words_per_game_limit() -> int:
    """Upper bound for the words-per-game setting."""
    return max(MIN_WORDS_PER_GAME, min(count_active_words(), MAX_WORDS_PER_GAME))


def _words_per_game() -> int:
    return session.get('words_per_game', DEFAULT_WORDS_PER_GAME)


def _get_game_or_404(game_id):
    game = db.session.get(GameSession, game_id)
    if game is None:
        abort(404)
    return game


def _advance(game):
    """Move to the next word, or finish and record the game after the last one."""
    if game.is_last_word:
        record_game_session(game)
        return redirect(url_for('game_summary', game_id=game.id))
    game.current_index += 1
    db.session.commit()
    return redirect(url_for('play_game', game_id=game.id))


def _resolve_word_image(game, word):
    """Image for the current word, generating and caching one when needed."""
    if word.get('custom_image_url'):
        return word['custom_image_url']
    if word.get('image_url'):
        return word['image_url']

    image_url = get_word_image(word['text'], use_mock_images=app.config['USE_MOCK_IMAGES'])
    game.update_current_word(image_url=image_url)
    db.session.commit()
    if word.get('id') and not is_placeholder_image(image_url):
        update_word(word['id'], custom_image_url=image_url)
    return image_url


def _render_game(game, feedback=None, message=None, answer=''):
    word = game.current_word
    return render_template(
        'play.html',
        game=game,
        word=word,
        image_url=_resolve_word_image(game, word),
        position=game.current_index + 1,
        total=len(game.words),
        feedback=feedback,
        message=message,
        answer=answer
    )


def _game_summary(game):
    attempts = game.attempts.all()
    total_words = len(game.words or [])
    average_score = None
    correct_count = sum(1 for a in attempts if a.is_correct)
    if game.mode == 'test':
        average_score = round_one_decimal(sum(a.score for a in attempts) / len(attempts)) if attempts else 0.0
        is_success = average_score >= SUCCESS_THRESHOLD
    else:
        is_success = total_words > 0 and correct_count / total_words >= SUCCESS_THRESHOLD / 100
    return {
        'attempts': [(a, build_display_feedback(a)) for a in attempts],
        'total_words': total_words,
        'average_score': average_score,
        'correct_count': correct_count,
        'is_success': is_success,
    }


def validate_configuration():
    """Validate critical configuration settings."""
    required_configs = [
        ('SECRET_KEY', app.secret_key),
        ('SQLALCHEMY_DATABASE_URI', app.config['SQLALCHEMY_DATABASE_URI']),
        ('TUTOR_PIN', app.config['TUTOR_PIN'])
    ]

    missing_configs = [
        key for key, value in required_configs
        if not value or (key == 'SECRET_KEY' and value == 'devkey') or (key == 'TUTOR_PIN' and value == '0000')
    ]

    if missing_configs:
        app.logger.warning("Missing or default configuration for: %s", ', '.join(missing_configs))
        app.logger.warning("Please set these environment variables for production use.")

    if not os.environ.get('OPENAI_API_KEY') and not (app.config['USE_ADMIN_WORDS'] or app.config['USE_MOCK_WORDS']):
        app.logger.warning("OPENAI_API_KEY is not set; AI content will use fallbacks.")


def initialize_database():
    """Create the tables and seed the word store and tutor PIN."""
    try:
        with app.app_context():
            db.create_all()
            create_sample_words()
            ensure_tutor_pin(app.config['TUTOR_PIN'])
            app.logger.info("Database initialized successfully!")
    except SQLAlchemyError as e:
        app.logger.error("Database initialization error: %s", e)
        raise


# Validate configuration
validate_configuration()

# Initialize database with error handling
initialize_database()


@app.context_processor
def inject_preferences():
    return {
        'theme': session.get('theme_preference', 'system'),
        'is_tutor': is_tutor(),
    }


# ---------------------------------------------------------------- game

@app.route('/')
def index():
    return render_template(
        'index.html',
        modes=GAME_MODES,
        difficulties=DIFFICULTY_LEVELS,
        words_per_game=_words_per_game()
    )


@app.route('/play/<mode>/<difficulty>')
def start_game(mode, difficulty):
    mode = _normalize_mode(mode)
    difficulty = _normalize_difficulty(difficulty)
    try:
        words = get_spelling_words(
            difficulty,
            _words_per_game(),
            use_admin_words=app.config['USE_ADMIN_WORDS'],
            use_mock_words=app.config['USE_MOCK_WORDS']
        )
        if not words:
            flash(f'There are no {difficulty} words to play yet. Ask your tutor to add some.')
            return redirect(url_for('index'))

        game = GameSession(mode=mode, difficulty=difficulty, words=words, current_index=0)
        db.session.add(game)
        db.session.commit()
        app.logger.info("Started %s game %s with %d %s words", mode, game.id, len(words), difficulty)
        return redirect(url_for('play_game', game_id=game.id))
    except Exception as e:
        db.session.rollback()
        app.logger.error("Start game error: %s", e)
        flash('An error occurred starting the game. Please try again.')
        return redirect(url_for('index'))


@app.route('/game/<int:game_id>')
def play_game(game_id):
    game = _get_game_or_404(game_id)
    if game.is_finished:
        return redirect(url_for('game_summary', game_id=game.id))
    try:
        return _render_game(game)
    except Exception as e:
        db.session.rollback()
        app.logger.error("Game page error: %s", e)
        flash('An error occurred loading the game.')
        return redirect(url_for('index'))


@app.route('/game/<int:game_id>/answer', methods=['POST'])
def submit_answer(game_id):
    game = _get_game_or_404(game_id)
    if game.is_finished:
        return redirect(url_for('game_summary', game_id=game.id))
    try:
        word = game.current_word
        answer = request.form.get('answer', '')
        result = evaluate_answer(answer, word['text'], game.mode)
        save_attempt(game, word, result)

        if game.mode == 'test':
            return _advance(game)

        if result.is_correct:
            flash(feedback_message(result))
            return _advance(game)

        return _render_game(
            game,
            feedback=build_display_feedback(result),
            message=feedback_message(result),
            answer=answer
        )
    except Exception as e:
        db.session.rollback()
        app.logger.error("Submit answer error: %s", e)
        flash('An error occurred checking your answer. Please try again.')
        return redirect(url_for('play_game', game_id=game_id))


@app.route('/game/<int:game_id>/next', methods=['POST'])
def next_word(game_id):
    game = _get_game_or_404(game_id)
    if game.is_finished:
        return redirect(url_for('game_summary', game_id=game.id))
    if game.mode != 'practice':
        flash('Skipping words is only available in practice mode.')
        return redirect(url_for('play_game', game_id=game.id))
    try:
        return _advance(game)
    except Exception as e:
        db.session.rollback()
        app.logger.error("Next word error: %s", e)
        flash('Unable to move to the next word.')
        return redirect(url_for('play_game', game_id=game_id))


@app.route('/game/<int:game_id>/previous', methods=['POST'])
def previous_word(game_id):
    game = _get_game_or_404(game_id)
    if game.is_finished:
        return redirect(url_for('game_summary', game_id=game.id))
    if game.mode != 'practice':
        flash('Going back is only available in practice mode.')
        return redirect(url_for('play_game', game_id=game.id))
    try:
        if game.current_index > 0:
            game.current_index -= 1
            db.session.commit()
    except Exception as e:
        db.session.rollback()
        app.logger.error("Previous word error: %s", e)
        flash('Unable to go back to the previous word.')
    return redirect(url_for('play_game', game_id=game_id))


@app.route('/game/<int:game_id>/summary')
def game_summary(game_id):
    game = _get_game_or_404(game_id)
    if not game.is_finished:
        return redirect(url_for('play_game', game_id=game.id))
    try:
        return render_template('summary.html', game=game, **_game_summary(game))
    except Exception as e:
        app.logger.error("Game summary error: %s", e)
        flash('An error occurred loading the results.')
        return redirect(url_for('index'))


@app.route('/game/<int:game_id>/translation')
def word_translation(game_id):
    game = _get_game_or_404(game_id)
    if game.mode != 'practice':
        return jsonify({'error': 'Translations are only available in practice mode.'}), 403
    word = game.current_word
    if word is None:
        return jsonify({'error': 'The game is finished.'}), 400

    translation = word.get('custom_translation') or get_word_translation(
        word['text'], app.config['TRANSLATION_LANGUAGE']
    )
    return jsonify({'word': word['text'], 'translation': translation.upper()})


@app.route('/game/<int:game_id>/sentence')
def word_sentence(game_id):
    game = _get_game_or_404(game_id)
    word = game.current_word
    if word is None:
        return jsonify({'error': 'The game is finished.'}), 400
    try:
        sentence = word.get('custom_sentence')
        if not sentence:
            sentence = get_word_sentence(word['text'])
            if sentence != SENTENCE_FALLBACK.format(word=word['text']):
                game.update_current_word(custom_sentence=sentence)
                db.session.commit()
                if word.get('id'):
                    update_word(word['id'], custom_sentence=sentence)

        translated = get_translated_sentence(sentence, app.config['TRANSLATION_LANGUAGE'])
        return jsonify({'word': word['text'], 'sentence': sentence, 'translated_sentence': translated})
    except Exception as e:
        db.session.rollback()
        app.logger.error("Sentence error: %s", e)
        return jsonify({'error': 'Unable to load a sentence for this word.'}), 500


@app.route('/api/evaluate', methods=['POST'])
def api_evaluate():
    """Score one answer without a game: ``{answer, word, mode}``."""
    data = request.get_json(silent=True) or {}
    answer = data.get('answer')
    word = data.get('word')
    mode = data.get('mode', 'practice')

    if not isinstance(answer, str) or not isinstance(word, str) or not word.strip():
        return jsonify({'error': "Both 'answer' and 'word' are required."}), 400
    try:
        result = evaluate_answer(answer, word, mode)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({
        'result': result.to_dict(),
        'feedback': [part.to_dict() for part in build_display_feedback(result)],
        'message': feedback_message(result),
    })


# ---------------------------------------------------------------- tutor

@app.route('/tutor/login', methods=['GET', 'POST'])
def tutor_login():
    if request.method == 'POST':
        try:
            pin = request.form.get('pin', '').strip()
            if check_tutor_pin(pin):
                session[TUTOR_SESSION_KEY] = True
                flash('Welcome to the tutor panel.')
                return redirect(url_for('tutor_dashboard'))
            flash('Incorrect PIN. Please try again.')
        except Exception as e:
            app.logger.error("Tutor login error: %s", e)
            flash('An error occurred during login. Please try again.')
    return render_template('tutor_login.html')


@app.route('/tutor/logout', methods=['POST'])
def tutor_logout():
    session.pop(TUTOR_SESSION_KEY, None)
    flash('You have left the tutor panel.')
    return redirect(url_for('index'))


@app.route('/tutor')
@tutor_required
def tutor_dashboard():
    try:
        difficulty = request.args.get('difficulty', '').strip().lower()
        if difficulty not in DIFFICULTY_LEVELS:
            difficulty = ''
        words = get_words(difficulty=difficulty or None)
        stats = get_aggregated_word_stats()
        return render_template(
            'tutor_dashboard.html',
            words=words,
            difficulty=difficulty,
            difficulties=DIFFICULTY_LEVELS,
            word_stats=stats['word_stats'],
            overall_average_test_score=stats['overall_average_test_score']
        )
    except Exception as e:
        app.logger.error("Tutor dashboard error: %s", e)
        flash('An error occurred loading the tutor panel.')
        return redirect(url_for('index'))


@app.route('/tutor/words', methods=['POST'])
@tutor_required
def tutor_add_word():
    try:
        text = request.form.get('text', '').strip()
        if not text:
            flash('The word cannot be empty.')
            return redirect(url_for('tutor_dashboard'))

        word = add_word(
            text,
            request.form.get('difficulty_level', 'easy').strip().lower(),
            custom_sentence=request.form.get('custom_sentence'),
            custom_translation=request.form.get('custom_translation')
        )
        flash(f'Added "{word.text}".')
    except ValueError as e:
        db.session.rollback()
        flash(str(e))
    except Exception as e:
        db.session.rollback()
        app.logger.error("Add word error: %s", e)
        flash('Unable to add the word.')
    return redirect(url_for('tutor_dashboard'))


@app.route('/tutor/words/import', methods=['POST'])
@tutor_required
def tutor_import_words():
    try:
        upload = request.files.get('csv_file')
        if upload is None or not upload.filename:
            flash('Please choose a CSV file to upload.')
            return redirect(url_for('tutor_dashboard'))

        content = upload.read().decode('utf-8-sig')
        if not content.strip():
            flash('The CSV file is empty.')
            return redirect(url_for('tutor_dashboard'))

        added, skipped, errors = import_words_from_csv(content)
        for error in errors[:5]:
            flash(error)
        if len(errors) > 5:
            flash(f'And {len(errors) - 5} more format errors.')
        flash(f'{len(added)} word(s) added from the CSV. {skipped} duplicate(s) skipped.')
    except UnicodeDecodeError:
        flash('The CSV file must be UTF-8 text.')
    except Exception as e:
        db.session.rollback()
        app.logger.error("CSV import error: %s", e)
        flash('Unable to import words from the CSV file.')
    return redirect(url_for('tutor_dashboard'))


@app.route('/tutor/words/bulk-delete', methods=['POST'])
@tutor_required
def tutor_bulk_delete_words():
    word_ids = request.form.getlist('word_ids', type=int)
    if not word_ids:
        flash('Please select at least one word to delete.')
        return redirect(url_for('tutor_dashboard'))

    deleted = 0
    failed = 0
    for word_id in word_ids:
        try:
            if delete_word(word_id):
                deleted += 1
            else:
                failed += 1
        except Exception as e:
            db.session.rollback()
            app.logger.error("Bulk delete error for word %s: %s", word_id, e)
            failed += 1

    if deleted:
        flash(f'{deleted} word(s) deleted.')
    if failed:
        flash(f'{failed} word(s) could not be deleted.')
    return redirect(url_for('tutor_dashboard'))


@app.route('/tutor/words/<int:word_id>/update', methods=['POST'])
@tutor_required
def tutor_update_word(word_id):
    try:
        updates = {}
        for field in ('text', 'difficulty_level', 'custom_sentence', 'custom_translation'):
            if field in request.form:
                updates[field] = request.form.get(field, '').strip()
        if 'difficulty_level' in updates:
            updates['difficulty_level'] = updates['difficulty_level'].lower()

        image_url = request.form.get('custom_image_url', '').strip()
        if image_url:
            if not image_url.startswith(('http://', 'https://')):
                flash('Please enter a valid image URL (http:// or https://).')
                return redirect(url_for('tutor_dashboard'))
            updates['custom_image_url'] = image_url

        word = update_word(word_id, **updates)
        if word is None:
            flash('Word not found.')
        else:
            flash(f'Updated "{word.text}".')
    except ValueError as e:
        db.session.rollback()
        flash(str(e))
    except Exception as e:
        db.session.rollback()
        app.logger.error("Update word error: %s", e)
        flash('Unable to update the word.')
    return redirect(url_for('tutor_dashboard'))


@app.route('/tutor/words/<int:word_id>/toggle-active', methods=['POST'])
@tutor_required
def tutor_toggle_word_active(word_id):
    try:
        word = db.session.get(Word, word_id)
        if not word:
            flash('Word not found.')
            return redirect(url_for('tutor_dashboard'))

        word = update_word(word_id, is_active=not bool(word.is_active))
        flash(f'"{word.text}" is now {"active" if word.is_active else "inactive"}.')
    except Exception as e:
        db.session.rollback()
        app.logger.error("Toggle word error: %s", e)
        flash('Unable to update the word status.')
    return redirect(url_for('tutor_dashboard'))


@app.route('/tutor/words/<int:word_id>/delete', methods=['POST'])
@tutor_required
def tutor_delete_word(word_id):
    try:
        if delete_word(word_id):
            flash('Word deleted.')
        else:
            flash('Word not found.')
    except Exception as e:
        db.session.rollback()
        app.logger.error("Delete word error: %s", e)
        flash('Unable to delete the word.')
    return redirect(url_for('tutor_dashboard'))


@app.route('/tutor/words/<int:word_id>/image', methods=['POST'])
@tutor_required
def tutor_upload_word_image(word_id):
    try:
        image_url = encode_image_upload(request.files.get('image'), app.config['MAX_IMAGE_UPLOAD_BYTES'])
        if set_word_image(word_id, image_url) is None:
            flash('Word not found.')
        else:
            flash('Image uploaded.')
    except ValueError as e:
        flash(str(e))
    except Exception as e:
        db.session.rollback()
        app.logger.error("Image upload error: %s", e)
        flash('Unable to process the image.')
    return redirect(url_for('tutor_dashboard'))


@app.route('/tutor/words/<int:word_id>/generate-image', methods=['POST'])
@tutor_required
def tutor_generate_word_image(word_id):
    try:
        word = db.session.get(Word, word_id)
        if not word:
            flash('Word not found.')
            return redirect(url_for('tutor_dashboard'))

        image_url = get_word_image(word.text, use_mock_images=app.config['USE_MOCK_IMAGES'])
        if is_failed_image(image_url):
            flash('The AI could not generate an image.')
        else:
            set_word_image(word_id, image_url)
            flash(f'AI image saved for "{word.text}".')
    except Exception as e:
        db.session.rollback()
        app.logger.error("Generate image error: %s", e)
        flash('Unable to save the AI image.')
    return redirect(url_for('tutor_dashboard'))


@app.route('/tutor/words/<int:word_id>/generate-sentence', methods=['POST'])
@tutor_required
def tutor_generate_word_sentence(word_id):
    try:
        word = db.session.get(Word, word_id)
        if not word:
            flash('Word not found.')
            return redirect(url_for('tutor_dashboard'))

        sentence = get_word_sentence(word.text)
        if sentence == SENTENCE_FALLBACK.format(word=word.text):
            flash('The AI could not generate a sentence.')
        else:
            update_word(word_id, custom_sentence=sentence)
            flash(f'AI sentence saved for "{word.text}".')
    except Exception as e:
        db.session.rollback()
        app.logger.error("Generate sentence error: %s", e)
        flash('Unable to save the AI sentence.')
    return redirect(url_for('tutor_dashboard'))


@app.route('/tutor/words/<int:word_id>/generate-translation', methods=['POST'])
@tutor_required
def tutor_generate_word_translation(word_id):
    try:
        word = db.session.get(Word, word_id)
        if not word:
            flash('Word not found.')
            return redirect(url_for('tutor_dashboard'))

        translation = get_word_translation(word.text, app.config['TRANSLATION_LANGUAGE'])
        if is_translation_fallback(translation):
            flash('The AI could not translate the word.')
        else:
            update_word(word_id, custom_translation=translation)
            flash(f'AI translation saved for "{word.text}".')
    except Exception as e:
        db.session.rollback()
        app.logger.error("Generate translation error: %s", e)
        flash('Unable to save the AI translation.')
    return redirect(url_for('tutor_dashboard'))


@app.route('/tutor/pin', methods=['POST'])
@tutor_required
def tutor_change_pin():
    try:
        new_pin = request.form.get('new_pin', '').strip()
        confirm_pin = request.form.get('confirm_pin', '').strip()
        if not PIN_PATTERN.match(new_pin):
            flash('The new PIN must be exactly 4 digits.')
        elif new_pin != confirm_pin:
            flash('The PINs do not match.')
        else:
            set_tutor_pin(new_pin)
            flash('PIN updated successfully.')
    except Exception as e:
        db.session.rollback()
        app.logger.error("Change PIN error: %s", e)
        flash('Unable to change the PIN.')
    return redirect(url_for('tutor_dashboard'))


@app.route('/tutor/statistics/clear', methods=['POST'])
@tutor_required
def tutor_clear_statistics():
    try:
        deleted = clear_all_game_attempts()
        flash(f'Statistics cleared ({deleted} attempts removed).')
    except Exception as e:
        db.session.rollback()
        app.logger.error("Clear statistics error: %s", e)
        flash('Unable to clear the statistics.')
    return redirect(url_for('tutor_dashboard'))


@app.route('/tutor/statistics/export')
@tutor_required
def tutor_export_statistics():
    try:
        return Response(
            export_attempts_to_csv(),
            mimetype='text/csv',
            headers={'Content-Disposition': 'attachment; filename=spelling_attempts.csv'}
        )
    except Exception as e:
        app.logger.error("Export statistics error: %s", e)
        flash('An error occurred during export.')
        return redirect(url_for('tutor_dashboard'))


# ---------------------------------------------------------------- settings & errors

@app.route('/settings', methods=['GET', 'POST'])
def settings():
    try:
        max_words = _words_per_game_limit()
        if request.method == 'POST':
            words_per_game = request.form.get('words_per_game', type=int)
            theme_preference = request.form.get('theme', 'system')

            if words_per_game is None or not MIN_WORDS_PER_GAME <= words_per_game <= max_words:
                flash(f'Words per game must be between {MIN_WORDS_PER_GAME} and {max_words}.')
                return redirect(url_for('settings'))
            if theme_preference not in THEMES:
                flash('Unknown theme.')
                return redirect(url_for('settings'))

            session['words_per_game'] = words_per_game
            session['theme_preference'] = theme_preference
            flash('Settings updated successfully!')
            return redirect(url_for('settings'))

        return render_template(
            'settings.html',
            words_per_game=_words_per_game(),
            min_words=MIN_WORDS_PER_GAME,
            max_words=max_words,
            themes=THEMES
        )
    except Exception as e:
        app.logger.error("Settings error: %s", e)
        flash('An error occurred updating settings.')
        return redirect(url_for('index'))


@app.errorhandler(500)
def internal_error(error):
    """Handle internal server errors gracefully."""
    db.session.rollback()
    app.logger.error("Internal server error: %s", error)
    flash('An unexpected error occurred. Please try again.')
    return redirect(url_for('index'))


@app.errorhandler(404)
def not_found_error(error):
    """Handle 404 errors."""
    return render_template('404.html'), 404


@app.route('/health')
def health_check():
    """Health check endpoint for monitoring."""
    try:
        db.session.execute(db.text('SELECT 1'))
        return {'status': 'healthy', 'database': 'connected'}, 200
    except Exception as e:
        return {'status': 'unhealthy', 'database': 'disconnected', 'error': str(e)}, 500


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    app.run(debug=True)
