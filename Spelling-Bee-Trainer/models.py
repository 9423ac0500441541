import csv
import io
import logging
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import validates
from sqlalchemy.sql import expression
from werkzeug.security import generate_password_hash, check_password_hash

from spelling_logic import DIFFICULTY_LEVELS, GAME_MODES, round_one_decimal

db = SQLAlchemy()

logger = logging.getLogger(__name__)

TUTOR_PIN_KEY = 'tutor_pin_hash'
WORD_SOURCES = ('admin', 'ai')


class Word(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    text = db.Column(db.String(100), nullable=False)
    difficulty_level = db.Column(
        db.Enum(*DIFFICULTY_LEVELS, name='difficulty_levels'),
        nullable=False,
        default='easy',
        server_default='easy'
    )
    custom_image_url = db.Column(db.Text, nullable=True)  # URL or data URI
    custom_sentence = db.Column(db.Text, nullable=True)
    custom_translation = db.Column(db.String(200), nullable=True)
    source = db.Column(db.String(20), nullable=False, default='admin')
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default=expression.true())
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    @validates('text')
    def validate_text(self, key, value):
        value = (value or '').strip()
        if not value:
            raise ValueError('Word text is required.')
        return value

    @validates('difficulty_level')
    def validate_difficulty(self, key, value):
        if value not in DIFFICULTY_LEVELS:
            raise ValueError(f"Unsupported difficulty '{value}'.")
        return value

    @validates('source')
    def validate_source(self, key, value):
        if value not in WORD_SOURCES:
            raise ValueError(f"Unsupported word source '{value}'.")
        return value

    def to_game_word(self):
        """Snapshot used by a game session."""
        return {
            'id': self.id,
            'text': self.text,
            'difficulty': self.difficulty_level,
            'custom_image_url': self.custom_image_url,
            'custom_sentence': self.custom_sentence,
            'custom_translation': self.custom_translation,
            'is_active': bool(self.is_active),
        }


class GameSession(db.Model):
    __tablename__ = 'game_session'

    id = db.Column(db.Integer, primary_key=True)
    mode = db.Column(db.Enum(*GAME_MODES, name='game_modes'), nullable=False)
    difficulty = db.Column(db.Enum(*DIFFICULTY_LEVELS, name='game_difficulty_levels'), nullable=False)
    words = db.Column(db.JSON, nullable=False, default=list)
    current_index = db.Column(db.Integer, nullable=False, default=0)
    started_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    completed_at = db.Column(db.DateTime, nullable=True)

    attempts = db.relationship(
        'SpellingAttempt',
        backref='game_session',
        lazy='dynamic',
        order_by='SpellingAttempt.id'
    )

    @property
    def is_finished(self):
        return self.completed_at is not None

    @property
    def current_word(self):
        if self.is_finished or not self.words or self.current_index >= len(self.words):
            return None
        return self.words[self.current_index]

    @property
    def is_last_word(self):
        return self.current_index >= len(self.words or []) - 1

    def update_current_word(self, **changes):
        """Replace the current word snapshot; JSON columns need a new list to be saved."""
        words = [dict(w) for w in (self.words or [])]
        words[self.current_index].update(changes)
        self.words = words


class SpellingAttempt(db.Model):
    __tablename__ = 'spelling_attempt'

    id = db.Column(db.Integer, primary_key=True)
    game_session_id = db.Column(db.Integer, db.ForeignKey('game_session.id'), nullable=True)
    word_id = db.Column(db.Integer, nullable=True)  # mock and AI words have no Word row
    word_text = db.Column(db.String(100), nullable=False)
    raw_answer = db.Column(db.Text, nullable=False, default='')
    is_correct = db.Column(db.Boolean, nullable=False, default=False)
    score = db.Column(db.Float, nullable=False, default=0)
    mode = db.Column(db.Enum(*GAME_MODES, name='attempt_modes'), nullable=False)
    difficulty = db.Column(db.Enum(*DIFFICULTY_LEVELS, name='attempt_difficulty_levels'), nullable=False)
    valid_format = db.Column(db.Boolean, nullable=False, default=False)
    start_token = db.Column(db.String(200), nullable=True)
    letter_tokens = db.Column(db.JSON, nullable=True)
    end_token = db.Column(db.String(200), nullable=True)
    error_type = db.Column(db.String(20), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    recorded_at = db.Column(db.DateTime, nullable=True)  # set once the session is saved for statistics

    @validates('score')
    def validate_score(self, key, value):
        if value is None:
            raise ValueError('Score is required.')
        if not (0 <= float(value) <= 100):
            raise ValueError('Score must be between 0 and 100.')
        return value

    # Attribute names shared with spelling_logic.EvaluationResult so stored
    # attempts can be rendered by build_display_feedback.
    @property
    def target_word(self):
        return self.word_text


class AppSetting(db.Model):
    __tablename__ = 'app_setting'

    key = db.Column(db.String(50), primary_key=True)
    value = db.Column(db.String(255), nullable=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ---------------------------------------------------------------- words

def get_words(difficulty=None, active_only=False):
    q = Word.query.order_by(Word.created_at.desc(), Word.id.desc())
    if difficulty:
        q = q.filter(Word.difficulty_level == difficulty)
    if active_only:
        q = q.filter(Word.is_active.is_(True))
    return q.all()


def count_active_words():
    return Word.query.filter(Word.is_active.is_(True)).count()


def add_word(text, difficulty_level, custom_sentence=None, custom_translation=None, custom_image_url=None, source='admin'):
    word = Word(
        text=text,
        difficulty_level=difficulty_level,
        custom_sentence=(custom_sentence or '').strip() or None,
        custom_translation=(custom_translation or '').strip() or None,
        custom_image_url=(custom_image_url or '').strip() or None,
        source=source,
        is_active=True
    )
    db.session.add(word)
    db.session.commit()
    logger.info("Added word %s (%s)", word.text, word.difficulty_level)
    return word


UPDATABLE_WORD_FIELDS = ('text', 'difficulty_level', 'is_active', 'custom_image_url', 'custom_sentence', 'custom_translation')


def update_word(word_id, **updates):
    """Apply a partial update. Returns the word, or None if it does not exist."""
    word = db.session.get(Word, word_id)
    if word is None:
        logger.warning("Word not found for update: %s", word_id)
        return None
    for key, value in updates.items():
        if key not in UPDATABLE_WORD_FIELDS:
            raise ValueError(f"Field '{key}' cannot be updated.")
        if isinstance(value, str) and key.startswith('custom_'):
            value = value.strip() or None
        setattr(word, key, value)
    db.session.commit()
    logger.info("Updated word %s", word.id)
    return word


def set_word_image(word_id, image_url):
    word = update_word(word_id, custom_image_url=image_url)
    if word is None:
        return None
    return {'custom_image_url': word.custom_image_url}


def delete_word(word_id):
    word = db.session.get(Word, word_id)
    if word is None:
        logger.warning("Word not found for deletion: %s", word_id)
        return False
    db.session.delete(word)
    db.session.commit()
    logger.info("Deleted word %s", word_id)
    return True


def import_words_from_csv(csv_text):
    """Add words from ``word,difficulty[,translation[,sentence[,image_url]]]`` rows.

    Words already stored, or repeated in the file, are skipped ignoring case.
    Bad rows are reported and skipped; the good ones are still added.

    Returns ``(added_words, skipped_duplicates, errors)``.
    """
    existing = {w.text.lower() for w in Word.query.all()}
    added = []
    skipped = 0
    errors = []

    reader = csv.reader(io.StringIO(csv_text))
    for row in reader:
        items = [item.strip() for item in row]
        if not any(items):
            continue
        line_number = reader.line_num
        if not 2 <= len(items) <= 5:
            errors.append(f"Line {line_number}: expected 2 to 5 fields, found {len(items)}.")
            continue

        text, difficulty = items[0], items[1].lower()
        if not text:
            errors.append(f"Line {line_number}: the word is empty.")
            continue
        if difficulty not in DIFFICULTY_LEVELS:
            errors.append(f"Line {line_number}: invalid difficulty '{items[1]}' for '{text}'. Use easy, medium or hard.")
            continue
        if text.lower() in existing:
            skipped += 1
            continue

        existing.add(text.lower())
        extras = items[2:] + [''] * (5 - len(items))
        word = Word(
            text=text,
            difficulty_level=difficulty,
            custom_translation=extras[0] or None,
            custom_sentence=extras[1] or None,
            custom_image_url=extras[2] or None,
            source='admin',
            is_active=True
        )
        db.session.add(word)
        added.append(word)

    if added:
        db.session.commit()
    logger.info("CSV import: %d added, %d duplicates, %d errors", len(added), skipped, len(errors))
    return added, skipped, errors


def create_sample_words():
    """Seed the word store the first time the app starts."""
    if Word.query.first():
        return
    sample_words = [
        {
            'text': 'elephant',
            'difficulty_level': 'medium',
            'custom_image_url': 'https://placehold.co/600x400.png?text=Custom+Elephant',
            'custom_sentence': 'An elephant is a very large animal.',
            'custom_translation': 'Elefante',
        },
        {
            'text': 'bicycle',
            'difficulty_level': 'easy',
            'custom_sentence': 'I like to ride my bicycle.',
            'custom_translation': 'Bicicleta',
        },
        {
            'text': 'query',
            'difficulty_level': 'hard',
            'is_active': False,
        },
    ]
    for data in sample_words:
        db.session.add(Word(source='admin', **data))
    db.session.commit()


# ---------------------------------------------------------------- attempts & statistics

def save_attempt(game, word, result):
    """Store one evaluated answer as part of a game session."""
    attempt = SpellingAttempt(
        game_session_id=game.id if game is not None else None,
        word_id=word.get('id') if isinstance(word.get('id'), int) else None,
        word_text=word['text'],
        raw_answer=result.raw_answer,
        is_correct=bool(result.is_correct),
        score=result.score,
        mode=result.mode,
        difficulty=word.get('difficulty') or (game.difficulty if game is not None else 'easy'),
        valid_format=result.valid_format,
        start_token=result.start_token,
        letter_tokens=list(result.letter_tokens),
        end_token=result.end_token,
        error_type=result.error_type,
    )
    db.session.add(attempt)
    db.session.commit()
    return attempt


def record_game_session(game, completed_at=None):
    """Finish a game and stamp its attempts for the statistics view.

    Returns the number of attempts recorded.
    """
    completed_at = completed_at or datetime.utcnow()
    game.completed_at = completed_at
    attempts = game.attempts.all()
    for attempt in attempts:
        attempt.mode = game.mode
        attempt.difficulty = game.difficulty
        attempt.recorded_at = completed_at
    db.session.commit()
    logger.info(
        "Recorded %d attempts. Total stored: %d",
        len(attempts),
        SpellingAttempt.query.filter(SpellingAttempt.recorded_at.isnot(None)).count()
    )
    return len(attempts)


def get_recorded_attempts():
    return (SpellingAttempt.query
            .filter(SpellingAttempt.recorded_at.isnot(None))
            .order_by(SpellingAttempt.recorded_at.desc(), SpellingAttempt.id.asc())
            .all())


def get_aggregated_word_stats():
    """Per word/difficulty success rates plus the overall test-mode average.

    Words are grouped on their trimmed text, so ``" cat"`` and ``"cat"`` share
    a row. The hardest words (lowest success rate) come first.
    """
    stats = {}
    test_score_sum = 0.0
    test_attempt_count = 0

    for attempt in get_recorded_attempts():
        word_text = attempt.word_text.strip()
        key = (word_text, attempt.difficulty)
        entry = stats.setdefault(key, {
            'word_text': word_text,
            'difficulty': attempt.difficulty,
            'total_attempts': 0,
            'correct_attempts': 0,
            'sum_of_percentage_scores_in_test': 0.0,
            'test_mode_attempts_count': 0,
        })
        entry['total_attempts'] += 1
        if attempt.is_correct:
            entry['correct_attempts'] += 1
        if attempt.mode == 'test':
            entry['sum_of_percentage_scores_in_test'] += attempt.score
            entry['test_mode_attempts_count'] += 1
            test_score_sum += attempt.score
            test_attempt_count += 1

    word_stats = []
    for entry in stats.values():
        total = entry['total_attempts']
        tests = entry['test_mode_attempts_count']
        entry['incorrect_attempts'] = total - entry['correct_attempts']
        entry['success_rate'] = round_one_decimal(entry['correct_attempts'] / total * 100) if total else 0
        entry['average_percentage_score_in_test'] = (
            round_one_decimal(entry['sum_of_percentage_scores_in_test'] / tests) if tests else 0
        )
        word_stats.append(entry)

    word_stats.sort(key=lambda s: (s['success_rate'], -s['incorrect_attempts'], -s['total_attempts']))

    overall = round_one_decimal(test_score_sum / test_attempt_count) if test_attempt_count else None
    return {'word_stats': word_stats, 'overall_average_test_score': overall}


def clear_all_game_attempts():
    deleted = SpellingAttempt.query.filter(
        SpellingAttempt.recorded_at.isnot(None)
    ).delete(synchronize_session=False)
    db.session.commit()
    logger.info("Cleared %d recorded attempts", deleted)
    return deleted


def export_attempts_to_csv():
    """Recorded attempts as CSV text."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(['Word', 'Difficulty', 'Mode', 'Answer', 'Valid Format', 'Correct', 'Score', 'Recorded At'])
    for a in get_recorded_attempts():
        writer.writerow([
            a.word_text,
            a.difficulty,
            a.mode,
            a.raw_answer,
            'Yes' if a.valid_format else 'No',
            'Yes' if a.is_correct else 'No',
            a.score,
            a.recorded_at.isoformat(),
        ])
    return buffer.getvalue()


# ---------------------------------------------------------------- tutor PIN

def set_tutor_pin(pin):
    setting = db.session.get(AppSetting, TUTOR_PIN_KEY)
    if setting is None:
        setting = AppSetting(key=TUTOR_PIN_KEY)
        db.session.add(setting)
    setting.value = generate_password_hash(pin)
    db.session.commit()


def check_tutor_pin(pin):
    setting = db.session.get(AppSetting, TUTOR_PIN_KEY)
    if setting is None or not setting.value:
        return False
    return check_password_hash(setting.value, pin or '')


def ensure_tutor_pin(default_pin):
    """Store the configured PIN unless one has already been set."""
    if db.session.get(AppSetting, TUTOR_PIN_KEY) is None:
        set_tutor_pin(default_pin)
