"""Parsing and scoring of spelled answers.

Answers follow the spoken protocol ``WORD, L, E, T, T, E, R, WORD``: the word
is said, spelled letter by letter, then said again. Everything here is pure and
never raises for any answer string.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple

GAME_MODES = ("practice", "test")
DIFFICULTY_LEVELS = ("easy", "medium", "hard")

FIELD_SEPARATOR = ","
MIN_FIELDS = 3
MISSING_LETTER = "_"
EMPTY_ATTEMPT_TEXT = "Empty attempt"
OVERRUN_PENALTY = 0.5

# Straight and curly quotes left behind by speech-to-text.
QUOTE_PATTERN = re.compile(r"[\"'‘’“”]")

ERROR_FORMAT = "format"
ERROR_START_WORD = "start_word"
ERROR_LETTERS = "letters"
ERROR_END_WORD = "end_word"


@dataclass(frozen=True)
class ParsedAnswer:
    valid_format: bool
    start_token: str = ""
    letter_tokens: Tuple[str, ...] = ()
    end_token: str = ""
    concatenated_letters: str = ""


@dataclass(frozen=True)
class ComparisonOutcome:
    start_correct: bool
    end_correct: bool
    spelling_correct: bool
    letter_matches: Tuple[bool, ...]
    all_correct: bool
    error_type: Optional[str]


@dataclass(frozen=True)
class EvaluationResult:
    """Scored answer; carries enough of the parse to rebuild the feedback."""

    target_word: str
    raw_answer: str
    mode: str
    valid_format: bool
    is_correct: bool
    score: float
    start_token: str = ""
    letter_tokens: Tuple[str, ...] = ()
    end_token: str = ""
    all_correct: bool = False
    error_type: Optional[str] = None
    points_earned: Optional[float] = None
    max_points: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "target_word": self.target_word,
            "raw_answer": self.raw_answer,
            "mode": self.mode,
            "valid_format": self.valid_format,
            "is_correct": self.is_correct,
            "score": self.score,
            "start_token": self.start_token,
            "letter_tokens": list(self.letter_tokens),
            "end_token": self.end_token,
            "all_correct": self.all_correct,
            "error_type": self.error_type,
            "points_earned": self.points_earned,
            "max_points": self.max_points,
        }


@dataclass(frozen=True)
class FeedbackPart:
    text: str
    is_correct: bool
    part_type: str

    def to_dict(self) -> dict:
        return {"text": self.text, "is_correct": self.is_correct, "part_type": self.part_type}


def normalize_field(raw_field: str) -> str:
    """Trim, drop quote characters and uppercase a single answer field."""
    return QUOTE_PATTERN.sub("", raw_field.strip()).upper()


def normalize_target(target_word: str) -> str:
    return (target_word or "").strip().upper()


def parse_answer(raw_answer: str) -> ParsedAnswer:
    """Split a raw answer into start word, letter tokens and end word.

    Fewer than three comma-separated fields is a format error; anything else is
    structurally valid, however many letters it holds.
    """
    fields = [normalize_field(part) for part in (raw_answer or "").split(FIELD_SEPARATOR)]
    if len(fields) < MIN_FIELDS:
        return ParsedAnswer(valid_format=False)

    letters = tuple(fields[1:-1])
    return ParsedAnswer(
        valid_format=True,
        start_token=fields[0],
        letter_tokens=letters,
        end_token=fields[-1],
        concatenated_letters="".join(letters),
    )


def letter_token_matches(letter_tokens, target_upper: str) -> Tuple[bool, ...]:
    """Position-by-position check of tokens against target letters.

    A position counts only when the token is a single character equal to the
    target letter there. Missing tokens and surplus tokens are both misses.
    """
    length = max(len(letter_tokens), len(target_upper))
    matches = []
    for i in range(length):
        token = letter_tokens[i] if i < len(letter_tokens) else None
        target_letter = target_upper[i] if i < len(target_upper) else None
        matches.append(token is not None and len(token) == 1 and token == target_letter)
    return tuple(matches)


def compare_answer(parsed: ParsedAnswer, target_upper: str) -> ComparisonOutcome:
    if not parsed.valid_format:
        return ComparisonOutcome(
            start_correct=False,
            end_correct=False,
            spelling_correct=False,
            letter_matches=(),
            all_correct=False,
            error_type=ERROR_FORMAT,
        )

    start_correct = parsed.start_token == target_upper
    end_correct = parsed.end_token == target_upper
    # Whole-string check; fused tokens like "CA, T" still count as spelled right.
    spelling_correct = parsed.concatenated_letters == target_upper
    all_correct = start_correct and end_correct and spelling_correct

    error_type = None
    if not start_correct:
        error_type = ERROR_START_WORD
    elif not spelling_correct:
        error_type = ERROR_LETTERS
    elif not end_correct:
        error_type = ERROR_END_WORD

    return ComparisonOutcome(
        start_correct=start_correct,
        end_correct=end_correct,
        spelling_correct=spelling_correct,
        letter_matches=letter_token_matches(parsed.letter_tokens, target_upper),
        all_correct=all_correct,
        error_type=error_type,
    )


def score_practice(outcome: ComparisonOutcome) -> Tuple[float, bool]:
    """Practice mode is all or nothing."""
    if outcome.all_correct:
        return 100, True
    return 0, False


def round_one_decimal(value: float) -> float:
    return float(Decimal(repr(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def score_test(parsed: ParsedAnswer, outcome: ComparisonOutcome, target_upper: str) -> Tuple[float, bool, float, int]:
    """Partial credit: one point each for start word, end word and every letter in place.

    Letters are compared character by character from the concatenated letters,
    so fused tokens still earn credit. Each surplus character costs half a
    point. Only the final percentage is clamped at zero.

    Returns ``(score, is_correct, points_earned, max_points)``.
    """
    points_earned = 0.0
    max_points = 2 + len(target_upper)

    if parsed.valid_format and parsed.start_token and parsed.concatenated_letters and parsed.end_token:
        user_letters = parsed.concatenated_letters
        if outcome.start_correct:
            points_earned += 1
        for i, target_letter in enumerate(target_upper):
            if i < len(user_letters) and user_letters[i] == target_letter:
                points_earned += 1
        if outcome.end_correct:
            points_earned += 1
        if len(user_letters) > len(target_upper):
            points_earned -= OVERRUN_PENALTY * (len(user_letters) - len(target_upper))

    percentage = max(0.0, (points_earned / max_points) * 100) if max_points > 0 else 0.0
    score = round_one_decimal(percentage)
    return score, score > 0, points_earned, max_points


def evaluate_answer(raw_answer: str, target_word: str, mode: str) -> EvaluationResult:
    """Parse, compare and score one answer for the given game mode."""
    if mode not in GAME_MODES:
        raise ValueError(f"Unsupported game mode '{mode}'")

    raw_answer = raw_answer if raw_answer is not None else ""
    target_upper = normalize_target(target_word)
    parsed = parse_answer(raw_answer)
    outcome = compare_answer(parsed, target_upper)

    points_earned = None
    max_points = None
    if mode == "practice":
        score, is_correct = score_practice(outcome)
    else:
        score, is_correct, points_earned, max_points = score_test(parsed, outcome, target_upper)

    return EvaluationResult(
        target_word=target_word,
        raw_answer=raw_answer,
        mode=mode,
        valid_format=parsed.valid_format,
        is_correct=is_correct,
        score=score,
        start_token=parsed.start_token,
        letter_tokens=parsed.letter_tokens,
        end_token=parsed.end_token,
        all_correct=outcome.all_correct,
        error_type=outcome.error_type,
        points_earned=points_earned,
        max_points=max_points,
    )


def build_display_feedback(result) -> List[FeedbackPart]:
    """Rebuild the coloured answer diff from a stored result.

    Works from the retained tokens only, so stored attempts render the same
    way they were scored. Accepts an ``EvaluationResult`` or any object with
    the same attribute names (e.g. a stored attempt row).
    """
    target_upper = normalize_target(result.target_word)
    start_token = result.start_token or ""
    end_token = result.end_token or ""
    letter_tokens = list(result.letter_tokens or [])

    if not result.valid_format or not start_token or not end_token:
        return [FeedbackPart(result.raw_answer or EMPTY_ATTEMPT_TEXT, False, "format_error_display")]

    parts = [FeedbackPart(start_token, start_token == target_upper, "start_word")]
    matches = letter_token_matches(letter_tokens, target_upper)
    for i, is_match in enumerate(matches):
        parts.append(FeedbackPart(FIELD_SEPARATOR, True, "separator"))
        text = letter_tokens[i] if i < len(letter_tokens) else MISSING_LETTER
        parts.append(FeedbackPart(text, is_match, "letter"))

    parts.append(FeedbackPart(FIELD_SEPARATOR, True, "separator"))
    parts.append(FeedbackPart(end_token, end_token == target_upper, "end_word"))
    return parts


def feedback_message(result: EvaluationResult) -> str:
    """Short hint shown after a practice attempt."""
    word = normalize_target(result.target_word)
    if not result.valid_format:
        return "Wrong format. Try: WORD, L, E, T, T, E, R, WORD."
    if result.all_correct:
        return "Great spelling!"

    message = f"Almost, but not quite. Word: {word}."
    if result.error_type == ERROR_START_WORD:
        message += " The first word does not match."
    elif result.error_type == ERROR_LETTERS:
        spelled = "".join(result.letter_tokens) or "nothing"
        message += f" You spelled: {spelled}."
    elif result.error_type == ERROR_END_WORD:
        message += " The last word does not match."
    return message
