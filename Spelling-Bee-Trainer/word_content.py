"""Word lists and AI-generated word content.

Every public function here falls back to something usable when the AI service
is unavailable: mock words, a placeholder image or a fixed message.
"""

import base64
import json
import logging
import os
import random

from openai import OpenAI

from models import get_words

logger = logging.getLogger(__name__)

MOCK_WORDS = {
    'easy': ["cat", "dog", "sun", "run", "big", "egg", "cup", "hat", "pen", "joy", "sky", "fly", "try", "cry", "dry"],
    'medium': ["apple", "happy", "table", "water", "earth", "dream", "smile", "magic", "music", "story", "grape", "chair", "watch", "train", "light"],
    'hard': ["beautiful", "adventure", "technology", "knowledge", "environment", "communication", "delicious", "important", "experience", "opportunity", "xylophone", "question", "believe", "journey", "mystery"],
}

PLACEHOLDER_IMAGE_URL = "https://placehold.co/600x400.png?text={label}+{word}"
SENTENCE_FALLBACK = "Could not generate a sentence for {word}."
TRANSLATION_ERROR_SUFFIX = " (translation error)"
TRANSLATION_UNAVAILABLE_SUFFIX = " (translation unavailable)"

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_IMAGE_MODEL = "dall-e-3"


class ContentGenerator:
    """Thin wrapper over the OpenAI client for the prompts the game needs."""

    def __init__(self, api_key=None, model=None, image_model=None):
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ValueError("OPENAI_API_KEY is not configured")
        self.client = OpenAI(api_key=api_key)
        self.model = model or os.getenv("OPENAI_MODEL", DEFAULT_MODEL)
        self.image_model = image_model or os.getenv("OPENAI_IMAGE_MODEL", DEFAULT_IMAGE_MODEL)

    def _complete(self, prompt, json_output=False):
        kwargs = {}
        if json_output:
            kwargs['response_format'] = {"type": "json_object"}
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": "You help children practise English spelling."},
                {"role": "user", "content": prompt},
            ],
            **kwargs
        )
        content = response.choices[0].message.content
        return (content or "").strip()

    def generate_spelling_words(self, difficulty, count):
        prompt = (
            f"Generate a list of {count} English spelling words with a difficulty level of {difficulty}. "
            "Use real words a child could learn to spell. "
            'Respond with JSON in the form {"words": ["word1", "word2"]}.'
        )
        content = self._complete(prompt, json_output=True)
        data = json.loads(content)
        words = [w.strip() for w in data.get("words", []) if isinstance(w, str) and w.strip()]
        if not words:
            raise ValueError("No words returned by the model")
        return words

    def generate_word_image(self, word):
        response = self.client.images.generate(
            model=self.image_model,
            prompt=(
                f'A child-friendly, simple, clear, photorealistic image representing only the word: "{word}". '
                "No text, letters, or complex scenes."
            ),
            n=1,
            size="1024x1024",
        )
        image = response.data[0]
        if getattr(image, "url", None):
            return image.url
        if getattr(image, "b64_json", None):
            return f"data:image/png;base64,{image.b64_json}"
        raise ValueError(f"No image returned for '{word}'")

    def translate_word(self, word, target_language):
        return self._complete(
            f'Translate the following word into {target_language}: "{word}". '
            "Respond with only the translated word, nothing else. If the word is already in the "
            "target language or untranslatable as a single word, return the original word."
        )

    def generate_sentence(self, word):
        return self._complete(
            f'Create one simple and short English sentence using the word "{word}". '
            "The sentence should be easy to understand for a child learning to spell. "
            "Provide only the sentence itself, with no introductory phrases or extra text."
        )

    def translate_sentence(self, sentence, target_language):
        return self._complete(
            f'Translate the following sentence into {target_language}: "{sentence}". '
            "Respond with only the translated sentence, nothing else."
        )


def _game_word(text, difficulty):
    return {
        'id': None,
        'text': text.lower(),
        'difficulty': difficulty,
        'custom_image_url': None,
        'custom_sentence': None,
        'custom_translation': None,
        'is_active': True,
    }


def _mock_words(difficulty, count):
    available = list(dict.fromkeys(MOCK_WORDS.get(difficulty) or MOCK_WORDS['easy']))
    random.shuffle(available)
    return [_game_word(text, difficulty) for text in available[:count]]


def get_spelling_words(difficulty, count, use_admin_words=False, use_mock_words=False, generator_factory=ContentGenerator):
    """Pick the words for a new game.

    Admin words are authoritative when enabled: if none are active for the
    difficulty the game simply has no words. Otherwise mock lists or the AI are
    used, with the mock lists as the fallback for any AI failure.
    """
    if use_admin_words:
        try:
            words = [w.to_game_word() for w in get_words(difficulty, active_only=True)]
        except Exception as e:
            logger.error("Error fetching admin words for %s: %s", difficulty, e)
            return []
        if not words:
            logger.info("No active admin words for difficulty %s", difficulty)
            return []
        random.shuffle(words)
        logger.info("Using %d of %d admin words for %s", min(count, len(words)), len(words), difficulty)
        return words[:count]

    if use_mock_words:
        logger.info("Using mock words for %s", difficulty)
        return _mock_words(difficulty, count)

    try:
        texts = generator_factory().generate_spelling_words(difficulty, count)
    except Exception as e:
        logger.error("Error generating AI spelling words, falling back to mocks: %s", e)
        return _mock_words(difficulty, count)

    return [_game_word(text, difficulty) for text in texts[:count]]


def placeholder_image_url(word, label):
    return PLACEHOLDER_IMAGE_URL.format(label=label, word=word)


def is_placeholder_image(url):
    return not url or url.startswith("https://placehold.co/")


def is_failed_image(url):
    return not url or "text=Error+" in url


def get_word_image(word, use_mock_images=False, generator_factory=ContentGenerator):
    try:
        if use_mock_images:
            return placeholder_image_url(word, "Mock")
        return generator_factory().generate_word_image(word)
    except Exception as e:
        logger.error("Error generating image for %s: %s", word, e)
        return placeholder_image_url(word, "Error")


def get_word_translation(word, target_language, generator_factory=ContentGenerator):
    try:
        translated = generator_factory().translate_word(word, target_language)
    except Exception as e:
        logger.error("Error translating word %s: %s", word, e)
        return f"{word}{TRANSLATION_ERROR_SUFFIX}"
    if not translated:
        logger.warning("Empty translation returned for %s", word)
        return f"{word}{TRANSLATION_UNAVAILABLE_SUFFIX}"
    return translated


def is_translation_fallback(text):
    return text.endswith((TRANSLATION_ERROR_SUFFIX, TRANSLATION_UNAVAILABLE_SUFFIX))


def get_word_sentence(word, generator_factory=ContentGenerator):
    try:
        sentence = generator_factory().generate_sentence(word)
    except Exception as e:
        logger.error("Error generating sentence for %s: %s", word, e)
        return SENTENCE_FALLBACK.format(word=word)
    return sentence or SENTENCE_FALLBACK.format(word=word)


def get_translated_sentence(sentence, target_language, generator_factory=ContentGenerator):
    try:
        translated = generator_factory().translate_sentence(sentence, target_language)
    except Exception as e:
        logger.error("Error translating sentence: %s", e)
        return sentence
    return translated or sentence


def encode_image_upload(file_storage, max_bytes):
    """Turn an uploaded image into a data URI; ValueError when unusable."""
    if file_storage is None or not file_storage.filename:
        raise ValueError("No image selected.")
    mimetype = file_storage.mimetype or ''
    if not mimetype.startswith('image/'):
        raise ValueError("Only image files can be uploaded.")
    data = file_storage.read()
    if not data:
        raise ValueError("The image file is empty.")
    if len(data) > max_bytes:
        raise ValueError("The image is too large (max 2MB).")
    return f"data:{mimetype};base64,{base64.b64encode(data).decode('ascii')}"
