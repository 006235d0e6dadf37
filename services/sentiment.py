"""Gemini-backed sentiment classification for feedback text."""

from __future__ import annotations

import logging
from typing import Optional

import google.generativeai as genai

from errors import UpstreamClassificationFailure

logger = logging.getLogger(__name__)

POSITIVE = 'positive'
NEGATIVE = 'negative'
NEUTRAL = 'neutral'
SENTIMENT_LABELS = (POSITIVE, NEGATIVE, NEUTRAL)
FALLBACK_LABEL = NEUTRAL

PROMPT_TEMPLATE = (
    'Analyze the following student feedback and categorize it as either "positive", '
    '"negative", or "neutral".\n'
    'Respond with ONLY one word: positive, negative, or neutral.\n\n'
    'Feedback: "{feedback}"'
)


def normalize_label(raw: Optional[str]) -> Optional[str]:
    """Map a raw model answer onto the label set, or ``None`` if it is not in it."""
    if not raw:
        return None
    label = raw.strip().strip('"\'`.!').strip().lower()
    return label if label in SENTIMENT_LABELS else None


class SentimentClassifier:
    """Single-attempt classifier; every failure resolves to ``FALLBACK_LABEL``."""

    def __init__(self, api_key: Optional[str], model_name: str, timeout: float = 20.0, model=None):
        self.api_key = api_key
        self.model_name = model_name
        self.timeout = timeout
        self._model = model

    @classmethod
    def from_config(cls, config) -> 'SentimentClassifier':
        return cls(
            config.get('GEMINI_API_KEY'),
            config.get('GEMINI_MODEL', 'gemini-flash-latest'),
            timeout=config.get('GEMINI_TIMEOUT_SECONDS', 20.0),
        )

    def _get_model(self):
        if self._model is None:
            if not self.api_key:
                raise UpstreamClassificationFailure('GEMINI_API_KEY is not set')
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(self.model_name)
        return self._model

    def _ask(self, text: str) -> str:
        prompt = PROMPT_TEMPLATE.format(feedback=text)
        try:
            response = self._get_model().generate_content(prompt, request_options={'timeout': self.timeout})
            answer = response.text
        except UpstreamClassificationFailure:
            raise
        except Exception as exc:  # noqa: BLE001
            raise UpstreamClassificationFailure(str(exc)) from exc
        label = normalize_label(answer)
        if label is None:
            raise UpstreamClassificationFailure(f'Unrecognized sentiment answer: {answer!r}')
        return label

    def classify(self, text: str) -> str:
        try:
            return self._ask(text)
        except UpstreamClassificationFailure as exc:
            logger.warning('Sentiment classification fell back to %s: %s', FALLBACK_LABEL, exc.message)
            return FALLBACK_LABEL
