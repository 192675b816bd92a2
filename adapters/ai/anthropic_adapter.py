"""
Anthropic Claude adapter for quiz content generation.
"""

import json
import logging
import re
from typing import Any, Dict, Optional

import anthropic

from core.retry import retry_with_backoff
from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)


class QuizContentError(Exception):
    """The model returned something that is not usable quiz content."""


# Per quiz type instructions. Keys match QuizType values.
QUIZ_TYPE_INSTRUCTIONS = {
    "WORDLE": (
        "Pick a single common {language_name} word of exactly {word_length} letters, "
        "letters only, no accents stripped, no proper nouns. The answer is that word in "
        "uppercase. The hint describes the word without using it."
    ),
    "NUMBER_SEQUENCE": (
        "Create a sequence of 5 integers following a clear rule (arithmetic, geometric, "
        "squares, fibonacci-like, alternating). Put the sequence in variables.sequence as a "
        "comma-separated string. The answer is the next number. The solution explains the rule."
    ),
    "RHYME_TIME": (
        "Create a pair of rhyming {language_name} words. Give two short clues in "
        "variables.clue1 and variables.clue2. The answer is the two words separated by ' & '."
    ),
    "CONCEPT_CONNECTION": (
        "Give exactly 4 {language_name} words or concepts in variables.concepts as a "
        "comma-separated string that share one hidden theme. The answer is that theme."
    ),
}

DIFFICULTY_GUIDANCE = {
    "easy": "Keep it simple enough for a casual reader to solve in under a minute.",
    "medium": "Aim for a puzzle most adults solve with a little thought.",
    "hard": "Make it challenging but still fair and unambiguous.",
}

WORDLE_WORD_LENGTH = {"easy": 4, "medium": 5, "hard": 6}


def extract_json(response_text: str) -> Dict[str, Any]:
    """Parse a JSON object out of a model reply, tolerating markdown fences."""
    if "```json" in response_text:
        response_text = response_text.split("```json")[1].split("```")[0]
    elif "```" in response_text:
        response_text = response_text.split("```")[1].split("```")[0]
    try:
        data = json.loads(response_text.strip())
    except json.JSONDecodeError as e:
        raise QuizContentError(f"Model reply is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise QuizContentError("Model reply is not a JSON object")
    return data


class AnthropicQuizService:
    """Quiz content generation using Anthropic Claude."""

    LANGUAGE_NAMES = {
        "en": "English",
        "es": "Spanish (español)",
        "fr": "French (français)",
        "de": "German (Deutsch)",
        "it": "Italian (italiano)",
        "pt": "Portuguese (português)",
        "nl": "Dutch (Nederlands)",
    }

    def __init__(self):
        if settings.anthropic_api_key:
            self._client = anthropic.AsyncAnthropic(
                api_key=settings.anthropic_api_key,
                timeout=float(settings.anthropic_timeout),
            )
        else:
            self._client = None
        self._model = settings.anthropic_model
        self._max_tokens = settings.anthropic_max_tokens

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    @property
    def model(self) -> str:
        return self._model

    def _get_language_name(self, language_code: str) -> str:
        return self.LANGUAGE_NAMES.get(language_code, language_code)

    @staticmethod
    def _sanitize_prompt_input(text: Optional[str], max_length: int) -> str:
        """Strip control characters and limit length to prevent prompt injection."""
        if not text:
            return ""
        text = re.sub(r"[\r\n\t\x00-\x1f\x7f]", " ", text)
        text = re.sub(r" +", " ", text).strip()
        return text[:max_length]

    async def _complete(self, prompt: str, max_tokens: int, system: Optional[str] = None) -> str:
        kwargs = {
            "model": self._model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        message = await retry_with_backoff(lambda: self._client.messages.create(**kwargs))
        return message.content[0].text

    async def generate_quiz_content(
        self,
        quiz_type: str,
        template_variables: Dict[str, Any],
        theme: Optional[str] = None,
        difficulty: str = "medium",
        language: str = "en",
    ) -> Optional[Dict[str, Any]]:
        """
        Ask the model for one quiz worth of content.

        Returns:
            Parsed JSON dict with title, subtitle, branding_text, hint, answer,
            solution and variables, or None when no API key is configured.

        Raises:
            QuizContentError: If the reply cannot be parsed
        """
        if not self._client:
            return None

        theme = self._sanitize_prompt_input(theme, 200)
        language_name = self._get_language_name(language)
        type_instructions = QUIZ_TYPE_INSTRUCTIONS.get(quiz_type, "Create an engaging puzzle.").format(
            language_name=language_name,
            word_length=WORDLE_WORD_LENGTH.get(difficulty, 5),
        )
        variable_names = ", ".join(sorted(template_variables.keys())) or "none"

        prompt = f"""Create one social-media quiz.

Quiz type: {quiz_type}
Theme: {theme or "any"}
Difficulty: {difficulty}. {DIFFICULTY_GUIDANCE.get(difficulty, "")}
Language: write every field in {language_name}.

{type_instructions}

The template that renders this quiz declares these variables: {variable_names}.
Fill "variables" with a value for each of them where it makes sense.

Respond in JSON format:
{{
    "title": "Short catchy title",
    "subtitle": "One line teaser",
    "branding_text": "Short call to action",
    "hint": "A hint that does not give the answer away",
    "answer": "The answer",
    "solution": "One or two sentences explaining the answer",
    "variables": {{"name": "value"}}
}}"""

        response_text = await self._complete(
            prompt,
            max_tokens=self._max_tokens,
            system="You write short, accurate, family-friendly puzzles for social media.",
        )
        data = extract_json(response_text)
        if not data.get("answer"):
            raise QuizContentError("Model reply has no answer")
        return data

    async def generate_field(
        self,
        field: str,
        context: str,
        template_type: str,
        language: str = "en",
        word_only: bool = False,
    ) -> Dict[str, str]:
        """
        Generate the value of a single template field.

        Returns:
            Dict with "content", "answer" and "theme" keys.
        """
        field = self._sanitize_prompt_input(field, 100)
        context = self._sanitize_prompt_input(context, 1000)

        if not self._client:
            return {
                "content": f"Sample {field} for {template_type}",
                "answer": "PUZZLE" if word_only else f"sample {field}",
                "theme": context[:50] or "general",
            }

        language_name = self._get_language_name(language)
        prompt = f"""Generate the "{field}" field of a {template_type} quiz.
Context: {context or "none"}
Language: {language_name}
{"Return only a single answer word." if word_only else ""}

Respond in JSON format:
{{"content": "...", "answer": "...", "theme": "..."}}"""

        data = extract_json(await self._complete(prompt, max_tokens=400))
        return {
            "content": str(data.get("content", "")),
            "answer": str(data.get("answer", "")),
            "theme": str(data.get("theme", "")),
        }


# Singleton instance
quiz_ai_service = AnthropicQuizService()
