"""
Quiz content generation.

Wraps the Anthropic adapter with validation and a deterministic fallback so a
quiz can always be produced, even without an API key or when the model
returns something unusable. Every call is recorded through the generation
tracker.
"""

import logging
import time
import zlib
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.ai import quiz_ai_service
from adapters.ai.anthropic_adapter import WORDLE_WORD_LENGTH
from core.cache import word_usage_cache
from infrastructure.database.models.quiz import QuizType, Template
from infrastructure.database.models.usage import WordUsage
from services.generation_tracker import GenerationTracker

logger = logging.getLogger(__name__)

DIFFICULTIES = ("easy", "medium", "hard")

THEME_SUFFIXES = (
    "challenge",
    "puzzle",
    "brain teaser",
    "riddle",
    "mystery",
    "problem",
    "exercise",
    "test",
    "game",
    "question",
)

# Publish hour (UTC) for each named time slot
SLOT_HOURS = {
    "morning": 9,
    "lunch": 12,
    "afternoon": 15,
    "evening": 18,
    "night": 21,
}
DEFAULT_SLOT_HOUR = 12

FALLBACK_WORDS: Dict[str, Dict[str, List[str]]] = {
    "en": {
        "easy": ["GAME", "BOOK", "TREE", "FISH", "STAR", "MOON", "CAKE", "BIRD"],
        "medium": ["HOUSE", "APPLE", "PLANT", "RIVER", "LIGHT", "MUSIC", "BEACH", "CLOUD"],
        "hard": ["PUZZLE", "GARDEN", "BRIDGE", "CASTLE", "FOREST", "PLANET", "ORANGE", "WINTER"],
    },
    "fr": {
        "easy": ["CHAT", "LAIT", "LUNE", "PAIN", "ROSE", "BLEU", "JOUR", "MAIN"],
        "medium": ["ARBRE", "LIVRE", "POMME", "PLAGE", "TERRE", "FLEUR", "ROUTE", "MONDE"],
        "hard": ["JARDIN", "MAISON", "SOLEIL", "NUAGES", "CHEVAL", "ORANGE", "BATEAU", "PLANTE"],
    },
    "es": {
        "easy": ["CASA", "GATO", "LUNA", "MESA", "VINO", "AGUA", "PERO", "SOPA"],
        "medium": ["PERRO", "LIBRO", "PLAYA", "ARBOL", "NUBES", "CIELO", "MUNDO", "TIGRE"],
        "hard": ["CAMINO", "CIUDAD", "VERANO", "JARDIN", "ABUELO", "TIEMPO", "PLANTA", "CAMISA"],
    },
    "de": {
        "easy": ["HAUS", "BAUM", "HUND", "BROT", "BALL", "MOND", "WALD", "TANZ"],
        "medium": ["BLUME", "STERN", "KATZE", "APFEL", "INSEL", "VOGEL", "BIRNE", "TISCH"],
        "hard": ["GARTEN", "SOMMER", "WINTER", "SCHULE", "HIMMEL", "BRUDER", "WASSER", "KERZEN"],
    },
    "it": {
        "easy": ["CASA", "LUNA", "MARE", "SOLE", "PANE", "VINO", "ROSA", "NAVE"],
        "medium": ["GATTO", "LIBRO", "FIORE", "MONDO", "TERRA", "PIZZA", "CIELO", "NOTTE"],
        "hard": ["ESTATE", "STRADA", "SCUOLA", "ALBERO", "PIANTA", "NUVOLA", "CAMERA", "GIORNO"],
    },
}

FALLBACK_SEQUENCES = {
    "easy": [([2, 4, 6, 8], 10, "add 2 each time"), ([5, 10, 15, 20], 25, "add 5 each time")],
    "medium": [([1, 4, 9, 16], 25, "square numbers"), ([2, 6, 12, 20], 30, "differences grow by 2")],
    "hard": [([2, 4, 8, 16], 32, "double each time"), ([3, 4, 7, 11], 18, "add the two previous numbers")],
}

FALLBACK_RHYMES = {
    "easy": [("CAT", "HAT"), ("SUN", "FUN")],
    "medium": [("LIGHT", "NIGHT"), ("CAKE", "LAKE")],
    "hard": [("BREATH", "DEATH"), ("STRANGE", "CHANGE")],
}

FALLBACK_CONCEPTS = {
    "easy": [(["Apple", "Banana", "Cherry", "Grape"], "Fruits")],
    "medium": [(["Mercury", "Venus", "Mars", "Jupiter"], "Planets")],
    "hard": [(["Violin", "Cello", "Viola", "Double bass"], "String instruments")],
}


@dataclass
class GeneratedQuizContent:
    """One quiz worth of content ready to be stored on a Quiz."""

    title: str
    subtitle: str
    branding_text: str
    hint: str
    answer: str
    solution: str
    variables: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def time_for_slot(slot_id: Optional[str]) -> int:
    """Hour of day for a named time slot; unknown ids map to noon."""
    return SLOT_HOURS.get((slot_id or "").lower(), DEFAULT_SLOT_HOUR)


def theme_for_index(theme: Optional[str], index: int) -> Optional[str]:
    """Vary a batch theme per quiz, e.g. "space" -> "space riddle"."""
    if not theme:
        return None
    return f"{theme} {THEME_SUFFIXES[index % len(THEME_SUFFIXES)]}"


def difficulty_for_index(difficulty: str, index: int, count: int) -> str:
    """
    Resolve the difficulty of quiz *index* out of *count*.

    "progressive" ramps from easy to hard across the batch; with fewer than
    three quizzes the ramp simply stops early.
    """
    if difficulty != "progressive":
        return difficulty if difficulty in DIFFICULTIES else "medium"
    position = int(index / max(count, 1) * len(DIFFICULTIES))
    return DIFFICULTIES[min(position, len(DIFFICULTIES) - 1)]


def is_valid_wordle_answer(answer: Optional[str], difficulty: str) -> bool:
    if not answer:
        return False
    return answer.isalpha() and len(answer) == WORDLE_WORD_LENGTH.get(difficulty, 5)


def _pick(options: list, seed: Optional[str]):
    return options[zlib.crc32((seed or "").encode()) % len(options)]


class QuizGenerator:
    """Generates quiz content for a template."""

    def __init__(self, db: AsyncSession, ai_service=None):
        self.db = db
        self.ai = ai_service or quiz_ai_service
        self.tracker = GenerationTracker(db)

    async def used_words(self, user_id: str, language: str) -> set:
        cache_key = f"{user_id}:{language}"
        cached = word_usage_cache.get(cache_key)
        if cached is not None:
            return cached
        result = await self.db.execute(
            select(WordUsage.word).where(
                WordUsage.user_id == user_id,
                WordUsage.language == language,
                WordUsage.is_used.is_(True),
            )
        )
        words = {w.upper() for w in result.scalars().all()}
        word_usage_cache.set(cache_key, words)
        return words

    async def mark_word_used(self, user_id: str, word: str, language: str) -> None:
        normalized = word.lower()
        result = await self.db.execute(
            select(WordUsage).where(
                WordUsage.user_id == user_id,
                WordUsage.word == normalized,
                WordUsage.language == language,
            )
        )
        usage = result.scalar_one_or_none()
        now = datetime.now(timezone.utc)
        if usage is None:
            self.db.add(
                WordUsage(user_id=user_id, word=normalized, language=language, is_used=True, used_at=now)
            )
        else:
            usage.is_used = True
            usage.used_at = now
        await self.db.flush()
        word_usage_cache.delete(f"{user_id}:{language}")

    def fallback_word(self, language: str, difficulty: str, used: set) -> str:
        """First word of the language/difficulty list not used yet, else the first word."""
        words = FALLBACK_WORDS.get(language, FALLBACK_WORDS["en"]).get(
            difficulty, FALLBACK_WORDS["en"]["medium"]
        )
        for word in words:
            if word not in used:
                return word
        return words[0]

    def fallback_content(
        self,
        quiz_type: str,
        theme: Optional[str],
        difficulty: str,
        language: str,
        used_words: Optional[set] = None,
    ) -> GeneratedQuizContent:
        """Deterministic quiz content used when the model is unavailable or unusable."""
        type_name = QuizType(quiz_type).display_name if quiz_type in QuizType._value2member_map_ else "Quiz"
        content = GeneratedQuizContent(
            title=f"{type_name} Quiz",
            subtitle=f"Test your {difficulty} level {type_name} skills",
            branding_text=f"{type_name} Quiz",
            hint="Look carefully at the pattern to solve this puzzle.",
            answer="",
            solution=f"This is a {difficulty} level {type_name} quiz",
        )

        if quiz_type == QuizType.WORDLE.value:
            word = self.fallback_word(language, difficulty, used_words or set())
            content.title = "Word Puzzle"
            content.hint = "Guess the hidden word."
            content.answer = word
            content.solution = f"The word is {word}"
            content.variables = {"word_length": len(word)}
        elif quiz_type == QuizType.NUMBER_SEQUENCE.value:
            sequence, answer, rule = _pick(FALLBACK_SEQUENCES[difficulty], theme)
            content.hint = "Look for a mathematical pattern in the sequence."
            content.answer = str(answer)
            content.solution = f"The pattern is: {rule}"
            content.variables = {"sequence": ", ".join(str(n) for n in sequence)}
        elif quiz_type == QuizType.RHYME_TIME.value:
            first, second = _pick(FALLBACK_RHYMES[difficulty], theme)
            content.hint = "Focus on the final sound of each word."
            content.answer = f"{first} & {second}"
            content.solution = f"{first} rhymes with {second}"
            content.variables = {"clue1": first[0] + "_" * (len(first) - 1), "clue2": second[0] + "_" * (len(second) - 1)}
        elif quiz_type == QuizType.CONCEPT_CONNECTION.value:
            concepts, connection = _pick(FALLBACK_CONCEPTS[difficulty], theme)
            content.hint = "Look for a common category or theme."
            content.answer = connection
            content.solution = f"These are all {connection.lower()}"
            content.variables = {"concepts": ", ".join(concepts)}
        else:
            content.answer = "PUZZLE"

        content.variables.update(self._display_variables(content, difficulty, language))
        return content

    @staticmethod
    def _display_variables(content: GeneratedQuizContent, difficulty: str, language: str) -> Dict[str, Any]:
        return {
            "title": content.title,
            "subtitle": content.subtitle,
            "hint": content.hint,
            "branding_text": content.branding_text,
            "difficulty": difficulty,
            "language": language,
        }

    def _from_model(
        self,
        data: Dict[str, Any],
        quiz_type: str,
        difficulty: str,
        language: str,
        used_words: set,
    ) -> GeneratedQuizContent:
        type_name = QuizType(quiz_type).display_name
        answer = str(data.get("answer", "")).strip()
        if quiz_type == QuizType.WORDLE.value:
            answer = answer.upper()
            if not is_valid_wordle_answer(answer, difficulty) or answer in used_words:
                logger.info("Model WORDLE answer %r rejected, using fallback word", answer)
                answer = self.fallback_word(language, difficulty, used_words)

        content = GeneratedQuizContent(
            title=str(data.get("title") or f"{type_name} Quiz").strip(),
            subtitle=str(data.get("subtitle") or f"Test your {difficulty} level {type_name} skills").replace('"', ""),
            branding_text=str(data.get("branding_text") or f"{type_name} Quiz"),
            hint=str(data.get("hint") or "Look carefully at the pattern to solve this puzzle."),
            answer=answer,
            solution=str(data.get("solution") or f"This is a {difficulty} level {type_name} quiz"),
            variables=dict(data.get("variables") or {}),
        )
        content.variables.update(self._display_variables(content, difficulty, language))
        return content

    async def generate(
        self,
        template: Template,
        theme: Optional[str] = None,
        difficulty: str = "medium",
        language: str = "en",
        user_id: Optional[str] = None,
    ) -> GeneratedQuizContent:
        """
        Generate content for one quiz built from *template*.

        Never raises for model problems: failures are logged through the
        tracker and the deterministic fallback is returned instead.
        """
        difficulty = difficulty if difficulty in DIFFICULTIES else "medium"
        user_id = user_id or template.user_id
        quiz_type = template.quiz_type
        is_wordle = quiz_type == QuizType.WORDLE.value
        used = await self.used_words(user_id, language) if is_wordle else set()

        log = await self.tracker.log_start(
            user_id=user_id,
            resource_type="quiz_content",
            resource_id=template.id,
            input_metadata={
                "quiz_type": quiz_type,
                "theme": theme,
                "difficulty": difficulty,
                "language": language,
            },
        )
        started = time.monotonic()

        content: Optional[GeneratedQuizContent] = None
        try:
            data = await self.ai.generate_quiz_content(
                quiz_type=quiz_type,
                template_variables=template.variables or {},
                theme=theme,
                difficulty=difficulty,
                language=language,
            )
            if data is not None:
                content = self._from_model(data, quiz_type, difficulty, language, used)
        except Exception as e:
            logger.warning("Quiz content generation failed for template %s: %s", template.id, e)
            await self.tracker.log_failure(
                log.id, str(e), duration_ms=int((time.monotonic() - started) * 1000)
            )
            content = self.fallback_content(quiz_type, theme, difficulty, language, used)
        else:
            duration_ms = int((time.monotonic() - started) * 1000)
            if content is None:
                content = self.fallback_content(quiz_type, theme, difficulty, language, used)
                await self.tracker.log_success(log.id, ai_model=None, duration_ms=duration_ms, fallback=True)
            else:
                await self.tracker.log_success(log.id, ai_model=self.ai.model, duration_ms=duration_ms)

        if is_wordle:
            await self.mark_word_used(user_id, content.answer, language)
        return content
