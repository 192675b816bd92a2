"""
Replicate adapter for quiz image generation (Ideogram).
"""

import asyncio
import hashlib
import logging
from dataclasses import dataclass

import replicate

from core.retry import retry_with_backoff
from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

# Ideogram aspect ratios keyed by the closest width/height ratio
_ASPECT_RATIOS = {
    1.0: "1:1",
    4 / 5: "4:5",
    5 / 4: "5:4",
    16 / 9: "16:9",
    9 / 16: "9:16",
}

# Visual direction per quiz type; the image never reveals the answer
QUIZ_IMAGE_STYLES = {
    "WORDLE": "a grid of colorful letter tiles, playful word-game aesthetic",
    "NUMBER_SEQUENCE": "bold numbers floating in a clean geometric layout",
    "RHYME_TIME": "two whimsical illustrated objects side by side, storybook style",
    "CONCEPT_CONNECTION": "four connected icons on a bright background, puzzle-board style",
}


@dataclass
class GeneratedImage:
    """Generated image result."""

    url: str
    prompt: str
    width: int
    height: int
    model: str


def aspect_ratio_for(width: int, height: int) -> str:
    ratio = width / height
    closest = min(_ASPECT_RATIOS, key=lambda r: abs(r - ratio))
    return _ASPECT_RATIOS[closest]


def build_quiz_image_prompt(title: str, quiz_type: str, theme: str | None = None) -> str:
    style = QUIZ_IMAGE_STYLES.get(quiz_type, "eye-catching puzzle illustration")
    parts = [f'Social media quiz card titled "{title}"', style]
    if theme:
        parts.append(f"themed around {theme}")
    parts.append("vibrant colors, high contrast, no answer text visible")
    return ", ".join(parts)


class ReplicateImageService:
    """Quiz image generation using a Replicate-hosted Ideogram model."""

    def __init__(self):
        self._model = settings.replicate_model
        if not settings.replicate_api_token:
            logger.warning("REPLICATE_API_TOKEN not set, image generation will use mock mode")
            self._client = None
        else:
            self._client = replicate.Client(api_token=settings.replicate_api_token)
            logger.info("Replicate client initialized with model: %s", self._model)

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    async def generate_image(
        self,
        prompt: str,
        width: int = 1080,
        height: int = 1080,
    ) -> GeneratedImage:
        """
        Generate an image via Replicate.

        Returns:
            GeneratedImage with URL and metadata
        """
        if not self._client:
            return self._mock_image(prompt, width, height)

        aspect_ratio = aspect_ratio_for(width, height)
        output = await retry_with_backoff(
            lambda: asyncio.wait_for(
                asyncio.to_thread(self._run_model, prompt, aspect_ratio),
                timeout=300,
            )
        )

        # Replicate models return a URL string, a list of URLs or a FileOutput
        if isinstance(output, list) and output:
            image_url = str(output[0])
        elif hasattr(output, "url"):
            image_url = str(output.url)
        else:
            image_url = str(output)

        logger.info("Generated image URL: %s", image_url)
        return GeneratedImage(
            url=image_url,
            prompt=prompt,
            width=width,
            height=height,
            model=self._model,
        )

    async def generate_quiz_image(
        self,
        title: str,
        quiz_type: str,
        theme: str | None = None,
    ) -> GeneratedImage:
        return await self.generate_image(build_quiz_image_prompt(title, quiz_type, theme))

    def _run_model(self, prompt: str, aspect_ratio: str):
        """Run the Replicate model synchronously (called in a worker thread)."""
        logger.info("Calling Replicate model %s with aspect_ratio=%s", self._model, aspect_ratio)
        return self._client.run(
            self._model,
            input={"prompt": prompt, "aspect_ratio": aspect_ratio, "style_type": "Design"},
        )

    def _mock_image(self, prompt: str, width: int, height: int) -> GeneratedImage:
        """Placeholder image from picsum.photos, seeded by the prompt so it is stable."""
        seed = hashlib.sha1(prompt.encode()).hexdigest()[:12]
        return GeneratedImage(
            url=f"https://picsum.photos/seed/{seed}/{width}/{height}",
            prompt=prompt,
            width=width,
            height=height,
            model="mock",
        )


# Singleton instance
image_ai_service = ReplicateImageService()
