"""
Request orchestration: story -> summary -> image -> title, exports and regenerations
"""

from typing import Optional
import asyncio
from dataclasses import dataclass
from pathlib import Path
import logging
import time

from config.settings import Settings
from prompt.prompt_manager import PromptManager, get_prompt_manager
from providers.llm_provider import DEFAULT_IMAGE_TYPE, LLMProvider
from services.document_service import build_pdf, fetch_image
from utils.errors import UploadError, ValidationError
from utils.text_utils import derive_title

logger = logging.getLogger(__name__)

@dataclass
class GenerationResult:
    story: str
    summary: str
    image_url: str
    story_name: str

class StoryService:
    """Stateless per-request orchestrator over an injected provider and settings"""

    def __init__(self, provider: LLMProvider, settings: Settings, prompt_manager: Optional[PromptManager] = None):
        self.provider = provider
        self.settings = settings
        self.prompt_manager = prompt_manager or get_prompt_manager()

    async def create_story(self, prompt: str) -> GenerationResult:
        """Each step feeds the next; any failure aborts the whole generation"""
        start_time = time.time()

        story = await self.provider.generate_story(prompt)
        summary = await self.provider.summarize(story)
        image_url = await self.provider.generate_image(summary)
        story_name = derive_title(summary)

        logger.info(
            "Story generated via %s in %.2fs (title=%r)",
            self.provider.get_provider_name(), time.time() - start_time, story_name
        )
        return GenerationResult(story=story, summary=summary, image_url=image_url, story_name=story_name)

    async def export_pdf(self, story: Optional[str], image_url: Optional[str], story_name: Optional[str]) -> bytes:
        if not story or not story.strip():
            raise ValidationError("Story content is required")

        image_path: Optional[Path] = None
        try:
            if image_url:
                image_path = await fetch_image(
                    image_url, self.settings.SCRATCH_DIR, timeout=self.settings.REQUEST_TIMEOUT
                )
            return await asyncio.to_thread(build_pdf, story_name or "", image_path, story)
        finally:
            if image_path is not None:
                image_path.unlink(missing_ok=True)

    async def regenerate_story(self, story: Optional[str], regenerate_prompt: Optional[str]) -> str:
        if regenerate_prompt and regenerate_prompt.strip():
            prompt = regenerate_prompt
        elif story and story.strip():
            prompt = self.prompt_manager.story_rewrite_prompt(story)
        else:
            raise ValidationError("Either story or regeneratePrompt is required")
        return await self.provider.generate_story(prompt)

    async def regenerate_image(self, summary: Optional[str], regenerate_prompt: Optional[str]) -> str:
        prompt = regenerate_prompt if regenerate_prompt and regenerate_prompt.strip() else summary
        if not prompt or not prompt.strip():
            raise ValidationError("Either summary or regeneratePrompt is required")
        return await self.provider.generate_image(prompt)

    async def describe_image(self, image_bytes: Optional[bytes], content_type: Optional[str] = None) -> str:
        if not image_bytes:
            raise UploadError("No file uploaded")
        return await self.provider.describe_image(image_bytes, content_type or DEFAULT_IMAGE_TYPE)
