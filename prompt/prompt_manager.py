"""
Prompt templates for story, summary, image and image-description requests

Templates can be overridden by dropping a text file with the same name
(story_writer.txt, summarizer.txt, image_description.txt, story_rewrite.txt)
next to this module.
"""

from typing import Dict, Optional
from pathlib import Path
import logging

logger = logging.getLogger(__name__)

DEFAULT_PROMPTS = {
    "story_writer": (
        "You are a story writer. Please write a creative story based on the following prompt. "
        "Only generate a story. Do not answer other types of questions."
    ),
    "summarizer": "You are a summary generator. Summarize the following story.",
    "image_description": (
        "Create a detailed and creative story based on the image. The story should be at least "
        "{min_paragraphs} paragraphs long, separated by blank lines, describing the scene, "
        "characters, potential backstory, and imagined events related to the image."
    ),
    "story_rewrite": "Write a story that retells the following story in a fresh way:\n\n{story}",
}


class PromptManager:
    """Loads prompt templates, falling back to the built-in defaults"""

    def __init__(self, prompts_dir: Optional[Path] = None):
        self.prompts_dir = prompts_dir or Path(__file__).parent
        self.prompts = self._load_prompts()

    def _load_prompts(self) -> Dict[str, str]:
        prompts = dict(DEFAULT_PROMPTS)
        for name in DEFAULT_PROMPTS:
            path = self.prompts_dir / f"{name}.txt"
            if not path.exists():
                continue
            try:
                content = path.read_text(encoding="utf-8").strip()
            except OSError as e:
                logger.warning("Could not read prompt file %s: %s", path, e)
                continue
            if content:
                prompts[name] = content
        return prompts

    def story_system_prompt(self) -> str:
        return self.prompts["story_writer"]

    def summary_system_prompt(self) -> str:
        return self.prompts["summarizer"]

    def image_description_prompt(self, min_paragraphs: int) -> str:
        return self.prompts["image_description"].format(min_paragraphs=min_paragraphs)

    def story_rewrite_prompt(self, story: str) -> str:
        """Explicit regeneration instruction built from a previous story"""
        return self.prompts["story_rewrite"].format(story=story)


_prompt_manager = None

def get_prompt_manager() -> PromptManager:
    global _prompt_manager
    if _prompt_manager is None:
        _prompt_manager = PromptManager()
    return _prompt_manager
