"""
Offline story templates used by the mock provider
Deterministic output so the whole pipeline can run without an API key
"""

import re
import hashlib
from typing import List
from urllib.parse import quote
from enum import Enum

class StoryMood(Enum):
    ADVENTURE = "adventure"
    MYSTERY = "mystery"
    CALM = "calm"

MOOD_KEYWORDS = {
    StoryMood.MYSTERY: ["mystery", "secret", "ghost", "lighthouse", "night", "detective"],
    StoryMood.ADVENTURE: ["dragon", "pirate", "quest", "space", "journey", "knight"],
}

MOCK_IMAGE_BASE_URL = "https://placehold.co"

class MockStoryGenerator:
    """Template story generator keyed on the subject of the prompt"""

    def extract_subject(self, prompt: str) -> str:
        """Text following "about" in the prompt, else a generic subject"""
        match = re.search(r"\babout\s+(.+)", prompt or "", re.IGNORECASE)
        subject = match.group(1) if match else "a quiet little town"
        return subject.strip().rstrip(".!?") or "a quiet little town"

    def pick_mood(self, prompt: str) -> StoryMood:
        lowered = (prompt or "").lower()
        for mood, keywords in MOOD_KEYWORDS.items():
            if any(keyword in lowered for keyword in keywords):
                return mood
        return StoryMood.CALM

    def generate_story(self, prompt: str) -> str:
        subject = self.extract_subject(prompt)
        mood = self.pick_mood(prompt)

        if mood == StoryMood.MYSTERY:
            opening = f"Nobody in the village could explain the strange light around {subject}."
            turn = "One foggy evening a curious girl named Mara followed the glow to its source."
        elif mood == StoryMood.ADVENTURE:
            opening = f"The map was old and torn, but it clearly pointed toward {subject}."
            turn = "Captain Ilse gathered her crew at dawn and set out before the tide turned."
        else:
            opening = f"Life moved slowly around {subject}, and that suited everyone just fine."
            turn = "Then one spring morning a stranger arrived carrying a locked wooden box."

        return "\n\n".join([
            opening,
            turn,
            "What they found there was stranger than any rumour, and kinder than any fear.",
            f"By the end of the night, {subject} was no longer just a place on a map but a promise kept.",
        ])

    def summarize(self, story: str) -> str:
        paragraphs = [p.strip() for p in (story or "").split("\n\n") if p.strip()]
        if not paragraphs:
            return "An empty story."
        first = paragraphs[0].split(".")[0].strip()
        return f"{first}, and the journey that followed changed everything."

    def image_url(self, prompt: str) -> str:
        digest = hashlib.sha1((prompt or "").encode("utf-8")).hexdigest()[:10]
        label = quote((prompt or "story")[:40])
        return f"{MOCK_IMAGE_BASE_URL}/1024x1024/png?text={label}&seed={digest}"

    def describe_image(self, image_size: int, min_paragraphs: int) -> str:
        paragraphs: List[str] = [
            f"The picture holds {image_size} bytes of colour, and every one of them seems to hum.",
            "In the foreground a narrow path winds toward a house whose windows glow amber.",
            "A child stands at the gate, one hand raised as if greeting someone only she can see.",
            "Long ago the house belonged to a clockmaker who promised to return before the first snow.",
            "Tonight the snow has started, and somewhere down the path a lantern is swinging closer.",
        ]
        while len(paragraphs) < min_paragraphs:
            paragraphs.append("The wind carries the story a little further, and the lantern keeps coming.")
        return "\n\n".join(paragraphs)
