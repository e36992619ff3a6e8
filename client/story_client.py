"""
Session client for the story server

Keeps the generation history in memory only, the way the web front-end does:
entries are appended in order, deleted by index, and regenerations are applied
to every entry whose story (or summary) matches the one regenerated.
"""

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Union
import logging

import aiohttp

logger = logging.getLogger(__name__)

@dataclass
class ChatHistoryEntry:
    user_input: str
    story: str
    story_name: str
    summary: str
    image_url: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

class ChatHistory:
    """Ordered, mutable, non-persistent list of generations"""

    def __init__(self):
        self._entries: List[ChatHistoryEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ChatHistoryEntry]:
        return iter(self._entries)

    def __getitem__(self, index: int) -> ChatHistoryEntry:
        return self._entries[index]

    def append(self, entry: ChatHistoryEntry) -> None:
        self._entries.append(entry)

    def delete(self, index: int) -> ChatHistoryEntry:
        """Raises IndexError for a position outside the list"""
        return self._entries.pop(index)

    def replace_story(self, old_story: str, new_story: str) -> int:
        count = 0
        for entry in self._entries:
            if entry.story == old_story:
                entry.story = new_story
                count += 1
        return count

    def replace_image(self, summary: str, new_image_url: str) -> int:
        count = 0
        for entry in self._entries:
            if entry.summary == summary:
                entry.image_url = new_image_url
                count += 1
        return count

    def clear(self) -> None:
        self._entries.clear()

class StoryClientError(Exception):
    def __init__(self, status: int, error: str, code: Optional[str] = None):
        super().__init__(f"{status}: {error}")
        self.status = status
        self.error = error
        self.code = code

class StoryClient:
    """Async HTTP client for the five story endpoints"""

    def __init__(
        self,
        base_url: str = "http://localhost:3003",
        timeout: float = 300,
        session_factory: Callable[..., Any] = aiohttp.ClientSession,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.history = ChatHistory()
        self._session_factory = session_factory

    async def create_story(self, prompt: str) -> ChatHistoryEntry:
        data = await self._post_json("/api/chat", {"message": prompt})
        entry = ChatHistoryEntry(
            user_input=prompt,
            story=data["story"],
            story_name=data["storyName"],
            summary=data["summary"],
            image_url=data["imageUrl"],
        )
        self.history.append(entry)
        return entry

    async def regenerate_story(self, story: str, regenerate_prompt: Optional[str] = None) -> str:
        payload = {"story": story}
        if regenerate_prompt:
            payload["regeneratePrompt"] = regenerate_prompt
        data = await self._post_json("/api/regenerate-story", payload)
        new_story = data["newStory"]
        self.history.replace_story(story, new_story)
        return new_story

    async def regenerate_image(self, summary: str, regenerate_prompt: Optional[str] = None) -> str:
        payload = {"summary": summary}
        if regenerate_prompt:
            payload["regeneratePrompt"] = regenerate_prompt
        data = await self._post_json("/api/regenerate-image", payload)
        new_image_url = data["newImageUrl"]
        self.history.replace_image(summary, new_image_url)
        return new_image_url

    async def export_pdf(self, entry: ChatHistoryEntry) -> bytes:
        payload = {"story": entry.story, "imageUrl": entry.image_url, "storyName": entry.story_name}
        async with self._session() as session:
            async with session.post(f"{self.base_url}/api/pdf", json=payload) as response:
                if response.status != 200:
                    await self._raise_for_error(response)
                return await response.read()

    async def describe_image(self, image: Union[bytes, str, Path], filename: str = "image.jpg",
                             content_type: str = "image/jpeg") -> str:
        if isinstance(image, (str, Path)):
            filename = Path(image).name
            image = Path(image).read_bytes()

        form = aiohttp.FormData()
        form.add_field("image", image, filename=filename, content_type=content_type)

        async with self._session() as session:
            async with session.post(f"{self.base_url}/api/describe-image", data=form) as response:
                if response.status != 200:
                    await self._raise_for_error(response)
                data = await response.json()
        return data["description"]

    def delete_entry(self, index: int) -> ChatHistoryEntry:
        return self.history.delete(index)

    def _session(self):
        return self._session_factory(timeout=aiohttp.ClientTimeout(total=self.timeout))

    async def _post_json(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with self._session() as session:
            async with session.post(f"{self.base_url}{path}", json=payload) as response:
                if response.status != 200:
                    await self._raise_for_error(response)
                return await response.json()

    async def _raise_for_error(self, response) -> None:
        try:
            body = await response.json()
        except (aiohttp.ContentTypeError, ValueError):
            body = {"error": await response.text()}
        logger.error("Story server returned %s: %s", response.status, body)
        raise StoryClientError(response.status, body.get("error", ""), body.get("code"))
