"""
AI gateway client: story, summary, image and image-description calls
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional
import asyncio
import base64
import math
import re
import aiohttp
import logging

from config.settings import Settings, get_settings
from prompt.prompt_manager import PromptManager, get_prompt_manager
from templates.mock_templates import MockStoryGenerator
from utils.errors import (
    InsufficientContentError,
    InvalidPromptError,
    UpstreamRateLimited,
    UpstreamTransportError,
)
from utils.text_utils import is_story_prompt, split_paragraphs

logger = logging.getLogger(__name__)

DEFAULT_MIN_PARAGRAPHS = 5
DEFAULT_IMAGE_TYPE = "image/jpeg"
# Bare image/* media type, no parameters
IMAGE_TYPE_PATTERN = re.compile(r"^image/[A-Za-z0-9.+-]+\Z")

class LLMProvider(ABC):
    """Shared contract; prompt intent and description length are checked here for every provider"""

    def __init__(self, min_paragraphs: int = DEFAULT_MIN_PARAGRAPHS):
        self.min_paragraphs = min_paragraphs

    async def generate_story(self, prompt: str) -> str:
        # Checked before anything is sent upstream
        if not is_story_prompt(prompt):
            raise InvalidPromptError(
                "Invalid story prompt. Start with 'Tell me a story', 'Write a story' or 'Create a story'."
            )
        return await self._write_story(prompt)

    async def describe_image(self, image_bytes: bytes, content_type: str = DEFAULT_IMAGE_TYPE) -> str:
        if not content_type or not IMAGE_TYPE_PATTERN.match(content_type):
            logger.warning("Describing upload with content type %r as %s", content_type, DEFAULT_IMAGE_TYPE)
            content_type = DEFAULT_IMAGE_TYPE
        content = await self._describe(image_bytes, content_type)
        paragraphs = split_paragraphs(content)
        if len(paragraphs) < self.min_paragraphs:
            raise InsufficientContentError(
                f"Generated content has {len(paragraphs)} paragraphs, "
                f"at least {self.min_paragraphs} required",
                paragraphs=len(paragraphs),
            )
        return content

    @abstractmethod
    async def _write_story(self, prompt: str) -> str:
        pass

    @abstractmethod
    async def summarize(self, story: str) -> str:
        pass

    @abstractmethod
    async def generate_image(self, prompt: str) -> str:
        pass

    @abstractmethod
    async def _describe(self, image_bytes: bytes, content_type: str) -> str:
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        pass

    @abstractmethod
    def is_available(self) -> bool:
        pass

class OpenAIProvider(LLMProvider):
    """OpenAI chat-completions and image-generation client over aiohttp"""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        image_model: str = "dall-e-3",
        base_url: str = "https://api.openai.com/v1",
        image_size: str = "1024x1024",
        max_retries: int = 5,
        backoff_base: float = 1.0,
        max_retry_delay: float = 30,
        timeout: float = 60,
        describe_max_tokens: int = 2000,
        min_paragraphs: int = DEFAULT_MIN_PARAGRAPHS,
        prompt_manager: Optional[PromptManager] = None,
        session_factory: Callable[..., Any] = aiohttp.ClientSession,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        super().__init__(min_paragraphs)
        self.api_key = api_key
        self.model = model
        self.image_model = image_model
        self.base_url = base_url.rstrip("/")
        self.image_size = image_size
        self.max_retries = max(max_retries, 1)
        self.backoff_base = backoff_base
        self.max_retry_delay = max_retry_delay
        self.timeout = timeout
        self.describe_max_tokens = describe_max_tokens
        self.prompt_manager = prompt_manager or get_prompt_manager()
        self._session_factory = session_factory
        self._sleep = sleep

    def is_available(self) -> bool:
        return bool(self.api_key)

    def get_provider_name(self) -> str:
        return f"OpenAI {self.model}"

    async def _write_story(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.prompt_manager.story_system_prompt()},
                {"role": "user", "content": prompt}
            ],
        }
        body = await self._post_json("/chat/completions", payload, retry=True)
        return self._message_content(body)

    async def summarize(self, story: str) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.prompt_manager.summary_system_prompt()},
                {"role": "user", "content": story}
            ],
        }
        body = await self._post_json("/chat/completions", payload, retry=True)
        return self._message_content(body)

    async def generate_image(self, prompt: str) -> str:
        payload = {
            "model": self.image_model,
            "prompt": prompt,
            "n": 1,
            "size": self.image_size,
            "response_format": "url"
        }
        body = await self._post_json("/images/generations", payload, retry=False)
        try:
            url = body["data"][0]["url"]
        except (KeyError, IndexError, TypeError):
            logger.error("Image response without url: %s", str(body)[:200])
            raise UpstreamTransportError("Unexpected image response structure")
        if not isinstance(url, str) or not url:
            raise UpstreamTransportError("Image response contained an empty url")
        return url

    async def _describe(self, image_bytes: bytes, content_type: str) -> str:
        encoded = base64.b64encode(image_bytes).decode("ascii")
        payload = {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "text",
                            "text": self.prompt_manager.image_description_prompt(self.min_paragraphs)
                        },
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{content_type};base64,{encoded}"}
                        }
                    ]
                }
            ],
            "temperature": 1,
            "max_tokens": self.describe_max_tokens,
            "top_p": 1,
            "frequency_penalty": 0,
            "presence_penalty": 0,
        }
        body = await self._post_json("/chat/completions", payload, retry=False)
        return self._message_content(body)

    async def _post_json(self, path: str, payload: Dict[str, Any], retry: bool) -> Dict[str, Any]:
        """POST with a bounded retry loop on 429 responses"""
        url = f"{self.base_url}{path}"
        attempts = self.max_retries if retry else 1

        for attempt in range(1, attempts + 1):
            status, headers, body = await self._send(url, payload)

            if status == 200:
                return body

            if status == 429:
                if attempt < attempts:
                    delay = self._retry_delay(headers, attempt)
                    logger.warning(
                        "OpenAI rate limited on %s (attempt %d/%d), retrying in %.1fs",
                        path, attempt, attempts, delay
                    )
                    await self._sleep(delay)
                    continue
                logger.error("OpenAI rate limit persisted on %s after %d attempts", path, attempt)
                raise UpstreamRateLimited(
                    f"OpenAI API rate limited after {attempt} attempts", attempts=attempt
                )

            logger.error("OpenAI API error on %s: status=%s body=%s", path, status, str(body)[:200])
            raise UpstreamTransportError(f"OpenAI API error: {status}", status=status)

    async def _send(self, url: str, payload: Dict[str, Any]):
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with self._session_factory(timeout=timeout) as session:
                async with session.post(url, headers=headers, json=payload) as response:
                    if response.status == 200:
                        return response.status, response.headers, await response.json()
                    return response.status, response.headers, await response.text()
        except asyncio.TimeoutError:
            logger.error("OpenAI API timed out after %ss: %s", self.timeout, url)
            raise UpstreamTransportError(f"OpenAI API request timed out after {self.timeout}s")
        except aiohttp.ClientError as e:
            logger.error("HTTP client error (%s): %s", type(e).__name__, str(e))
            raise UpstreamTransportError(f"HTTP client error: {str(e)}")
        except ValueError as e:
            logger.error("OpenAI API returned malformed JSON: %s", str(e))
            raise UpstreamTransportError("OpenAI API returned malformed JSON")

    def _retry_delay(self, headers, attempt: int) -> float:
        """Retry-After seconds when usable, else exponential backoff; never above max_retry_delay"""
        delay = self.backoff_base * (2 ** (attempt - 1))

        retry_after = headers.get("Retry-After") if headers else None
        if retry_after is not None:
            try:
                requested = float(retry_after)
            except ValueError:
                requested = math.nan
            if math.isnan(requested):
                logger.warning("Ignoring unparseable Retry-After header: %r", retry_after)
            else:
                delay = max(requested, 0.0)

        if not math.isfinite(delay) or delay > self.max_retry_delay:
            logger.warning("Capping retry delay %r to %.1fs", delay, self.max_retry_delay)
            delay = self.max_retry_delay
        return delay

    def _message_content(self, body: Dict[str, Any]) -> str:
        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            logger.error("OpenAI response without choices: %s", str(body)[:200])
            raise UpstreamTransportError("Unexpected response structure")
        if not isinstance(content, str):
            raise UpstreamTransportError("No valid message found in response")
        return content

class MockProvider(LLMProvider):
    """Offline provider backed by the template generator"""

    def __init__(self, min_paragraphs: int = DEFAULT_MIN_PARAGRAPHS):
        super().__init__(min_paragraphs)
        self.generator = MockStoryGenerator()

    def is_available(self) -> bool:
        return True

    def get_provider_name(self) -> str:
        return "Mock Provider"

    async def _write_story(self, prompt: str) -> str:
        return self.generator.generate_story(prompt)

    async def summarize(self, story: str) -> str:
        return self.generator.summarize(story)

    async def generate_image(self, prompt: str) -> str:
        return self.generator.image_url(prompt)

    async def _describe(self, image_bytes: bytes, content_type: str) -> str:
        return self.generator.describe_image(len(image_bytes), self.min_paragraphs)

class LLMProviderFactory:

    @staticmethod
    def get_provider(settings: Optional[Settings] = None) -> LLMProvider:
        settings = settings or get_settings()
        provider_name = settings.AI_PROVIDER.lower()

        if provider_name == "openai":
            if settings.OPENAI_API_KEY:
                return OpenAIProvider(
                    api_key=settings.OPENAI_API_KEY,
                    model=settings.OPENAI_MODEL,
                    image_model=settings.OPENAI_IMAGE_MODEL,
                    base_url=settings.OPENAI_BASE_URL,
                    image_size=settings.IMAGE_SIZE,
                    max_retries=settings.MAX_RETRIES,
                    backoff_base=settings.RETRY_BACKOFF_BASE,
                    max_retry_delay=settings.MAX_RETRY_DELAY,
                    timeout=settings.REQUEST_TIMEOUT,
                    describe_max_tokens=settings.DESCRIBE_MAX_TOKENS,
                    min_paragraphs=settings.MIN_DESCRIPTION_PARAGRAPHS,
                )
            logger.warning("AI_PROVIDER=openai but OPENAI_API_KEY is empty, using mock provider")
        elif provider_name != "mock":
            logger.warning("Unknown AI_PROVIDER %r, using mock provider", settings.AI_PROVIDER)

        return MockProvider(min_paragraphs=settings.MIN_DESCRIPTION_PARAGRAPHS)

    @staticmethod
    def get_available_providers(settings: Optional[Settings] = None) -> Dict[str, bool]:
        settings = settings or get_settings()
        return settings.get_available_providers()
