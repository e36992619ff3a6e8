"""
Request bodies (JSON keys match the web client)
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

class ChatRequest(BaseModel):
    message: str = Field(..., description="Story prompt, e.g. 'Tell me a story about ...'")

class PdfExportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    story: Optional[str] = Field(None, description="Full story text")
    image_url: Optional[str] = Field(None, alias="imageUrl", description="Provider-hosted image URL")
    story_name: Optional[str] = Field(None, alias="storyName", description="Title shown on the first page")

class RegenerateStoryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    story: Optional[str] = Field(None, description="Previous story text")
    regenerate_prompt: Optional[str] = Field(None, alias="regeneratePrompt", description="Replacement prompt")

class RegenerateImageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    summary: Optional[str] = Field(None, description="Previous summary, used as the image prompt")
    regenerate_prompt: Optional[str] = Field(None, alias="regeneratePrompt", description="Replacement prompt")
