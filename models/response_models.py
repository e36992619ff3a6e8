"""
Response bodies (JSON keys match the web client)
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    story: str
    summary: str
    image_url: str = Field(..., alias="imageUrl")
    story_name: str = Field(..., alias="storyName")

class RegenerateStoryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_story: str = Field(..., alias="newStory")

class RegenerateImageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_image_url: str = Field(..., alias="newImageUrl")

class DescribeImageResponse(BaseModel):
    description: str

class ErrorResponse(BaseModel):
    error: str
    code: Optional[str] = None
