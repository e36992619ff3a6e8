from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from typing import Optional
import logging
from datetime import datetime

from config.settings import Settings, get_settings
from models.request_models import (
    ChatRequest,
    PdfExportRequest,
    RegenerateImageRequest,
    RegenerateStoryRequest,
)
from models.response_models import (
    ChatResponse,
    DescribeImageResponse,
    ErrorResponse,
    RegenerateImageResponse,
    RegenerateStoryResponse,
)
from providers.llm_provider import LLMProvider, LLMProviderFactory
from services.story_service import StoryService
from utils.errors import StoryServerError, UploadError, ValidationError

settings = get_settings()

logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger(__name__)

for warning in settings.validate_settings():
    logger.warning("Config: %s", warning)

app = FastAPI(
    title="Story Studio Server",
    description="Story, summary, illustration and PDF generation on top of a hosted AI provider",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

GENERIC_ERROR = "Internal Server Error"

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    500: {"model": ErrorResponse, "description": "Unexpected failure"},
    502: {"model": ErrorResponse, "description": "Provider or image host failure"},
    503: {"model": ErrorResponse, "description": "Provider rate limit persisted"},
}


def get_provider(settings: Settings = Depends(get_settings)) -> LLMProvider:
    return LLMProviderFactory.get_provider(settings)


def get_story_service(
    provider: LLMProvider = Depends(get_provider),
    settings: Settings = Depends(get_settings),
) -> StoryService:
    return StoryService(provider, settings)


def _current_settings(request: Request) -> Settings:
    # Honour test overrides, handlers do not go through dependency injection
    return request.app.dependency_overrides.get(get_settings, get_settings)()


@app.get("/")
async def root(provider: LLMProvider = Depends(get_provider)):
    return {
        "message": "Story Studio Server",
        "status": "healthy",
        "provider": provider.get_provider_name(),
        "timestamp": datetime.now().isoformat(),
        "version": "1.0.0",
        "endpoints": ["chat", "pdf", "regenerate-story", "regenerate-image", "describe-image", "health"]
    }

@app.get("/health")
async def health_check(
    provider: LLMProvider = Depends(get_provider),
    settings: Settings = Depends(get_settings),
):
    return {
        "status": "healthy",
        "current_provider": provider.get_provider_name(),
        "available_providers": LLMProviderFactory.get_available_providers(settings),
        "timestamp": datetime.now().isoformat()
    }

@app.post("/api/chat", response_model=ChatResponse, responses=ERROR_RESPONSES)
async def chat(request: ChatRequest, service: StoryService = Depends(get_story_service)):
    result = await service.create_story(request.message)
    return ChatResponse(
        story=result.story,
        summary=result.summary,
        image_url=result.image_url,
        story_name=result.story_name,
    )

@app.post(
    "/api/pdf",
    response_class=Response,
    responses={200: {"content": {"application/pdf": {}}}, **ERROR_RESPONSES},
)
async def export_pdf(request: PdfExportRequest, service: StoryService = Depends(get_story_service)):
    pdf_data = await service.export_pdf(request.story, request.image_url, request.story_name)
    return Response(
        content=pdf_data,
        media_type="application/pdf",
        headers={"Content-Disposition": "attachment; filename=story.pdf"},
    )

@app.post("/api/regenerate-story", response_model=RegenerateStoryResponse, responses=ERROR_RESPONSES)
async def regenerate_story(request: RegenerateStoryRequest, service: StoryService = Depends(get_story_service)):
    new_story = await service.regenerate_story(request.story, request.regenerate_prompt)
    return RegenerateStoryResponse(new_story=new_story)

@app.post("/api/regenerate-image", response_model=RegenerateImageResponse, responses=ERROR_RESPONSES)
async def regenerate_image(request: RegenerateImageRequest, service: StoryService = Depends(get_story_service)):
    new_image_url = await service.regenerate_image(request.summary, request.regenerate_prompt)
    return RegenerateImageResponse(new_image_url=new_image_url)

@app.post("/api/describe-image", response_model=DescribeImageResponse, responses=ERROR_RESPONSES)
async def describe_image(
    image: Optional[UploadFile] = File(None),
    service: StoryService = Depends(get_story_service),
):
    if image is None:
        raise UploadError("No file uploaded")
    data = await image.read()
    description = await service.describe_image(data, image.content_type)
    return DescribeImageResponse(description=description)


@app.exception_handler(StoryServerError)
async def story_error_handler(request: Request, exc: StoryServerError):
    if exc.status_code >= 500:
        logger.error("%s failed: [%s] %s", request.url.path, exc.code, exc.message)
    else:
        logger.warning("%s rejected: [%s] %s", request.url.path, exc.code, exc.message)

    if _current_settings(request).LEGACY_ERRORS:
        if isinstance(exc, (ValidationError, UploadError)):
            return JSONResponse(status_code=400, content={"error": exc.message})
        return JSONResponse(status_code=500, content={"error": GENERIC_ERROR})

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code}
    )

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request body"
    logger.warning("%s rejected: %s", request.url.path, message)

    if _current_settings(request).LEGACY_ERRORS:
        # Legacy /api/pdf answers a bad body with 400, every other route with 500
        if request.url.path == "/api/pdf":
            return JSONResponse(status_code=400, content={"error": message})
        return JSONResponse(status_code=500, content={"error": GENERIC_ERROR})

    return JSONResponse(status_code=400, content={"error": message, "code": ValidationError.code})

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error("%s failed: %s", request.url.path, str(exc), exc_info=True)
    content = {"error": GENERIC_ERROR}
    if not _current_settings(request).LEGACY_ERRORS:
        content["code"] = StoryServerError.code
    return JSONResponse(status_code=500, content=content)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
