"""
Publish endpoints.

POST /post/twitter, /post/bluesky and /post/all accept
{mediaUrl, caption?, isVideo?, mediaType?} and answer with one result per
dispatched platform:

- 200 when every platform succeeded
- 207 when some succeeded and some failed
- 500 when all failed
"""

import logging
from typing import List

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from poster.publisher import ALL_PLATFORMS, PublisherService, get_publisher_service
from poster.types import Platform, PublishRequest

from ..auth import verify_api_key
from ..models import ErrorResponse, PublishResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/post",
    tags=["publish"],
    dependencies=[Depends(verify_api_key)],
    responses={
        207: {"model": PublishResponse, "description": "Partial success"},
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse, "description": "All platforms failed or server misconfigured"},
    },
)


async def _publish(
    request: PublishRequest,
    targets: List[str],
    publisher: PublisherService,
) -> JSONResponse:
    logger.info(
        f"Publishing {'video' if request.is_video else 'image'} to {', '.join(targets)}"
    )
    result = await publisher.publish(request, targets)
    return JSONResponse(status_code=result.http_status, content=result.to_response())


@router.post("/twitter", response_model=PublishResponse, summary="Publish to Twitter/X")
async def post_twitter(
    request: PublishRequest,
    publisher: PublisherService = Depends(get_publisher_service),
) -> JSONResponse:
    return await _publish(request, [Platform.TWITTER.value], publisher)


@router.post("/bluesky", response_model=PublishResponse, summary="Publish to Bluesky")
async def post_bluesky(
    request: PublishRequest,
    publisher: PublisherService = Depends(get_publisher_service),
) -> JSONResponse:
    return await _publish(request, [Platform.BLUESKY.value], publisher)


@router.post("/all", response_model=PublishResponse, summary="Publish to every platform")
async def post_all(
    request: PublishRequest,
    publisher: PublisherService = Depends(get_publisher_service),
) -> JSONResponse:
    return await _publish(request, list(ALL_PLATFORMS), publisher)
