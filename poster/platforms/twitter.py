"""
Twitter/X media publishing.

Uploads media through the v1.1 upload endpoint (single-shot for images,
chunked INIT/APPEND/FINALIZE/STATUS for video) and creates the post through
API v2. Every request is signed with OAuth 1.0a (HMAC-SHA1); authlib
computes a fresh nonce, timestamp and signature per request. Only the
Authorization header is added; multipart and JSON bodies go out as built.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from authlib.oauth1 import ClientAuth

from poster.config import TwitterSettings, get_settings
from poster.errors import ProcessingError, UploadError
from poster.polling import JobStatus, PollingPolicy, poll_until_done
from poster.sessions import SessionManager
from poster.types import (
    FetchedMedia,
    Platform,
    PlatformResult,
    PublishRequest,
    UploadJob,
    UploadState,
)

from .base import BasePlatform

STATUS_MAX_ATTEMPTS = 60
STATUS_DEFAULT_INTERVAL = 5.0


@dataclass(frozen=True)
class TwitterCredentials:
    """The OAuth 1.0a key set; long-lived, so the session never expires."""

    api_key: str
    api_secret: str
    access_token: str
    access_secret: str

    def __repr__(self) -> str:
        return "TwitterCredentials(***)"


class OAuth1HeaderAuth(httpx.Auth, ClientAuth):
    """
    OAuth 1.0a signing that leaves the request body untouched.

    Twitter signs multipart and JSON requests over the method, URL and
    query only, so the signature is computed with an empty body and the
    Authorization header is copied onto the original request.
    """

    def auth_flow(self, request: httpx.Request):
        _, headers, _ = self.sign(request.method, str(request.url), {}, b"")
        request.headers["Authorization"] = headers["Authorization"]
        yield request


def _processing_state(status: JobStatus) -> Optional[str]:
    return (status.get("processing_info") or {}).get("state")


def _check_after(status: JobStatus) -> Optional[float]:
    return (status.get("processing_info") or {}).get("check_after_secs")


def _describe_processing_failure(status: JobStatus) -> str:
    info = status.get("processing_info") or {}
    message = (info.get("error") or {}).get("message")
    if message:
        return f"Twitter video processing failed: {message}"
    return f"Twitter video processing failed: {json.dumps(info)}"


class TwitterPlatform(BasePlatform):
    """
    Twitter/X driver.

    Images take one multipart upload. Videos go through the chunked upload
    state machine: INIT declares the exact byte count, APPEND sends fixed-size
    segments with strictly increasing segment_index, FINALIZE closes the
    upload and STATUS is polled while the platform transcodes.
    """

    platform = Platform.TWITTER
    display_name = "Twitter"
    session_ttl = None

    def __init__(
        self,
        sessions: SessionManager,
        settings: Optional[TwitterSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or get_settings().twitter
        self._sleep = sleep
        super().__init__(sessions, transport=transport)

    @property
    def is_configured(self) -> bool:
        return self.settings.is_configured

    @property
    def upload_url(self) -> str:
        return self.settings.twitter_upload_url

    @property
    def tweets_url(self) -> str:
        return f"{self.settings.twitter_api_base.rstrip('/')}/tweets"

    @property
    def chunk_size(self) -> int:
        return self.settings.twitter_chunk_size

    def status_policy(self) -> PollingPolicy:
        return PollingPolicy(
            max_attempts=STATUS_MAX_ATTEMPTS,
            default_interval=STATUS_DEFAULT_INTERVAL,
            is_done=lambda status: _processing_state(status) == "succeeded",
            is_failed=lambda status: _processing_state(status) == "failed",
            interval_hint=_check_after,
            sleep=self._sleep,
        )

    async def login(self) -> TwitterCredentials:
        """Verify the four OAuth 1.0a secrets are present."""
        self._ensure_configured()
        return TwitterCredentials(
            api_key=self.settings.twitter_api_key.get_secret_value(),
            api_secret=self.settings.twitter_api_secret.get_secret_value(),
            access_token=self.settings.twitter_access_token.get_secret_value(),
            access_secret=self.settings.twitter_access_secret.get_secret_value(),
        )

    def _signed_client(self, credentials: TwitterCredentials) -> httpx.AsyncClient:
        auth = OAuth1HeaderAuth(
            client_id=credentials.api_key,
            client_secret=credentials.api_secret,
            token=credentials.access_token,
            token_secret=credentials.access_secret,
        )
        return self._client(auth=auth)

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    async def publish(self, media: FetchedMedia, request: PublishRequest) -> PlatformResult:
        session = await self._session()

        async with self._signed_client(session.credentials) as client:
            if request.is_video:
                media_id = await self.upload_video(client, media.data, request.media_type)
            else:
                media_id = await self.upload_image(client, media.data, request.media_type)

            self._logger.info(f"Twitter: media uploaded, id={media_id}")
            tweet_id = await self.create_tweet(client, request.caption, media_id)

        self._logger.info(f"Twitter: tweet created, id={tweet_id}")
        return PlatformResult.ok(id=tweet_id)

    async def upload_image(
        self,
        client: httpx.AsyncClient,
        data: bytes,
        media_type: str,
    ) -> str:
        """Single-shot multipart upload; returns media_id_string."""
        response = await client.post(
            self.upload_url,
            data={"media_category": "tweet_image"},
            files={"media": ("media", data, media_type)},
        )
        payload = self._check_response(response, "image upload")
        return self._media_id(payload, "image upload")

    async def upload_video(
        self,
        client: httpx.AsyncClient,
        data: bytes,
        media_type: str,
    ) -> str:
        """
        Chunked upload of a video.

        Returns:
            The media id, once the platform has finished processing it

        Raises:
            UploadError: If INIT, any APPEND segment, FINALIZE or STATUS fails
            ProcessingError: If the platform reports processing failed
            PollingTimeoutError: If processing never finishes
        """
        job = UploadJob(platform=self.name, total_bytes=len(data))
        try:
            await self._chunked_upload(client, job, data, media_type)
        except Exception:
            job.advance(UploadState.FAILED)
            raise

        job.advance(UploadState.DONE)
        return job.media_id

    async def _chunked_upload(
        self,
        client: httpx.AsyncClient,
        job: UploadJob,
        data: bytes,
        media_type: str,
    ) -> None:
        # INIT
        response = await client.post(
            self.upload_url,
            params={
                "command": "INIT",
                "total_bytes": str(job.total_bytes),
                "media_type": media_type,
                "media_category": "tweet_video",
            },
        )
        job.media_id = self._media_id(self._check_response(response, "INIT"), "INIT")
        self._logger.info(f"Twitter INIT: media_id={job.media_id}, total_bytes={job.total_bytes}")

        # APPEND
        job.advance(UploadState.APPENDING)
        total_segments = max(1, -(-job.total_bytes // self.chunk_size))
        for segment_index in range(total_segments):
            start = segment_index * self.chunk_size
            segment = data[start:start + self.chunk_size]
            response = await client.post(
                self.upload_url,
                params={
                    "command": "APPEND",
                    "media_id": job.media_id,
                    "segment_index": str(segment_index),
                },
                files={"media": ("chunk", segment, "application/octet-stream")},
            )
            self._check_response(
                response, f"APPEND (segment {segment_index}/{total_segments})"
            )
            job.segments_sent += 1
            job.bytes_sent += len(segment)
            self._logger.info(f"Twitter APPEND: segment {segment_index + 1}/{total_segments}")

        # FINALIZE
        job.advance(UploadState.FINALIZING)
        response = await client.post(
            self.upload_url,
            params={"command": "FINALIZE", "media_id": job.media_id},
        )
        finalized = self._check_response(response, "FINALIZE")
        self._logger.info(f"Twitter FINALIZE: {json.dumps(finalized)}")

        state = _processing_state(finalized)
        if finalized.get("processing_info") and state != "succeeded":
            if state == "failed":
                raise ProcessingError(_describe_processing_failure(finalized), platform=self.name)
            job.advance(UploadState.PROCESSING)
            await self._wait_for_processing(client, job, finalized)

    async def _wait_for_processing(
        self,
        client: httpx.AsyncClient,
        job: UploadJob,
        finalized: Dict[str, Any],
    ) -> None:
        async def fetch_status() -> JobStatus:
            job.attempts += 1
            response = await client.get(
                self.upload_url,
                params={"command": "STATUS", "media_id": job.media_id},
            )
            status = self._check_response(response, "STATUS")
            return {**status, "state": _processing_state(status)}

        await poll_until_done(
            fetch_status,
            self.status_policy(),
            _describe_processing_failure,
            label="Twitter STATUS",
            platform=self.name,
            initial_status=finalized,
        )

    async def create_tweet(
        self,
        client: httpx.AsyncClient,
        caption: str,
        media_id: str,
    ) -> str:
        """Create the post; the text field is omitted for an empty caption."""
        body: Dict[str, Any] = {"media": {"media_ids": [media_id]}}
        if caption:
            body = {"text": caption, **body}

        response = await client.post(self.tweets_url, json=body)
        payload = self._check_response(response, "post")
        tweet_id = (payload.get("data") or {}).get("id")
        if not tweet_id:
            raise self._missing_field("post", "data.id", payload)
        return str(tweet_id)

    def _media_id(self, payload: Dict[str, Any], step: str) -> str:
        media_id = payload.get("media_id_string") or payload.get("media_id")
        if not media_id:
            raise self._missing_field(step, "media_id_string", payload)
        return str(media_id)

    def _missing_field(self, step: str, field_name: str, payload: Dict[str, Any]) -> UploadError:
        return UploadError(
            f"Twitter {step} error: response missing {field_name}: {json.dumps(payload)}",
            platform=self.name,
            raw_error=payload,
        )
