"""
Bluesky (AT Protocol) media publishing.

Talks XRPC over httpx directly. Images are uploaded as repo blobs; videos go
through the video service, which authenticates with a short-lived service
token scoped to the account's PDS and returns a job to poll.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

import httpx

from poster.config import BlueskySettings, get_settings
from poster.errors import AuthError, UploadError
from poster.media import aspect_ratio, probe_dimensions
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
from .richtext import detect_facets

VIDEO_MAX_ATTEMPTS = 120
VIDEO_POLL_INTERVAL = 5.0
SERVICE_TOKEN_LIFETIME = 30 * 60

UPLOAD_BLOB_LXM = "com.atproto.repo.uploadBlob"
JOB_STATE_COMPLETED = "JOB_STATE_COMPLETED"
JOB_STATE_FAILED = "JOB_STATE_FAILED"
AUTH_ERROR_NAMES = ("ExpiredToken", "InvalidToken")


@dataclass(frozen=True)
class BlueskyCredentials:
    """Result of createSession."""

    did: str
    handle: str
    access_jwt: str
    refresh_jwt: str
    service: str

    def __repr__(self) -> str:
        return f"BlueskyCredentials(did={self.did!r}, handle={self.handle!r})"

    @property
    def auth_header(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.access_jwt}"}


def _job_state(status: JobStatus) -> Optional[str]:
    return status.get("state")


def _describe_job_failure(status: JobStatus) -> str:
    return f"Bluesky video processing failed: {status.get('error') or 'unknown error'}"


def _created_at() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class BlueskyPlatform(BasePlatform):
    """
    Bluesky driver.

    Captions are scanned for mentions, links and hashtags before the post is
    composed. Image posts embed app.bsky.embed.images with the caption as alt
    text; video posts embed app.bsky.embed.video with an aspect ratio probed
    from the bytes (16:9 when probing is not possible).
    """

    platform = Platform.BLUESKY
    display_name = "Bluesky"

    def __init__(
        self,
        sessions: SessionManager,
        settings: Optional[BlueskySettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or get_settings().bluesky
        self._sleep = sleep
        super().__init__(sessions, transport=transport)

    @property
    def is_configured(self) -> bool:
        return self.settings.is_configured

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(minutes=self.settings.bluesky_session_ttl_minutes)

    @property
    def service(self) -> str:
        return self.settings.bluesky_service.rstrip("/")

    @property
    def video_service(self) -> str:
        return self.settings.bluesky_video_service.rstrip("/")

    def _xrpc(self, base: str, method: str) -> str:
        return f"{base}/xrpc/{method}"

    def job_policy(self) -> PollingPolicy:
        return PollingPolicy(
            max_attempts=VIDEO_MAX_ATTEMPTS,
            default_interval=VIDEO_POLL_INTERVAL,
            is_done=lambda status: _job_state(status) == JOB_STATE_COMPLETED,
            is_failed=lambda status: _job_state(status) == JOB_STATE_FAILED,
            sleep=self._sleep,
        )

    def _is_auth_failure(self, response: httpx.Response) -> bool:
        if response.status_code == 401:
            return True
        if response.status_code == 400:
            try:
                error = response.json().get("error")
            except (ValueError, AttributeError):
                return False
            return error in AUTH_ERROR_NAMES
        return False

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    async def login(self) -> BlueskyCredentials:
        """Create a session with the account identifier and app password."""
        self._ensure_configured()

        async with self._client() as client:
            response = await client.post(
                self._xrpc(self.service, "com.atproto.server.createSession"),
                json={
                    "identifier": self.settings.bluesky_identifier.strip(),
                    "password": self.settings.bluesky_password.get_secret_value(),
                },
            )

        if not response.is_success:
            raise AuthError(
                f"Bluesky login error {response.status_code}: {response.text.strip()}",
                platform=self.name,
                status_code=response.status_code,
                raw_error=response.text,
            )

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise AuthError("Bluesky login error: response is not a JSON object", platform=self.name)
        for required in ("did", "accessJwt"):
            if not data.get(required):
                raise AuthError(
                    f"Bluesky login error: response missing {required}",
                    platform=self.name,
                )

        self._logger.info(f"Bluesky: logged in as {data.get('handle')}")
        return BlueskyCredentials(
            did=data["did"],
            handle=data.get("handle", ""),
            access_jwt=data["accessJwt"],
            refresh_jwt=data.get("refreshJwt", ""),
            service=self.service,
        )

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    async def publish(self, media: FetchedMedia, request: PublishRequest) -> PlatformResult:
        job = UploadJob(platform=self.name, state=UploadState.RESOLVE_SESSION, total_bytes=media.size)
        try:
            created = await self._publish(job, media, request)
        except Exception:
            job.advance(UploadState.FAILED)
            raise

        job.advance(UploadState.DONE)
        self._logger.info(f"Bluesky: post created, uri={created['uri']}")
        return PlatformResult.ok(uri=created["uri"], cid=created["cid"])

    async def _publish(
        self,
        job: UploadJob,
        media: FetchedMedia,
        request: PublishRequest,
    ) -> Dict[str, Any]:
        session = await self._session()
        credentials: BlueskyCredentials = session.credentials

        async with self._client() as client:
            facets = await detect_facets(
                request.caption, partial(self.resolve_handle, client, credentials)
            )

            if request.is_video:
                blob = await self.upload_video(client, credentials, job, media.data, request.media_type)
                width, height = await self._aspect_ratio(media.data)
                embed = {
                    "$type": "app.bsky.embed.video",
                    "video": blob,
                    "aspectRatio": {"width": width, "height": height},
                }
            else:
                job.advance(UploadState.UPLOAD_BLOB)
                blob = await self.upload_image(client, credentials, media.data, request.media_type)
                embed = {
                    "$type": "app.bsky.embed.images",
                    "images": [{"alt": request.caption, "image": blob}],
                }

            job.advance(UploadState.COMPOSE_POST)
            return await self.create_post(client, credentials, request.caption, facets, embed)

    async def resolve_handle(
        self,
        client: httpx.AsyncClient,
        credentials: BlueskyCredentials,
        handle: str,
    ) -> Optional[str]:
        """Look up the DID for a mentioned handle; None if it does not resolve."""
        try:
            response = await client.get(
                self._xrpc(self.service, "com.atproto.identity.resolveHandle"),
                params={"handle": handle},
                headers=credentials.auth_header,
            )
        except httpx.HTTPError as e:
            self._logger.warning(f"Could not resolve handle {handle}: {e}")
            return None

        if not response.is_success:
            self._logger.debug(f"Handle {handle} did not resolve ({response.status_code})")
            return None
        try:
            return response.json().get("did")
        except ValueError:
            return None

    async def upload_image(
        self,
        client: httpx.AsyncClient,
        credentials: BlueskyCredentials,
        data: bytes,
        media_type: str,
    ) -> Dict[str, Any]:
        """Upload raw image bytes as a blob and return the blob reference."""
        response = await client.post(
            self._xrpc(self.service, "com.atproto.repo.uploadBlob"),
            content=data,
            headers={**credentials.auth_header, "Content-Type": media_type},
        )
        payload = self._check_response(response, "uploadBlob")
        return self._require(payload, "blob", "uploadBlob")

    async def upload_video(
        self,
        client: httpx.AsyncClient,
        credentials: BlueskyCredentials,
        job: UploadJob,
        data: bytes,
        media_type: str,
    ) -> Dict[str, Any]:
        """
        Upload a video through the video service, advancing the job through
        RESOLVE_ENDPOINT, GET_SERVICE_TOKEN, SUBMIT_JOB and POLL.

        Returns:
            The processed video's blob reference

        Raises:
            UploadError: If any step answers non-2xx
            ProcessingError: If the video service reports the job failed
            PollingTimeoutError: If the job never completes
        """
        job.advance(UploadState.RESOLVE_ENDPOINT)
        pds_host = await self.resolve_pds_host(client, credentials.did)

        job.advance(UploadState.GET_SERVICE_TOKEN)
        token = await self.get_service_token(client, credentials, f"did:web:{pds_host}")

        job.advance(UploadState.SUBMIT_JOB)
        response = await client.post(
            self._xrpc(self.video_service, "app.bsky.video.uploadVideo"),
            params={"did": credentials.did, "name": "video.mp4"},
            content=data,
            headers={"Authorization": f"Bearer {token}", "Content-Type": media_type},
        )
        submitted = self._check_response(response, "video upload")
        job.job_id = (submitted.get("jobStatus") or submitted).get("jobId")
        if not job.job_id:
            raise self._missing_field("video upload", "jobId")
        job.bytes_sent = len(data)
        self._logger.info(f"Bluesky: video upload started, job={job.job_id}")

        async def fetch_status() -> JobStatus:
            job.attempts += 1
            status_response = await client.get(
                self._xrpc(self.video_service, "app.bsky.video.getJobStatus"),
                params={"jobId": job.job_id},
                headers=credentials.auth_header,
            )
            payload = self._check_response(status_response, "video status")
            return payload.get("jobStatus") or {}

        job.advance(UploadState.POLL)
        status = await poll_until_done(
            fetch_status,
            self.job_policy(),
            _describe_job_failure,
            label="Bluesky video status",
            platform=self.name,
        )

        return self._require(status, "blob", "video status")

    async def resolve_pds_host(self, client: httpx.AsyncClient, did: str) -> str:
        """Find the hostname of the account's PDS from its DID document."""
        if did.startswith("did:plc:"):
            url = f"{self.settings.bluesky_plc_directory.rstrip('/')}/{did}"
        elif did.startswith("did:web:"):
            url = f"https://{did[len('did:web:'):]}/.well-known/did.json"
        else:
            raise UploadError(f"Bluesky unsupported DID method: {did}", platform=self.name)

        response = await client.get(url)
        document = self._check_response(response, "DID resolution")

        for service in document.get("service") or []:
            if str(service.get("id", "")).endswith("#atproto_pds"):
                host = urlsplit(service.get("serviceEndpoint", "")).hostname
                if host:
                    return host

        raise self._missing_field("DID resolution", "#atproto_pds service")

    async def get_service_token(
        self,
        client: httpx.AsyncClient,
        credentials: BlueskyCredentials,
        audience: str,
    ) -> str:
        response = await client.get(
            self._xrpc(self.service, "com.atproto.server.getServiceAuth"),
            params={
                "aud": audience,
                "lxm": UPLOAD_BLOB_LXM,
                "exp": str(int(time.time()) + SERVICE_TOKEN_LIFETIME),
            },
            headers=credentials.auth_header,
        )
        payload = self._check_response(response, "getServiceAuth")
        return self._require(payload, "token", "getServiceAuth")

    async def create_post(
        self,
        client: httpx.AsyncClient,
        credentials: BlueskyCredentials,
        text: str,
        facets: List[Dict[str, Any]],
        embed: Dict[str, Any],
    ) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "$type": "app.bsky.feed.post",
            "text": text,
            "createdAt": _created_at(),
        }
        if facets:
            record["facets"] = facets
        record["embed"] = embed

        response = await client.post(
            self._xrpc(self.service, "com.atproto.repo.createRecord"),
            json={
                "repo": credentials.did,
                "collection": "app.bsky.feed.post",
                "record": record,
            },
            headers=credentials.auth_header,
        )
        payload = self._check_response(response, "createRecord")
        return {
            "uri": self._require(payload, "uri", "createRecord"),
            "cid": self._require(payload, "cid", "createRecord"),
        }

    async def _aspect_ratio(self, data: bytes) -> Tuple[int, int]:
        try:
            dimensions = await probe_dimensions(data)
        except OSError as e:
            self._logger.warning(f"Video probe failed, using default aspect ratio: {e}")
            dimensions = None
        return aspect_ratio(dimensions)

    def _require(self, payload: Dict[str, Any], key: str, step: str) -> Any:
        value = payload.get(key)
        if not value:
            raise self._missing_field(step, key)
        return value

    def _missing_field(self, step: str, field_name: str) -> UploadError:
        return UploadError(
            f"Bluesky {step} error: response missing {field_name}",
            platform=self.name,
        )
