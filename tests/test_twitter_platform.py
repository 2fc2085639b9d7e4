"""
Tests for the Twitter/X driver.

The platform HTTP API is replaced with an httpx MockTransport; requests are
still signed by the real OAuth 1.0a implementation.
"""

import json
import logging
import re
from unittest.mock import patch

import httpx
import pytest

from poster.config import TwitterSettings
from poster.errors import AuthError, PollingTimeoutError, ProcessingError, UploadError
from poster.platforms import TwitterPlatform
from poster.types import FetchedMedia, PublishRequest

API_HOST = "api.twitter.com"


class FakeTwitter:
    """Scripted Twitter API that records every request."""

    def __init__(self, finalize=None, statuses=None, tweet_status=201, fail_segment=None):
        self.requests = []
        self.finalize = finalize or {"media_id_string": "222"}
        self.statuses = list(statuses or [])
        self.tweet_status = tweet_status
        self.fail_segment = fail_segment

    def commands(self):
        return [request.url.params.get("command") for request in self.requests]

    def tweet_bodies(self):
        return [json.loads(r.content) for r in self.requests if r.url.path == "/2/tweets"]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.host == API_HOST and request.url.path == "/2/tweets":
            if self.tweet_status == 401:
                return httpx.Response(401, json={"title": "Unauthorized"})
            return httpx.Response(self.tweet_status, json={"data": {"id": "999", "text": "hi"}})

        command = request.url.params.get("command")
        if command is None:
            return httpx.Response(200, json={"media_id_string": "111"})
        if command == "INIT":
            return httpx.Response(202, json={"media_id_string": "222"})
        if command == "APPEND":
            if request.url.params.get("segment_index") == self.fail_segment:
                return httpx.Response(500, text="segment rejected")
            return httpx.Response(204)
        if command == "FINALIZE":
            return httpx.Response(200, json=self.finalize)
        if command == "STATUS":
            return httpx.Response(200, json=self.statuses.pop(0))
        return httpx.Response(404)


def make_driver(api, sessions, settings, sleep):
    return TwitterPlatform(
        sessions,
        settings=settings,
        transport=httpx.MockTransport(api),
        sleep=sleep,
    )


def image_request(caption="Hello"):
    return PublishRequest(mediaUrl="https://cdn.example.com/a.jpg", caption=caption)


def video_request(caption="clip"):
    return PublishRequest(mediaUrl="https://cdn.example.com/a.mp4", caption=caption, isVideo=True)


class TestTwitterImage:
    """Tests for image posts."""

    @pytest.mark.asyncio
    async def test_image_is_single_upload(self, sessions, twitter_settings, no_sleep):
        """Images take one upload request and no chunked commands."""
        api = FakeTwitter()
        driver = make_driver(api, sessions, twitter_settings, no_sleep)

        result = await driver.publish(FetchedMedia(b"jpegbytes", "image/jpeg"), image_request())

        assert result.success is True
        assert result.id == "999"
        assert len(api.requests) == 2
        assert "INIT" not in api.commands()
        upload = api.requests[0]
        assert b'name="media_category"' in upload.content
        assert b"tweet_image" in upload.content
        assert b"jpegbytes" in upload.content
        assert api.tweet_bodies() == [{"text": "Hello", "media": {"media_ids": ["111"]}}]

    @pytest.mark.asyncio
    async def test_requests_are_oauth_signed(self, sessions, twitter_settings, no_sleep):
        """Every request carries its own OAuth 1.0a signature and nonce."""
        api = FakeTwitter()
        driver = make_driver(api, sessions, twitter_settings, no_sleep)

        await driver.publish(FetchedMedia(b"jpegbytes", "image/jpeg"), image_request())

        nonces = set()
        for request in api.requests:
            header = request.headers["Authorization"]
            assert header.startswith("OAuth ")
            assert 'oauth_signature_method="HMAC-SHA1"' in header
            assert 'oauth_consumer_key="ck"' in header
            assert 'oauth_token="at"' in header
            assert "oauth_signature=" in header
            nonces.add(re.search(r'oauth_nonce="([^"]+)"', header).group(1))
        assert len(nonces) == len(api.requests)

    @pytest.mark.asyncio
    async def test_signing_keeps_request_bodies(self, sessions, twitter_settings, no_sleep):
        """Signing adds a header without replacing multipart or JSON bodies."""
        api = FakeTwitter()
        driver = make_driver(api, sessions, twitter_settings, no_sleep)

        await driver.publish(FetchedMedia(b"abcdefghij", "video/mp4"), video_request())

        appends = [r for r in api.requests if r.url.params.get("command") == "APPEND"]
        tweet = api.requests[-1]
        for request in appends + [tweet]:
            assert len(request.content) > 0
            assert request.headers["Content-Length"] == str(len(request.content))
            assert "oauth_body_hash" not in request.headers["Authorization"]
        assert appends[0].headers["Content-Type"].startswith("multipart/form-data")
        assert tweet.headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_empty_caption_omits_text(self, sessions, twitter_settings, no_sleep):
        """No text field is sent when the caption is empty."""
        api = FakeTwitter()
        driver = make_driver(api, sessions, twitter_settings, no_sleep)

        await driver.publish(FetchedMedia(b"jpeg", "image/jpeg"), image_request(caption=""))

        assert api.tweet_bodies() == [{"media": {"media_ids": ["111"]}}]

    @pytest.mark.asyncio
    async def test_missing_credentials(self, sessions, no_sleep):
        """A driver without credentials fails before any request."""
        api = FakeTwitter()
        settings = TwitterSettings(
            twitter_api_key=None,
            twitter_api_secret=None,
            twitter_access_token=None,
            twitter_access_secret=None,
        )
        driver = make_driver(api, sessions, settings, no_sleep)

        with pytest.raises(AuthError) as exc_info:
            await driver.publish(FetchedMedia(b"jpeg", "image/jpeg"), image_request())

        assert exc_info.value.message == "Twitter credentials not configured"
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_rejected_credentials_invalidate_session(self, sessions, twitter_settings, no_sleep):
        """A 401 raises an auth error and drops the cached session."""
        api = FakeTwitter(tweet_status=401)
        driver = make_driver(api, sessions, twitter_settings, no_sleep)

        with patch.object(sessions, "invalidate", wraps=sessions.invalidate) as invalidate:
            with pytest.raises(AuthError) as exc_info:
                await driver.publish(FetchedMedia(b"jpeg", "image/jpeg"), image_request())

        invalidate.assert_called_once_with("twitter")
        assert exc_info.value.message.startswith("Twitter post error 401:")

    @pytest.mark.asyncio
    async def test_upload_error_includes_body(self, sessions, twitter_settings, no_sleep):
        """Non-2xx post responses surface their status and body."""
        api = FakeTwitter(tweet_status=403)
        driver = make_driver(api, sessions, twitter_settings, no_sleep)

        with pytest.raises(UploadError) as exc_info:
            await driver.publish(FetchedMedia(b"jpeg", "image/jpeg"), image_request())

        assert exc_info.value.message.startswith("Twitter post error 403:")
        assert exc_info.value.status_code == 403


class TestTwitterVideo:
    """Tests for the chunked video upload."""

    @pytest.mark.asyncio
    async def test_segments_cover_bytes_in_order(self, sessions, twitter_settings, no_sleep):
        """APPEND segments are numbered 0..N-1 and cover the file exactly."""
        api = FakeTwitter()
        driver = make_driver(api, sessions, twitter_settings, no_sleep)

        result = await driver.publish(FetchedMedia(b"abcdefghij", "video/mp4"), video_request())

        assert result.id == "999"
        assert api.commands() == ["INIT", "APPEND", "APPEND", "APPEND", "FINALIZE", None]

        init = api.requests[0].url.params
        assert init["total_bytes"] == "10"
        assert init["media_type"] == "video/mp4"
        assert init["media_category"] == "tweet_video"

        appends = [r for r in api.requests if r.url.params.get("command") == "APPEND"]
        assert [r.url.params["segment_index"] for r in appends] == ["0", "1", "2"]
        assert all(r.url.params["media_id"] == "222" for r in appends)
        for request, segment in zip(appends, [b"abcd", b"efgh", b"ij"]):
            assert segment in request.content
        assert b"abcdefgh" not in appends[0].content

        assert api.tweet_bodies() == [{"text": "clip", "media": {"media_ids": ["222"]}}]

    @pytest.mark.asyncio
    async def test_polls_status_until_succeeded(self, sessions, twitter_settings, no_sleep):
        """Processing is polled with the platform's check_after_secs hints."""
        api = FakeTwitter(
            finalize={
                "media_id_string": "222",
                "processing_info": {"state": "pending", "check_after_secs": 3},
            },
            statuses=[
                {"processing_info": {"state": "in_progress", "check_after_secs": 2}},
                {"processing_info": {"state": "succeeded"}},
            ],
        )
        driver = make_driver(api, sessions, twitter_settings, no_sleep)

        result = await driver.publish(FetchedMedia(b"abcd", "video/mp4"), video_request())

        assert result.success is True
        assert api.commands().count("STATUS") == 2
        assert no_sleep.calls == [3.0, 2.0]

    @pytest.mark.asyncio
    async def test_processing_failure(self, sessions, twitter_settings, no_sleep):
        """A failed processing state stops the upload with the platform message."""
        api = FakeTwitter(
            finalize={"media_id_string": "222", "processing_info": {"state": "pending"}},
            statuses=[{
                "processing_info": {
                    "state": "failed",
                    "error": {"code": 1, "name": "InvalidMedia", "message": "Unsupported codec"},
                },
            }],
        )
        driver = make_driver(api, sessions, twitter_settings, no_sleep)

        with pytest.raises(ProcessingError) as exc_info:
            await driver.publish(FetchedMedia(b"abcd", "video/mp4"), video_request())

        assert exc_info.value.message == "Twitter video processing failed: Unsupported codec"
        assert api.tweet_bodies() == []

    @pytest.mark.asyncio
    async def test_processing_timeout(self, sessions, twitter_settings, no_sleep):
        """STATUS is polled at most 60 times."""
        api = FakeTwitter(
            finalize={"media_id_string": "222", "processing_info": {"state": "pending"}},
            statuses=[{"processing_info": {"state": "in_progress"}}] * 60,
        )
        driver = make_driver(api, sessions, twitter_settings, no_sleep)

        with pytest.raises(PollingTimeoutError):
            await driver.publish(FetchedMedia(b"abcd", "video/mp4"), video_request())

        assert api.commands().count("STATUS") == 60

    @pytest.mark.asyncio
    async def test_failed_segment_stops_upload(self, sessions, twitter_settings, no_sleep):
        """A rejected APPEND names the segment and skips FINALIZE."""
        api = FakeTwitter(fail_segment="1")
        driver = make_driver(api, sessions, twitter_settings, no_sleep)

        with pytest.raises(UploadError) as exc_info:
            await driver.publish(FetchedMedia(b"abcdefghij", "video/mp4"), video_request())

        assert exc_info.value.message == "Twitter APPEND (segment 1/3) error 500: segment rejected"
        assert "FINALIZE" not in api.commands()

    @pytest.mark.asyncio
    async def test_empty_video_sends_one_segment(self, sessions, twitter_settings, no_sleep):
        """A zero-byte video still sends a single APPEND."""
        api = FakeTwitter()
        driver = make_driver(api, sessions, twitter_settings, no_sleep)

        await driver.publish(FetchedMedia(b"", "video/mp4"), video_request())

        assert api.commands().count("APPEND") == 1
        assert api.requests[0].url.params["total_bytes"] == "0"

    @pytest.mark.asyncio
    async def test_job_states(self, sessions, twitter_settings, no_sleep, caplog):
        """The upload job moves INIT -> APPENDING -> FINALIZING -> PROCESSING -> DONE."""
        caplog.set_level(logging.INFO, logger="poster.types.publishing")
        api = FakeTwitter(
            finalize={"media_id_string": "222", "processing_info": {"state": "pending"}},
            statuses=[{"processing_info": {"state": "succeeded"}}],
        )
        driver = make_driver(api, sessions, twitter_settings, no_sleep)

        await driver.publish(FetchedMedia(b"abcd", "video/mp4"), video_request())

        transitions = [
            (r.previous_state, r.state) for r in caplog.records if hasattr(r, "previous_state")
        ]
        assert transitions == [
            ("INIT", "APPENDING"),
            ("APPENDING", "FINALIZING"),
            ("FINALIZING", "PROCESSING"),
            ("PROCESSING", "DONE"),
        ]
        assert all(r.media_id == "222" for r in caplog.records if hasattr(r, "previous_state"))

    @pytest.mark.asyncio
    async def test_failed_upload_ends_in_failed_state(self, sessions, twitter_settings, no_sleep, caplog):
        """A rejected segment leaves the job in FAILED."""
        caplog.set_level(logging.INFO, logger="poster.types.publishing")
        driver = make_driver(FakeTwitter(fail_segment="0"), sessions, twitter_settings, no_sleep)

        with pytest.raises(UploadError):
            await driver.publish(FetchedMedia(b"abcd", "video/mp4"), video_request())

        states = [r.state for r in caplog.records if hasattr(r, "previous_state")]
        assert states == ["APPENDING", "FAILED"]

    @pytest.mark.asyncio
    async def test_image_never_enters_upload_states(self, sessions, twitter_settings, no_sleep, caplog):
        """The single-shot image path has no chunked job."""
        caplog.set_level(logging.INFO, logger="poster.types.publishing")
        driver = make_driver(FakeTwitter(), sessions, twitter_settings, no_sleep)

        await driver.publish(FetchedMedia(b"jpeg", "image/jpeg"), image_request())

        assert not any(hasattr(r, "previous_state") for r in caplog.records)
