"""
Best-effort video dimension probing via ffprobe.

Used only to pick an aspect-ratio hint for video posts, so every failure
(ffprobe missing, unreadable container, timeout) yields None instead of an
exception.
"""

import asyncio
import json
import logging
import os
import tempfile
from math import gcd
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SECONDS = 15
DEFAULT_ASPECT_RATIO = (16, 9)


def _write_temp_copy(data: bytes) -> str:
    with tempfile.NamedTemporaryFile(suffix=".media", delete=False) as handle:
        handle.write(data)
        return handle.name


async def probe_dimensions(data: bytes) -> Optional[Tuple[int, int]]:
    """
    Read the width and height of the first video stream.

    Args:
        data: Raw media bytes (read only; a temporary copy is probed)

    Returns:
        (width, height) or None if the dimensions could not be determined
    """
    if not data:
        return None

    path = await asyncio.to_thread(_write_temp_copy, data)
    try:
        try:
            process = await asyncio.create_subprocess_exec(
                "ffprobe",
                "-v", "error",
                "-select_streams", "v:0",
                "-show_entries", "stream=width,height",
                "-of", "json",
                path,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            logger.debug("ffprobe not found in PATH, using default aspect ratio")
            return None

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=PROBE_TIMEOUT_SECONDS
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.warning("ffprobe timed out, using default aspect ratio")
            return None

        if process.returncode != 0:
            logger.debug(f"ffprobe failed: {stderr.decode(errors='ignore').strip()[:200]}")
            return None

        return parse_ffprobe_output(stdout.decode(errors="ignore"))
    finally:
        await asyncio.to_thread(_remove_quietly, path)


def _remove_quietly(path: str) -> None:
    try:
        os.unlink(path)
    except OSError as e:
        logger.warning(f"Could not remove probe file {path}: {e}")


def parse_ffprobe_output(output: str) -> Optional[Tuple[int, int]]:
    """Extract (width, height) from ffprobe's JSON output."""
    try:
        payload = json.loads(output or "{}")
    except json.JSONDecodeError:
        return None

    for stream in payload.get("streams") or []:
        if not isinstance(stream, dict):
            continue
        width, height = stream.get("width"), stream.get("height")
        if isinstance(width, int) and isinstance(height, int) and width > 0 and height > 0:
            return width, height
    return None


def aspect_ratio(dimensions: Optional[Tuple[int, int]]) -> Tuple[int, int]:
    """Reduce dimensions to their simplest ratio, defaulting to 16:9."""
    if not dimensions:
        return DEFAULT_ASPECT_RATIO
    width, height = dimensions
    if width <= 0 or height <= 0:
        return DEFAULT_ASPECT_RATIO
    divisor = gcd(width, height)
    return width // divisor, height // divisor
