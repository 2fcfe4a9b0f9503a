"""Delivery sinks: push text into agent sessions.

Created: 2026-02-14

A sink answers one question per send: did the session accept the message?
Failures are ordinary (the agent's process is offline) and are reported as
False, never raised.

- CliSessionSink: runs ``openclaw sessions send --session K --message T``
- HttpSessionSink: POSTs ``{"session": K, "message": T}`` to a gateway URL
"""

import asyncio
import logging
from typing import Protocol, runtime_checkable

import httpx

from missioncontrol.config import Settings
from missioncontrol.errors import StartupError

logger = logging.getLogger(__name__)


@runtime_checkable
class DeliverySink(Protocol):
    """Something that can deliver text to an agent session."""

    async def send(self, session_key: str, text: str) -> bool:
        """Deliver ``text`` to ``session_key``. Returns True on success."""
        ...


class CliSessionSink:
    """Deliver through the session-messaging CLI.

    Arguments are passed to the executable directly (no shell), so message
    text needs no quoting.
    """

    def __init__(self, command: str = "openclaw", timeout: float = 30.0):
        self.command = command
        self.timeout = timeout

    async def send(self, session_key: str, text: str) -> bool:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.command,
                "sessions",
                "send",
                "--session",
                session_key,
                "--message",
                text,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (OSError, ValueError) as e:
            # ValueError: argv cannot carry NUL bytes
            logger.error(f"Cannot run {self.command} for {session_key}: {e}")
            return False

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            logger.info(f"Send to {session_key} timed out after {self.timeout:.0f}s")
            return False

        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip()
            logger.debug(f"Send to {session_key} exited {proc.returncode}: {detail}")
            return False
        return True


class HttpSessionSink:
    """Deliver through an HTTP session gateway."""

    def __init__(
        self,
        url: str,
        token: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        if not url:
            raise ValueError("HttpSessionSink requires a URL")
        self.url = url
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._http = client or httpx.AsyncClient(timeout=timeout, headers=headers)

    async def send(self, session_key: str, text: str) -> bool:
        try:
            resp = await self._http.post(self.url, json={"session": session_key, "message": text})
        except httpx.HTTPError as e:
            logger.debug(f"Session gateway error for {session_key}: {e}")
            return False

        if resp.status_code >= 400:
            logger.debug(
                f"Session gateway rejected {session_key} ({resp.status_code}): {resp.text}"
            )
            return False
        return True

    async def aclose(self) -> None:
        await self._http.aclose()


def create_sink(settings: Settings) -> CliSessionSink | HttpSessionSink:
    """Build the sink selected by settings.

    Raises:
        StartupError: The HTTP sink is selected without a URL.
    """
    if settings.sink == "http":
        if not settings.sink_url:
            raise StartupError("MISSIONCONTROL_SINK_URL is required when MISSIONCONTROL_SINK=http")
        return HttpSessionSink(
            settings.sink_url, token=settings.sink_token, timeout=settings.sink_timeout
        )
    return CliSessionSink(settings.sink_command, timeout=settings.sink_timeout)
