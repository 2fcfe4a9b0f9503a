"""Notification delivery daemon.

Created: 2026-02-14

Polls the notification queue for undelivered rows and pushes each one to
its agent's session through a DeliverySink. Runs continuously as the
``mc-notifications`` process.

Per-notification state: pending (delivered=False) -> delivered. A failed
send leaves the row pending and the next poll tries again; there is no
failed state. Which rows get attempted is decided by a RetryPolicy, so a
backoff or dead-letter policy can replace the default without touching the
loop.

Cycles never overlap, and rows inside a cycle are handled one at a time in
queue order, so two notifications for the same agent arrive in the order
they were queued.
"""

import asyncio
import logging
import signal
import sys
from typing import Protocol

from missioncontrol.config import get_settings
from missioncontrol.errors import MissionControlError
from missioncontrol.logging_setup import setup_logging
from missioncontrol.models import CycleResult, Notification
from missioncontrol.protocol import AgentDirectory, NotificationStore
from missioncontrol.sinks import DeliverySink, create_sink
from missioncontrol.store import FileMissionControlStore

logger = logging.getLogger(__name__)


class RetryPolicy(Protocol):
    """Decides whether a pending notification is attempted this cycle."""

    def should_attempt(self, notification: Notification) -> bool: ...

    def record_failure(self, notification: Notification) -> None: ...

    def record_success(self, notification: Notification) -> None: ...


class UnboundedRetryPolicy:
    """Attempt every pending notification on every cycle, forever."""

    def should_attempt(self, notification: Notification) -> bool:
        return True

    def record_failure(self, notification: Notification) -> None:
        pass

    def record_success(self, notification: Notification) -> None:
        pass


class NotificationDaemon:
    """Drains the notification queue into a delivery sink."""

    def __init__(
        self,
        notifications: NotificationStore,
        agents: AgentDirectory,
        sink: DeliverySink,
        poll_interval: float = 2.0,
        retry_policy: RetryPolicy | None = None,
    ):
        """Initialize the daemon.

        Args:
            notifications: Queue to drain.
            agents: Resolves an agent ID to its session key.
            sink: Where messages are sent.
            poll_interval: Seconds between the end of one cycle and the next.
            retry_policy: Defaults to UnboundedRetryPolicy.
        """
        self._notifications = notifications
        self._agents = agents
        self._sink = sink
        self.poll_interval = poll_interval
        self._retry = retry_policy or UnboundedRetryPolicy()
        self._running = False
        self.cycles = 0

    @property
    def running(self) -> bool:
        return self._running

    async def run_cycle(self) -> CycleResult:
        """Run one poll cycle over a snapshot of the undelivered queue."""
        result = CycleResult()
        try:
            pending = await self._notifications.get_undelivered_notifications()
        except MissionControlError as e:
            logger.error(f"Error fetching undelivered notifications: {e}")
            return result
        finally:
            self.cycles += 1

        if pending:
            logger.info(f"Processing {len(pending)} undelivered notification(s)")

        for notification in pending:
            result.processed += 1
            try:
                outcome = await self._deliver(notification)
            except Exception:
                # One bad row must not stall the rows queued behind it
                logger.exception(f"Unexpected error delivering notification {notification.id}")
                self._retry.record_failure(notification)
                outcome = False
            if outcome is None:
                result.skipped += 1
            elif outcome:
                result.delivered += 1
            else:
                result.pending += 1
        return result

    async def _deliver(self, notification: Notification) -> bool | None:
        """Try one notification. Returns None when it was not attempted."""
        if not self._retry.should_attempt(notification):
            return None

        try:
            agent = await self._agents.get_agent(notification.agent_id)
        except MissionControlError as e:
            logger.error(f"Error looking up agent {notification.agent_id}: {e}")
            return None

        if not agent or not agent.session_key:
            logger.warning(
                f"No session key for agent {notification.agent_id}; "
                f"notification {notification.id} stays queued"
            )
            return None

        sent = await self._sink.send(agent.session_key, notification.content)
        if not sent:
            logger.info(f"Agent {agent.name} is offline, notification queued")
            self._retry.record_failure(notification)
            return False

        try:
            await self._notifications.mark_notification_delivered(notification.id)
        except MissionControlError as e:
            # Sent but not recorded: the next cycle will send it again
            logger.error(f"Failed to mark notification {notification.id} as delivered: {e}")
            return False

        self._retry.record_success(notification)
        logger.info(f"Notification delivered to {agent.name} ({agent.session_key})")
        return True

    async def run_forever(self) -> None:
        """Run a cycle now, then one every ``poll_interval`` until stopped."""
        self._running = True
        logger.info(f"Polling every {self.poll_interval:.1f}s")
        while self._running:
            await self.run_cycle()
            if not self._running:
                break
            await asyncio.sleep(self.poll_interval)

    def stop(self) -> None:
        """Stop after the current cycle or sleep."""
        self._running = False


# ---------------------------------------------------------------------------
# Process entry point
# ---------------------------------------------------------------------------


async def _serve(daemon: NotificationDaemon, sink: DeliverySink) -> None:
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, task.cancel)

    try:
        await daemon.run_forever()
    except asyncio.CancelledError:
        logger.info("Shutting down notification daemon...")
    finally:
        aclose = getattr(sink, "aclose", None)
        if aclose is not None:
            await aclose()


def main() -> int:
    """Run the notification daemon until SIGINT/SIGTERM.

    Returns:
        0 on signal shutdown, 1 if startup failed.
    """
    try:
        settings = get_settings()
    except ValueError as e:
        setup_logging()
        logger.error(f"Invalid configuration: {e}")
        return 1
    setup_logging(settings.log_level)

    logger.info("Mission Control notification daemon starting...")
    try:
        store = FileMissionControlStore(settings.store_dir)
        sink = create_sink(settings)
    except (MissionControlError, ValueError) as e:
        logger.error(f"Startup failed: {e}")
        return 1

    logger.info(f"Store: {store.base_path}, sink: {settings.sink}")
    daemon = NotificationDaemon(store, store, sink, poll_interval=settings.poll_interval)
    asyncio.run(_serve(daemon, sink))
    return 0


if __name__ == "__main__":
    sys.exit(main())
