"""Daily standup report.

Created: 2026-02-14

Summarizes activity since yesterday's local midnight, plus the tasks each
agent currently has in progress or blocked, and sends the report to the
lead agent's session. Run it from cron as ``mc-standup``::

    0 18 * * * mc-standup

The job does not retry: any failure exits 1 and the next scheduled run
rebuilds the report from current data.
"""

import asyncio
import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Protocol

from missioncontrol.config import Settings, get_settings
from missioncontrol.errors import DeliveryError
from missioncontrol.logging_setup import setup_logging
from missioncontrol.models import (
    Activity,
    ActivityType,
    AgentProfile,
    AgentStatus,
    Task,
    TaskStatus,
    parse_iso,
)
from missioncontrol.protocol import ActivityLog, AgentDirectory, TaskDirectory
from missioncontrol.sinks import DeliverySink, create_sink
from missioncontrol.store import FileMissionControlStore

logger = logging.getLogger(__name__)

RECENT_DISCUSSION_LIMIT = 5

_STATUS_ICONS = {
    AgentStatus.BUSY: "🟢",
    AgentStatus.IDLE: "⚪",
    AgentStatus.ERROR: "🔴",
}


@dataclass
class AgentDigest:
    """One agent's slice of the standup window."""

    agent: AgentProfile
    activities: list[Activity] = field(default_factory=list)
    completed: list[Activity] = field(default_factory=list)
    started: list[Activity] = field(default_factory=list)
    failed: list[Activity] = field(default_factory=list)
    in_progress: list[Task] = field(default_factory=list)
    blocked: list[Task] = field(default_factory=list)


@dataclass
class StandupData:
    """Everything the report is rendered from."""

    generated_at: datetime
    window_start: datetime
    agents: list[AgentProfile]
    activities: list[Activity]
    digests: dict[str, AgentDigest]

    def of_type(self, activity_type: ActivityType) -> list[Activity]:
        return [a for a in self.activities if a.type == activity_type]


class StoreLike(AgentDirectory, TaskDirectory, ActivityLog, Protocol):
    """Read access the reporter needs."""


def window_start(now: datetime) -> datetime:
    """Yesterday's midnight in ``now``'s timezone."""
    return (now - timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)


def format_date(now: datetime) -> str:
    """E.g. "Saturday, Feb 14, 2026"."""
    return f"{now:%A}, {now:%b} {now.day}, {now:%Y}"


class StandupReporter:
    """Builds the daily standup and pushes it to the lead session."""

    def __init__(
        self,
        store: StoreLike,
        sink: DeliverySink | None = None,
        session_key: str = "agent:main:main",
        clock: Callable[[], datetime] | None = None,
    ):
        self._store = store
        self._sink = sink
        self.session_key = session_key
        self._clock = clock or (lambda: datetime.now().astimezone())

    async def collect(self) -> StandupData:
        """Read agents, window activities and current task state."""
        now = self._clock()
        start = window_start(now)

        agents = await self._store.list_agents(limit=1000)
        activities = [
            a
            for a in await self._store.get_activities(since=start.isoformat(), limit=None)
            if parse_iso(a.created_at) <= now
        ]
        in_progress = await self._store.list_tasks(status=TaskStatus.IN_PROGRESS, limit=1000)
        blocked = await self._store.list_tasks(status=TaskStatus.BLOCKED, limit=1000)

        digests: dict[str, AgentDigest] = {}
        for agent in agents:
            mine = [a for a in activities if a.agent_id == agent.id]
            digests[agent.id] = AgentDigest(
                agent=agent,
                activities=mine,
                completed=[a for a in mine if a.type == ActivityType.TASK_COMPLETED],
                started=[a for a in mine if a.type == ActivityType.TASK_STARTED],
                failed=[a for a in mine if a.type == ActivityType.TASK_FAILED],
                in_progress=[t for t in in_progress if agent.id in t.assignee_ids],
                blocked=[t for t in blocked if agent.id in t.assignee_ids],
            )

        return StandupData(
            generated_at=now,
            window_start=start,
            agents=agents,
            activities=activities,
            digests=digests,
        )

    def render(self, data: StandupData) -> str:
        """Render the plain-text report."""
        names = {agent.id: agent.name for agent in data.agents}
        lines = [f"📊 DAILY STANDUP — {format_date(data.generated_at)}", ""]

        lines.append("✅ COMPLETED TODAY")
        completed = data.of_type(ActivityType.TASK_COMPLETED)
        if completed:
            for activity in completed:
                lines.append(f"• {names.get(activity.agent_id, 'Unknown')}: {activity.message}")
        else:
            lines.append("• No tasks completed today")
        lines.append("")

        lines.append("🔄 IN PROGRESS")
        in_progress = [
            (digest.agent.name, task)
            for digest in data.digests.values()
            for task in digest.in_progress
        ]
        if in_progress:
            for name, task in in_progress:
                lines.append(f"• {name}: {task.title}")
        else:
            lines.append("• No tasks in progress")
        lines.append("")

        blocked = [
            (digest.agent.name, task) for digest in data.digests.values() for task in digest.blocked
        ]
        if blocked:
            lines.append("🚫 BLOCKED")
            for name, task in blocked:
                lines.append(f"• {name}: {task.title}")
            lines.append("")

        discussion = data.of_type(ActivityType.MESSAGE_SENT)[:RECENT_DISCUSSION_LIMIT]
        if discussion:
            lines.append("💬 RECENT DISCUSSION")
            for activity in discussion:
                lines.append(f"• {names.get(activity.agent_id, 'Unknown')}: {activity.message}")
            lines.append("")

        lines.append("👥 AGENT STATUS")
        for agent in data.agents:
            icon = _STATUS_ICONS.get(agent.status, "⚫")
            line = f"{icon} {agent.name} ({agent.role})"
            digest = data.digests[agent.id]
            counts = [
                f"{len(items)} {label}"
                for label, items in (
                    ("completed", digest.completed),
                    ("started", digest.started),
                    ("failed", digest.failed),
                )
                if items
            ]
            if counts:
                line += f" — {', '.join(counts)}"
            lines.append(line)

        return "\n".join(lines) + "\n"

    async def generate(self) -> str:
        """Collect and render the report."""
        return self.render(await self.collect())

    async def send(self) -> str:
        """Generate the report and deliver it to the lead session.

        Raises:
            DeliveryError: No sink, or the sink rejected the report.
        """
        if self._sink is None:
            raise DeliveryError("No delivery sink configured")

        report = await self.generate()
        if not await self._sink.send(self.session_key, report):
            raise DeliveryError(f"Could not deliver standup to {self.session_key}")
        logger.info(f"Daily standup sent to {self.session_key}")
        return report


async def _run(settings: Settings) -> None:
    store = FileMissionControlStore(settings.store_dir)
    sink = create_sink(settings)
    try:
        await StandupReporter(store, sink, session_key=settings.standup_session_key).send()
    finally:
        aclose = getattr(sink, "aclose", None)
        if aclose is not None:
            await aclose()


def main() -> int:
    """Generate and send the standup once.

    Returns:
        0 on success, 1 on any failure.
    """
    try:
        settings = get_settings()
    except ValueError as e:
        setup_logging()
        logger.error(f"Invalid configuration: {e}")
        return 1
    setup_logging(settings.log_level)

    logger.info("Generating daily standup...")
    try:
        asyncio.run(_run(settings))
    except Exception as e:
        logger.error(f"Failed to send daily standup: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
