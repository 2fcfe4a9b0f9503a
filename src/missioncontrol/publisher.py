"""Notification publisher.

Created: 2026-02-14

Turns domain events into queued Notification rows:
- Direct notifications (the atomic primitive every flow reduces to)
- @mention notifications parsed from free text
- Assignment notifications (not subscription gated)
- Thread fan-out to subscribers

Fan-out helpers never raise for a single bad recipient. The error is logged,
collected in the PublishResult, and the remaining recipients are still
notified.
"""

import logging
import re
from collections.abc import Iterable

from missioncontrol.errors import MissionControlError, NotFoundError
from missioncontrol.models import (
    AgentProfile,
    Notification,
    NotificationType,
    PublishResult,
    Task,
)
from missioncontrol.protocol import AgentDirectory, NotificationStore
from missioncontrol.subscriptions import SubscriptionManager

logger = logging.getLogger(__name__)

# A mention starts at "@" and runs through word characters and whitespace
# until the next "@", punctuation, or the end of the text.
MENTION_PATTERN = re.compile(r"@([\w\s]+)")

MENTION_PREVIEW_LENGTH = 50


def _normalize(text: str) -> str:
    return " ".join(text.split()).lower()


def extract_mentions(content: str, agents: Iterable[AgentProfile]) -> list[AgentProfile]:
    """Resolve @mentions in ``content`` against known agent names.

    Names match case-insensitively and may span several words, so
    "@Shuri Patel about this" resolves to an agent named "Shuri Patel".
    A name only matches when it ends at a word break; when more than one
    name fits, the longest wins ("@Shuri Patel" beats an agent named
    "Shuri"). Tokens matching nobody are ignored.

    Returns:
        Mentioned agents in first-mention order, without duplicates.
    """
    candidates = [(_normalize(agent.name), agent) for agent in agents if agent.name.strip()]
    candidates.sort(key=lambda pair: len(pair[0]), reverse=True)

    mentioned: list[AgentProfile] = []
    seen: set[str] = set()
    for match in MENTION_PATTERN.finditer(content):
        token = _normalize(match.group(1))
        if not token:
            continue
        for name, agent in candidates:
            if not token.startswith(name):
                continue
            rest = token[len(name) :]
            if rest and not rest[0].isspace():
                continue
            if agent.id not in seen:
                seen.add(agent.id)
                mentioned.append(agent)
            break
    return mentioned


def mention_preview(content: str) -> str:
    """Notification text for an agent mentioned in ``content``."""
    return f'You were mentioned in a message: "{content[:MENTION_PREVIEW_LENGTH]}..."'


class NotificationPublisher:
    """Queues notifications for agents."""

    def __init__(
        self,
        store: NotificationStore,
        subscriptions: SubscriptionManager | None = None,
        agents: AgentDirectory | None = None,
    ):
        """Initialize the publisher.

        Args:
            store: Notification repository.
            subscriptions: Needed for notify_subscribers().
            agents: Used to reject unknown recipients. Skipped when None.
        """
        self._store = store
        self._subscriptions = subscriptions
        self._agents = agents

    async def notify(
        self,
        agent_id: str,
        content: str,
        notification_type: NotificationType | str = NotificationType.INFO,
        related_task_id: str | None = None,
    ) -> Notification:
        """Queue one undelivered notification.

        Raises:
            NotFoundError: Unknown recipient.
            StoreError: The write failed.
        """
        if self._agents is not None and await self._agents.get_agent(agent_id) is None:
            raise NotFoundError("agent", agent_id)

        notification = Notification(
            agent_id=agent_id,
            content=content,
            notification_type=NotificationType(notification_type),
            related_task_id=related_task_id,
        )
        await self._store.save_notification(notification)
        logger.debug(f"Queued notification {notification.id} for agent {agent_id}")
        return notification

    async def _fan_out(
        self,
        agent_ids: Iterable[str],
        content: str,
        notification_type: NotificationType = NotificationType.INFO,
        related_task_id: str | None = None,
    ) -> PublishResult:
        result = PublishResult()
        for agent_id in agent_ids:
            try:
                notification = await self.notify(
                    agent_id, content, notification_type, related_task_id
                )
            except MissionControlError as e:
                logger.error(f"Failed to notify agent {agent_id}: {e}")
                result.errors.append(f"{agent_id}: {e}")
                continue
            result.notifications.append(notification)
        return result

    async def notify_mentions(
        self,
        content: str,
        candidate_agents: Iterable[AgentProfile],
        related_task_id: str | None = None,
        exclude_agent_id: str | None = None,
    ) -> PublishResult:
        """Notify every known agent @mentioned in ``content``.

        Args:
            content: Free text that may contain @mentions
            candidate_agents: Agents whose names can be mentioned
            related_task_id: Task thread the text was posted on
            exclude_agent_id: Author of the text (never notified)
        """
        mentioned = [
            agent
            for agent in extract_mentions(content, candidate_agents)
            if agent.id != exclude_agent_id
        ]
        return await self._fan_out(
            [agent.id for agent in mentioned],
            mention_preview(content),
            related_task_id=related_task_id,
        )

    async def notify_assignees(self, task: Task, agent_ids: Iterable[str]) -> PublishResult:
        """Tell each assignee about a task, one notification per agent.

        Subscription state plays no part here.
        """
        unique_ids = list(dict.fromkeys(agent_ids))
        return await self._fan_out(
            unique_ids,
            f"You have been assigned to a new task: {task.title}",
            related_task_id=task.id,
        )

    async def notify_subscribers(
        self,
        task_id: str,
        exclude_agent_id: str | None,
        content: str,
        skip_agent_ids: Iterable[str] = (),
    ) -> PublishResult:
        """Notify a task's subscribers, except the actor and ``skip_agent_ids``."""
        if self._subscriptions is None:
            raise RuntimeError("notify_subscribers() needs a SubscriptionManager")

        skip = set(skip_agent_ids)
        subscribers = await self._subscriptions.subscribers_to_notify(task_id, exclude_agent_id)
        return await self._fan_out(
            [s.agent_id for s in subscribers if s.agent_id not in skip],
            content,
            related_task_id=task_id,
        )
