"""Thread subscriptions.

Created: 2026-02-14

Decides who is "on" a task thread. Agents end up subscribed when they
comment on, are assigned to, are mentioned in, or create a task; the
notification publisher asks this manager who to tell about new activity.

Subscriptions are join records rather than a field on Task, so following a
thread never rewrites the task row.
"""

import logging

from missioncontrol.errors import NotFoundError
from missioncontrol.models import (
    SubscribeAction,
    SubscribeResult,
    ThreadSubscription,
    UnsubscribeResult,
)
from missioncontrol.protocol import AgentDirectory, SubscriptionStore, TaskDirectory

logger = logging.getLogger(__name__)


class SubscriptionManager:
    """Creates and removes thread subscriptions and resolves notify-sets."""

    def __init__(
        self,
        store: SubscriptionStore,
        tasks: TaskDirectory | None = None,
        agents: AgentDirectory | None = None,
    ):
        """Initialize the manager.

        Args:
            store: Subscription repository.
            tasks: Used to reject unknown task IDs. Skipped when None.
            agents: Used to reject unknown agent IDs. Skipped when None.
        """
        self._store = store
        self._tasks = tasks
        self._agents = agents

    async def _check_refs(self, task_id: str, agent_id: str) -> None:
        if self._tasks is not None and await self._tasks.get_task(task_id) is None:
            raise NotFoundError("task", task_id)
        if self._agents is not None and await self._agents.get_agent(agent_id) is None:
            raise NotFoundError("agent", agent_id)

    async def subscribe(
        self, task_id: str, agent_id: str, reason: str | None = None
    ) -> SubscribeResult:
        """Subscribe an agent to a task thread.

        Idempotent: if the pair is already subscribed, the existing record is
        returned untouched with ``already_subscribed=True``.

        Raises:
            NotFoundError: Unknown task or agent.
        """
        await self._check_refs(task_id, agent_id)

        candidate = ThreadSubscription(task_id=task_id, agent_id=agent_id, reason=reason)
        subscription, created = await self._store.insert_subscription_if_absent(candidate)
        if created:
            logger.info(f"Agent {agent_id} subscribed to task {task_id} ({reason or 'no reason'})")
        return SubscribeResult(subscription=subscription, already_subscribed=not created)

    async def auto_subscribe(
        self, task_id: str, agent_id: str, action: SubscribeAction | str
    ) -> SubscribeResult:
        """Subscribe an agent because of something it did on a task.

        Callers never need to check existence first.

        Raises:
            ValueError: ``action`` is not a SubscribeAction value.
            NotFoundError: Unknown task or agent.
        """
        action = SubscribeAction(action)
        return await self.subscribe(task_id, agent_id, reason=action.reason)

    async def unsubscribe(self, task_id: str, agent_id: str) -> UnsubscribeResult:
        """Remove an agent from a task thread.

        Notifications already queued for the agent are left alone.
        """
        removed = await self._store.delete_subscription(task_id, agent_id)
        if not removed:
            return UnsubscribeResult(success=False, error="Not subscribed")
        logger.info(f"Agent {agent_id} unsubscribed from task {task_id}")
        return UnsubscribeResult(success=True)

    async def is_subscribed(self, task_id: str, agent_id: str) -> bool:
        """Check whether an agent follows a task."""
        return await self._store.get_subscription(task_id, agent_id) is not None

    async def get_by_task(self, task_id: str) -> list[ThreadSubscription]:
        """All subscriptions on a task."""
        return await self._store.get_subscriptions_for_task(task_id)

    async def get_by_agent(self, agent_id: str) -> list[ThreadSubscription]:
        """All task threads an agent follows."""
        return await self._store.get_subscriptions_for_agent(agent_id)

    async def subscribers_to_notify(
        self, task_id: str, exclude_agent_id: str | None
    ) -> list[ThreadSubscription]:
        """Subscribers of a task, minus the agent that triggered the event."""
        subscriptions = await self._store.get_subscriptions_for_task(task_id)
        return [s for s in subscriptions if s.agent_id != exclude_agent_id]
