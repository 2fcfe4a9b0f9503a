"""Mission Control storage protocols.

Created: 2026-02-05
Updated: 2026-02-14 - Split the single store protocol into one typed
repository per entity so the notification pipeline depends only on what
it reads and writes.

Backends implement these structurally (no inheritance needed):
- FileMissionControlStore: JSON files (default)
- Future: SQLite, PostgreSQL, Convex, etc.
"""

from typing import Protocol, runtime_checkable

from missioncontrol.models import (
    Activity,
    AgentProfile,
    Message,
    Notification,
    Task,
    TaskStatus,
    ThreadSubscription,
)


@runtime_checkable
class AgentDirectory(Protocol):
    """Read access to agent profiles."""

    async def get_agent(self, agent_id: str) -> AgentProfile | None:
        """Get an agent by ID."""
        ...

    async def get_agent_by_name(self, name: str) -> AgentProfile | None:
        """Get an agent by name (case-insensitive)."""
        ...

    async def list_agents(self, status: str | None = None, limit: int = 100) -> list[AgentProfile]:
        """List agents, optionally filtered by status."""
        ...


@runtime_checkable
class TaskDirectory(Protocol):
    """Read access to tasks."""

    async def get_task(self, task_id: str) -> Task | None:
        """Get a task by ID."""
        ...

    async def list_tasks(
        self,
        status: TaskStatus | None = None,
        assignee_id: str | None = None,
        limit: int = 100,
    ) -> list[Task]:
        """List tasks with optional filters."""
        ...


@runtime_checkable
class SubscriptionStore(Protocol):
    """Durable (task, agent) -> subscription mapping."""

    async def insert_subscription_if_absent(
        self, subscription: ThreadSubscription
    ) -> tuple[ThreadSubscription, bool]:
        """Insert unless the (task, agent) pair exists.

        Returns the stored record and whether it was newly created. The
        existence check and the insert happen atomically.
        """
        ...

    async def get_subscription(self, task_id: str, agent_id: str) -> ThreadSubscription | None:
        """Get the subscription for a (task, agent) pair."""
        ...

    async def get_subscriptions_for_task(self, task_id: str) -> list[ThreadSubscription]:
        """All subscriptions on a task."""
        ...

    async def get_subscriptions_for_agent(self, agent_id: str) -> list[ThreadSubscription]:
        """All subscriptions held by an agent."""
        ...

    async def delete_subscription(self, task_id: str, agent_id: str) -> bool:
        """Delete a subscription. Returns True if one was removed."""
        ...


@runtime_checkable
class NotificationStore(Protocol):
    """Durable per-agent notification queue."""

    async def save_notification(self, notification: Notification) -> str:
        """Save a notification. Returns its ID."""
        ...

    async def get_notification(self, notification_id: str) -> Notification | None:
        """Get a notification by ID."""
        ...

    async def get_undelivered_notifications(
        self, agent_id: str | None = None
    ) -> list[Notification]:
        """Undelivered notifications, oldest first; all agents when agent_id is None."""
        ...

    async def get_notifications_for_agent(
        self, agent_id: str, limit: int = 50
    ) -> list[Notification]:
        """Notifications for one agent, most recent first."""
        ...

    async def mark_notification_delivered(self, notification_id: str) -> bool:
        """Mark a notification delivered. Returns False if it does not exist."""
        ...

    async def mark_all_delivered_for_agent(self, agent_id: str) -> int:
        """Mark every pending notification of an agent delivered. Returns the count."""
        ...

    async def delete_notification(self, notification_id: str) -> bool:
        """Delete a notification. Returns True if deleted."""
        ...


@runtime_checkable
class MessageStore(Protocol):
    """Thread messages."""

    async def save_message(self, message: Message) -> str: ...

    async def get_messages_for_task(self, task_id: str, limit: int = 100) -> list[Message]: ...


@runtime_checkable
class ActivityLog(Protocol):
    """Append-only activity entries."""

    async def save_activity(self, activity: Activity) -> str: ...

    async def get_activities(
        self,
        agent_id: str | None = None,
        task_id: str | None = None,
        since: str | None = None,
        limit: int | None = 50,
    ) -> list[Activity]:
        """Activities, most recent first, optionally filtered."""
        ...
