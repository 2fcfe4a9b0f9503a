"""Mission Control manager.

Created: 2026-02-05
Updated: 2026-02-14 - Producers now go through SubscriptionManager and
NotificationPublisher:
  - create_task() subscribes the creator and notifies assignees
  - assign_task() subscribes and notifies each assignee
  - post_message() subscribes the sender, notifies @mentions and the thread
Notification side effects are best-effort: a failed enqueue is logged and
never fails the primary write.

High-level operations that combine storage writes with business logic:
- Registering agents and recording heartbeats
- Creating, assigning and moving tasks with activity logging
- Posting thread messages with @mention parsing
"""

import logging

from missioncontrol.errors import MissionControlError, NotFoundError
from missioncontrol.models import (
    Activity,
    ActivityType,
    AgentProfile,
    Message,
    MessageType,
    PublishResult,
    SubscribeAction,
    Task,
    TaskPriority,
    TaskStatus,
    now_iso,
)
from missioncontrol.publisher import NotificationPublisher, extract_mentions
from missioncontrol.store import FileMissionControlStore, get_mission_control_store
from missioncontrol.subscriptions import SubscriptionManager

logger = logging.getLogger(__name__)

# Activity logged when a task enters each status
_STATUS_ACTIVITY = {
    TaskStatus.IN_PROGRESS: ActivityType.TASK_STARTED,
    TaskStatus.COMPLETED: ActivityType.TASK_COMPLETED,
    TaskStatus.CANCELLED: ActivityType.TASK_FAILED,
}

ACTIVITY_MESSAGE_LENGTH = 100


class MissionControlManager:
    """High-level manager for Mission Control operations.

    Provides convenient methods that handle:
    - Activity logging for all changes
    - Thread subscriptions for agents touching a task
    - Notification creation for assignments, @mentions and comments
    """

    def __init__(self, store: FileMissionControlStore | None = None):
        """Initialize the manager.

        Args:
            store: Optional store instance. Uses singleton if not provided.
        """
        self._store = store or get_mission_control_store()
        self.subscriptions = SubscriptionManager(self._store, tasks=self._store, agents=self._store)
        self.publisher = NotificationPublisher(
            self._store, subscriptions=self.subscriptions, agents=self._store
        )

    @property
    def store(self) -> FileMissionControlStore:
        return self._store

    # =========================================================================
    # Agent Operations
    # =========================================================================

    async def create_agent(
        self,
        name: str,
        role: str,
        session_key: str | None = None,
    ) -> AgentProfile:
        """Register an agent and log the activity.

        Args:
            name: Display name (e.g., "Jarvis")
            role: Job title (e.g., "Squad Lead")
            session_key: Delivery handle; defaults to ``agent:<name>:main``

        Returns:
            The created AgentProfile
        """
        if session_key is None:
            session_key = f"agent:{'-'.join(name.lower().split())}:main"

        agent = AgentProfile(name=name, role=role, session_key=session_key)
        await self._store.save_agent(agent)

        await self._log_activity(
            ActivityType.AGENT_JOINED,
            agent_id=agent.id,
            message=f"{name} joined the team as {role}",
        )

        logger.info(f"Created agent: {name} ({role})")
        return agent

    async def get_agent(self, agent_id: str) -> AgentProfile | None:
        """Get an agent by ID."""
        return await self._store.get_agent(agent_id)

    async def list_agents(self, status: str | None = None) -> list[AgentProfile]:
        """List all agents, optionally filtered by status."""
        return await self._store.list_agents(status)

    async def record_heartbeat(self, agent_id: str) -> bool:
        """Record an agent heartbeat (updates last_seen)."""
        return await self._store.update_agent_heartbeat(agent_id)

    # =========================================================================
    # Task Operations
    # =========================================================================

    async def create_task(
        self,
        title: str,
        description: str = "",
        created_by: str | None = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
        assignee_ids: list[str] | None = None,
    ) -> Task:
        """Create a task, subscribe its creator and notify its assignees.

        Args:
            title: Short task summary
            description: Full details
            created_by: Agent who created this
            priority: Urgency level
            assignee_ids: Agents to assign (optional)

        Returns:
            The created Task
        """
        task = Task(
            title=title,
            description=description,
            created_by=created_by,
            priority=priority,
            assignee_ids=list(dict.fromkeys(assignee_ids or [])),
        )
        await self._store.save_task(task)
        logger.info(f"Created task: {title}")

        if created_by:
            await self._auto_subscribe(task.id, created_by, SubscribeAction.CREATED)

        if task.assignee_ids:
            await self._announce_assignment(task, task.assignee_ids)

        return task

    async def get_task(self, task_id: str) -> Task | None:
        """Get a task by ID."""
        return await self._store.get_task(task_id)

    async def list_tasks(
        self, status: TaskStatus | None = None, assignee_id: str | None = None
    ) -> list[Task]:
        """List tasks with optional filters."""
        return await self._store.list_tasks(status, assignee_id)

    async def assign_task(self, task_id: str, agent_ids: list[str]) -> PublishResult:
        """Assign agents to a task.

        Every agent in ``agent_ids`` gets exactly one assignment notification,
        whether or not it already follows the thread.

        Returns:
            The notification fan-out result.

        Raises:
            NotFoundError: Unknown task.
        """
        task = await self._store.get_task(task_id)
        if not task:
            raise NotFoundError("task", task_id)

        agent_ids = list(dict.fromkeys(agent_ids))
        new_assignees = [aid for aid in agent_ids if aid not in task.assignee_ids]
        if new_assignees:
            task.assignee_ids.extend(new_assignees)
            await self._store.save_task(task)

        return await self._announce_assignment(task, agent_ids)

    async def update_task_status(
        self, task_id: str, status: TaskStatus, agent_id: str | None = None
    ) -> Task:
        """Move a task to a new status and log the activity.

        Raises:
            NotFoundError: Unknown task.
        """
        task = await self._store.get_task(task_id)
        if not task:
            raise NotFoundError("task", task_id)

        old_status = task.status
        task.status = status
        if status == TaskStatus.COMPLETED and not task.completed_at:
            task.completed_at = now_iso()
        await self._store.save_task(task)

        activity_type = _STATUS_ACTIVITY.get(status, ActivityType.STATUS_CHANGED)
        if activity_type == ActivityType.TASK_COMPLETED:
            message = f"Completed '{task.title}'"
        elif activity_type == ActivityType.TASK_STARTED:
            message = f"Started '{task.title}'"
        else:
            message = f"Task '{task.title}' moved from {old_status.value} to {status.value}"

        await self._log_activity(activity_type, agent_id=agent_id, task_id=task_id, message=message)
        return task

    # =========================================================================
    # Message Operations
    # =========================================================================

    async def post_message(
        self,
        from_agent_id: str,
        content: str,
        task_id: str | None = None,
        message_type: MessageType = MessageType.TEXT,
    ) -> Message:
        """Post a message, optionally on a task thread.

        After the message is stored:
        - the sender is subscribed to the thread
        - @mentioned agents are notified and subscribed
        - other thread subscribers are told about the comment

        Raises:
            NotFoundError: Unknown sender or task.
        """
        sender = await self._store.get_agent(from_agent_id)
        if not sender:
            raise NotFoundError("agent", from_agent_id)

        task = None
        if task_id:
            task = await self._store.get_task(task_id)
            if not task:
                raise NotFoundError("task", task_id)

        agents = await self._store.list_agents(limit=1000)
        mentioned = [a for a in extract_mentions(content, agents) if a.id != from_agent_id]

        message = Message(
            task_id=task_id,
            from_agent_id=from_agent_id,
            content=content,
            message_type=message_type,
            mentions=[a.id for a in mentioned],
        )
        await self._store.save_message(message)

        await self._log_activity(
            ActivityType.MESSAGE_SENT,
            agent_id=from_agent_id,
            task_id=task_id,
            message=content[:ACTIVITY_MESSAGE_LENGTH],
        )

        if task:
            await self._auto_subscribe(task.id, from_agent_id, SubscribeAction.COMMENTED)

        result = await self.publisher.notify_mentions(
            content, mentioned, related_task_id=task_id, exclude_agent_id=from_agent_id
        )
        self._log_publish_errors("mention", result)

        if task:
            for agent in mentioned:
                await self._auto_subscribe(task.id, agent.id, SubscribeAction.MENTIONED)

            result = await self.publisher.notify_subscribers(
                task.id,
                exclude_agent_id=from_agent_id,
                content=f"{sender.name} commented on '{task.title}': {content[:50]}",
                skip_agent_ids=[a.id for a in mentioned],
            )
            self._log_publish_errors("thread", result)

        return message

    async def add_comment(self, task_id: str, agent_id: str, content: str) -> Message:
        """Comment on a task thread."""
        return await self.post_message(agent_id, content, task_id=task_id)

    async def get_messages_for_task(self, task_id: str) -> list[Message]:
        """Get all messages on a task thread."""
        return await self._store.get_messages_for_task(task_id)

    # =========================================================================
    # Activity
    # =========================================================================

    async def get_activity_feed(self, limit: int = 50) -> list[Activity]:
        """Get the activity feed (most recent first)."""
        return await self._store.get_activities(limit=limit)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _announce_assignment(self, task: Task, agent_ids: list[str]) -> PublishResult:
        for aid in agent_ids:
            await self._auto_subscribe(task.id, aid, SubscribeAction.ASSIGNED)

        result = await self.publisher.notify_assignees(task, agent_ids)
        self._log_publish_errors("assignment", result)
        return result

    async def _auto_subscribe(self, task_id: str, agent_id: str, action: SubscribeAction) -> None:
        try:
            await self.subscriptions.auto_subscribe(task_id, agent_id, action)
        except MissionControlError as e:
            logger.warning(f"Could not subscribe agent {agent_id} to task {task_id}: {e}")

    @staticmethod
    def _log_publish_errors(kind: str, result: PublishResult) -> None:
        if not result.success:
            logger.warning(
                f"{len(result.errors)} {kind} notification(s) failed to enqueue: "
                f"{'; '.join(result.errors)}"
            )

    async def _log_activity(
        self,
        activity_type: ActivityType,
        agent_id: str | None = None,
        task_id: str | None = None,
        message: str = "",
    ) -> Activity | None:
        """Create and save an activity entry. Failures are logged, not raised."""
        activity = Activity(
            type=activity_type,
            agent_id=agent_id,
            task_id=task_id,
            message=message,
        )
        try:
            await self._store.save_activity(activity)
        except MissionControlError as e:
            logger.error(f"Failed to log activity '{message}': {e}")
            return None
        return activity


# =========================================================================
# Factory Function
# =========================================================================

_manager_instance: MissionControlManager | None = None


def get_mission_control_manager() -> MissionControlManager:
    """Get or create the Mission Control manager singleton."""
    global _manager_instance
    if _manager_instance is None:
        _manager_instance = MissionControlManager()
    return _manager_instance


def reset_mission_control_manager() -> None:
    """Reset the manager singleton (for testing)."""
    global _manager_instance
    _manager_instance = None
