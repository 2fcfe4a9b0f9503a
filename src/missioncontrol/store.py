"""File-based Mission Control store.

Created: 2026-02-05
Updated: 2026-02-14 - Added thread subscriptions, mtime-based reloads so the
delivery daemon sees rows written by other processes, and StoreError on I/O
failure instead of logging and carrying on.
Updated: 2026-02-15 - Mutations hold an exclusive flock on a per-file lock
so the API and the delivery daemon can share one store directory.

Storage layout:
~/.missioncontrol/store/
    agents.json         # Agent profiles
    tasks.json          # Tasks
    messages.json       # Thread messages
    activities.json     # Activity log
    subscriptions.json  # Thread subscriptions
    notifications.json  # Notification queue
    *.lock              # One flock target per JSON file

Design notes:
- Single JSON file per entity type
- In-memory index, reloaded when the file's signature changes
- Atomic writes using a uniquely named temp file + rename
- Every mutation runs reload -> change -> write under an asyncio.Lock
  (this process) and an exclusive flock (every process)
- Suitable for personal/small team use (< 10k records per type)
"""

import asyncio
import fcntl
import json
import logging
import os
import tempfile
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import Any

from missioncontrol.errors import StoreError
from missioncontrol.models import (
    Activity,
    AgentProfile,
    AgentStatus,
    Message,
    Notification,
    Task,
    TaskStatus,
    ThreadSubscription,
    now_iso,
    parse_iso,
)

logger = logging.getLogger(__name__)

# Marks an index whose last write failed; forces a reload from disk.
_STALE = (-1, -1, -1)


class FileMissionControlStore:
    """File-based implementation of every Mission Control repository.

    Uses JSON files for persistence and keeps in-memory indexes for fast
    lookups.
    """

    def __init__(self, base_path: Path | None = None):
        """Initialize the store.

        Args:
            base_path: Directory for storage files. Defaults to the
                configured ``data_dir/store``.

        Raises:
            StoreError: If the directory cannot be created or a file is corrupt.
        """
        if base_path is None:
            from missioncontrol.config import get_settings

            base_path = get_settings().store_dir

        self.base_path = Path(base_path)
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot create store directory {self.base_path}: {e}") from e

        self._files: dict[str, tuple[Path, Any]] = {
            "agents": (self.base_path / "agents.json", AgentProfile),
            "tasks": (self.base_path / "tasks.json", Task),
            "messages": (self.base_path / "messages.json", Message),
            "activities": (self.base_path / "activities.json", Activity),
            "subscriptions": (self.base_path / "subscriptions.json", ThreadSubscription),
            "notifications": (self.base_path / "notifications.json", Notification),
        }
        self._mtimes: dict[str, tuple[int, int, int] | None] = {}

        # In-memory indexes (reloads clear them in place)
        self._agents: dict[str, AgentProfile] = {}
        self._tasks: dict[str, Task] = {}
        self._messages: dict[str, Message] = {}
        self._activities: dict[str, Activity] = {}
        self._subscriptions: dict[str, ThreadSubscription] = {}
        self._notifications: dict[str, Notification] = {}
        self._indexes: dict[str, dict[str, Any]] = {
            "agents": self._agents,
            "tasks": self._tasks,
            "messages": self._messages,
            "activities": self._activities,
            "subscriptions": self._subscriptions,
            "notifications": self._notifications,
        }

        self._lock = asyncio.Lock()

        for name in self._files:
            self._refresh(name, force=True)

        logger.info(
            f"Mission Control store loaded from {self.base_path}: "
            f"{len(self._agents)} agents, {len(self._tasks)} tasks, "
            f"{len(self._subscriptions)} subscriptions, "
            f"{len(self._notifications)} notifications"
        )

    # =========================================================================
    # File I/O Helpers
    # =========================================================================

    def _load_json(self, path: Path) -> list[dict[str, Any]]:
        """Load a JSON file, returning an empty list if it does not exist."""
        if not path.exists():
            return []
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Error loading {path}: {e}")
            raise StoreError(f"Error loading {path}: {e}") from e

    def _save_json(self, path: Path, data: list[dict[str, Any]]) -> None:
        """Save data to a JSON file atomically.

        The temp file name is unique per write, so concurrent writers never
        share a half-written file.
        """
        temp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=path.parent,
                prefix=f".{path.stem}-",
                suffix=".tmp",
                delete=False,
            ) as f:
                temp_path = Path(f.name)
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(temp_path, path)
        except OSError as e:
            logger.error(f"Error saving {path}: {e}")
            if temp_path is not None and temp_path.exists():
                temp_path.unlink()
            raise StoreError(f"Error saving {path}: {e}") from e

    @staticmethod
    def _mtime(path: Path) -> tuple[int, int, int] | None:
        """File signature used to detect writes by other processes.

        Every write renames a fresh file into place, so the inode changes
        even when mtime and size do not.
        """
        try:
            stat = path.stat()
            return (stat.st_mtime_ns, stat.st_size, stat.st_ino)
        except FileNotFoundError:
            return None

    @contextmanager
    def _file_lock(self, name: str) -> Iterator[None]:
        """Hold an exclusive flock on the lock file guarding ``name``."""
        lock_path = self.base_path / f"{name}.lock"
        try:
            lock = open(lock_path, "a")
        except OSError as e:
            raise StoreError(f"Cannot open lock file {lock_path}: {e}") from e
        with lock:
            fcntl.flock(lock.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock.fileno(), fcntl.LOCK_UN)

    @asynccontextmanager
    async def _mutate(self, name: str) -> AsyncIterator[None]:
        """Reload ``name`` and keep it locked until the caller has persisted."""
        async with self._lock:
            with self._file_lock(name):
                self._refresh(name)
                yield

    def _refresh(self, name: str, force: bool = False) -> None:
        """Reload an index if its file changed since it was last read or written."""
        path, model = self._files[name]
        mtime = self._mtime(path)
        if not force and name in self._mtimes and self._mtimes[name] == mtime:
            return

        try:
            records = [model.from_dict(data) for data in self._load_json(path)]
        except (ValueError, TypeError, AttributeError) as e:
            raise StoreError(f"Malformed record in {path}: {e}") from e
        index = self._indexes[name]
        index.clear()
        for record in records:
            index[record.id] = record
        self._mtimes[name] = mtime

    def _persist(self, name: str) -> None:
        """Write an index to its file."""
        path, _ = self._files[name]
        data = [record.to_dict() for record in self._indexes[name].values()]
        try:
            self._save_json(path, data)
        except StoreError:
            # Drop the unsaved in-memory change on the next access
            self._mtimes[name] = _STALE
            raise
        self._mtimes[name] = self._mtime(path)

    # =========================================================================
    # Agent Operations
    # =========================================================================

    async def save_agent(self, agent: AgentProfile) -> str:
        """Save or update an agent profile."""
        async with self._mutate("agents"):
            self._agents[agent.id] = agent
            self._persist("agents")
        return agent.id

    async def get_agent(self, agent_id: str) -> AgentProfile | None:
        """Get an agent by ID."""
        self._refresh("agents")
        return self._agents.get(agent_id)

    async def get_agent_by_name(self, name: str) -> AgentProfile | None:
        """Get an agent by name (case-insensitive)."""
        self._refresh("agents")
        name_lower = name.strip().lower()
        for agent in self._agents.values():
            if agent.name.lower() == name_lower:
                return agent
        return None

    async def list_agents(self, status: str | None = None, limit: int = 100) -> list[AgentProfile]:
        """List agents, optionally filtered by status."""
        self._refresh("agents")
        agents = list(self._agents.values())
        if status:
            agents = [a for a in agents if a.status.value == status]
        agents.sort(key=lambda a: a.name.lower())
        return agents[:limit]

    async def update_agent_heartbeat(self, agent_id: str) -> bool:
        """Set an agent's last_seen to now."""
        async with self._mutate("agents"):
            agent = self._agents.get(agent_id)
            if not agent:
                return False
            agent.last_seen = now_iso()
            if agent.status == AgentStatus.OFFLINE:
                agent.status = AgentStatus.IDLE
            self._persist("agents")
        return True

    # =========================================================================
    # Task Operations
    # =========================================================================

    async def save_task(self, task: Task) -> str:
        """Save or update a task."""
        async with self._mutate("tasks"):
            task.updated_at = now_iso()
            self._tasks[task.id] = task
            self._persist("tasks")
        return task.id

    async def get_task(self, task_id: str) -> Task | None:
        """Get a task by ID."""
        self._refresh("tasks")
        return self._tasks.get(task_id)

    async def list_tasks(
        self,
        status: TaskStatus | None = None,
        assignee_id: str | None = None,
        limit: int = 100,
    ) -> list[Task]:
        """List tasks with optional filters, most recently updated first."""
        self._refresh("tasks")
        tasks = list(self._tasks.values())

        if status:
            tasks = [t for t in tasks if t.status == status]

        if assignee_id:
            tasks = [t for t in tasks if assignee_id in t.assignee_ids]

        tasks.sort(key=lambda t: t.updated_at, reverse=True)
        return tasks[:limit]

    # =========================================================================
    # Message Operations
    # =========================================================================

    async def save_message(self, message: Message) -> str:
        """Save a message."""
        async with self._mutate("messages"):
            self._messages[message.id] = message
            self._persist("messages")
        return message.id

    async def get_messages_for_task(self, task_id: str, limit: int = 100) -> list[Message]:
        """Get all messages for a task, oldest first."""
        self._refresh("messages")
        messages = [m for m in self._messages.values() if m.task_id == task_id]
        messages.sort(key=lambda m: m.created_at)
        return messages[:limit]

    # =========================================================================
    # Activity Operations
    # =========================================================================

    async def save_activity(self, activity: Activity) -> str:
        """Append an activity entry."""
        async with self._mutate("activities"):
            self._activities[activity.id] = activity
            self._persist("activities")
        return activity.id

    async def get_activities(
        self,
        agent_id: str | None = None,
        task_id: str | None = None,
        since: str | None = None,
        limit: int | None = 50,
    ) -> list[Activity]:
        """Get activities, most recent first.

        Args:
            agent_id: Only this agent's activities
            task_id: Only activities on this task
            since: Only activities created at or after this ISO timestamp
            limit: Maximum number returned (None for all)
        """
        self._refresh("activities")
        activities = list(self._activities.values())

        if agent_id:
            activities = [a for a in activities if a.agent_id == agent_id]

        if task_id:
            activities = [a for a in activities if a.task_id == task_id]

        if since:
            cutoff = parse_iso(since)
            activities = [a for a in activities if parse_iso(a.created_at) >= cutoff]

        activities.sort(key=lambda a: a.created_at, reverse=True)
        return activities if limit is None else activities[:limit]

    # =========================================================================
    # Subscription Operations
    # =========================================================================

    def _find_subscription(self, task_id: str, agent_id: str) -> ThreadSubscription | None:
        for sub in self._subscriptions.values():
            if sub.task_id == task_id and sub.agent_id == agent_id:
                return sub
        return None

    async def insert_subscription_if_absent(
        self, subscription: ThreadSubscription
    ) -> tuple[ThreadSubscription, bool]:
        """Insert a subscription unless its (task, agent) pair exists."""
        async with self._mutate("subscriptions"):
            existing = self._find_subscription(subscription.task_id, subscription.agent_id)
            if existing:
                return existing, False
            self._subscriptions[subscription.id] = subscription
            self._persist("subscriptions")
        return subscription, True

    async def get_subscription(self, task_id: str, agent_id: str) -> ThreadSubscription | None:
        """Get the subscription for a (task, agent) pair."""
        self._refresh("subscriptions")
        return self._find_subscription(task_id, agent_id)

    async def get_subscriptions_for_task(self, task_id: str) -> list[ThreadSubscription]:
        """All subscriptions on a task, oldest first."""
        self._refresh("subscriptions")
        subs = [s for s in self._subscriptions.values() if s.task_id == task_id]
        subs.sort(key=lambda s: s.subscribed_at)
        return subs

    async def get_subscriptions_for_agent(self, agent_id: str) -> list[ThreadSubscription]:
        """All subscriptions held by an agent, oldest first."""
        self._refresh("subscriptions")
        subs = [s for s in self._subscriptions.values() if s.agent_id == agent_id]
        subs.sort(key=lambda s: s.subscribed_at)
        return subs

    async def delete_subscription(self, task_id: str, agent_id: str) -> bool:
        """Delete the subscription for a (task, agent) pair."""
        async with self._mutate("subscriptions"):
            existing = self._find_subscription(task_id, agent_id)
            if not existing:
                return False
            del self._subscriptions[existing.id]
            self._persist("subscriptions")
        return True

    # =========================================================================
    # Notification Operations
    # =========================================================================

    async def save_notification(self, notification: Notification) -> str:
        """Save a notification."""
        async with self._mutate("notifications"):
            self._notifications[notification.id] = notification
            self._persist("notifications")
        return notification.id

    async def get_notification(self, notification_id: str) -> Notification | None:
        """Get a notification by ID."""
        self._refresh("notifications")
        return self._notifications.get(notification_id)

    async def get_undelivered_notifications(
        self, agent_id: str | None = None
    ) -> list[Notification]:
        """Get notifications that haven't been delivered yet, oldest first."""
        self._refresh("notifications")
        notifications = [n for n in self._notifications.values() if not n.delivered]
        if agent_id:
            notifications = [n for n in notifications if n.agent_id == agent_id]
        notifications.sort(key=lambda n: n.created_at)
        return notifications

    async def get_notifications_for_agent(
        self, agent_id: str, limit: int = 50
    ) -> list[Notification]:
        """Get notifications for a specific agent, most recent first."""
        self._refresh("notifications")
        notifications = [n for n in self._notifications.values() if n.agent_id == agent_id]
        notifications.sort(key=lambda n: n.created_at, reverse=True)
        return notifications[:limit]

    async def list_notifications(self, limit: int = 100) -> list[Notification]:
        """Get all notifications, most recent first."""
        self._refresh("notifications")
        notifications = sorted(
            self._notifications.values(), key=lambda n: n.created_at, reverse=True
        )
        return notifications[:limit]

    async def mark_notification_delivered(self, notification_id: str) -> bool:
        """Mark a notification as delivered.

        Already-delivered records keep their original delivered_at.
        """
        async with self._mutate("notifications"):
            notification = self._notifications.get(notification_id)
            if not notification:
                return False
            if not notification.delivered:
                notification.mark_delivered()
                self._persist("notifications")
        return True

    async def mark_all_delivered_for_agent(self, agent_id: str) -> int:
        """Mark every undelivered notification for an agent as delivered."""
        async with self._mutate("notifications"):
            pending = [
                n
                for n in self._notifications.values()
                if n.agent_id == agent_id and not n.delivered
            ]
            if not pending:
                return 0
            delivered_at = now_iso()
            for notification in pending:
                notification.mark_delivered(delivered_at)
            self._persist("notifications")
        return len(pending)

    async def delete_notification(self, notification_id: str) -> bool:
        """Delete a notification."""
        async with self._mutate("notifications"):
            if notification_id not in self._notifications:
                return False
            del self._notifications[notification_id]
            self._persist("notifications")
        return True

    # =========================================================================
    # Utility Operations
    # =========================================================================

    async def get_stats(self) -> dict[str, Any]:
        """Get counts of agents, tasks by status, subscriptions and notifications."""
        for name in self._files:
            self._refresh(name)

        task_counts = {}
        for status in TaskStatus:
            task_counts[status.value] = len([t for t in self._tasks.values() if t.status == status])

        return {
            "agents": {"total": len(self._agents)},
            "tasks": {"total": len(self._tasks), "by_status": task_counts},
            "messages": {"total": len(self._messages)},
            "activities": {"total": len(self._activities)},
            "subscriptions": {"total": len(self._subscriptions)},
            "notifications": {
                "total": len(self._notifications),
                "undelivered": len([n for n in self._notifications.values() if not n.delivered]),
            },
        }

    async def clear_all(self) -> None:
        """Clear all data. Use with caution!"""
        for name, index in self._indexes.items():
            async with self._mutate(name):
                index.clear()
                self._persist(name)

        logger.warning("Mission Control data cleared!")


# =========================================================================
# Factory Function
# =========================================================================

_store_instance: FileMissionControlStore | None = None


def get_mission_control_store(base_path: Path | None = None) -> FileMissionControlStore:
    """Get or create the Mission Control store singleton.

    Args:
        base_path: Optional custom storage path. Only used on first call.

    Returns:
        The FileMissionControlStore instance.
    """
    global _store_instance
    if _store_instance is None:
        _store_instance = FileMissionControlStore(base_path)
    return _store_instance


def reset_mission_control_store() -> None:
    """Reset the store singleton (for testing)."""
    global _store_instance
    _store_instance = None
