"""Mission Control data models.

Created: 2026-02-05
Updated: 2026-02-14 - Added ThreadSubscription and the result records
returned by the subscription manager, publisher and delivery daemon.

These models define the data structures for:
- Agent profiles (identity, delivery session key)
- Tasks (assignees, status)
- Messages (comments on task threads)
- Activities (append-only log read by the standup report)
- Thread subscriptions (who follows a task)
- Notifications (queued messages for one agent)

Design notes:
- Dataclasses with explicit to_dict/from_dict for JSON files
- All IDs are UUIDs
- Timestamps are ISO 8601 strings (UTC)
- Status enums are str-based so they serialize as plain values
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

# ============================================================================
# Enums
# ============================================================================


class AgentStatus(str, Enum):
    """Agent operational status."""

    IDLE = "idle"
    BUSY = "busy"
    OFFLINE = "offline"
    ERROR = "error"


class TaskStatus(str, Enum):
    """Task lifecycle status."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"


class TaskPriority(str, Enum):
    """Task priority level."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class MessageType(str, Enum):
    """Kinds of thread messages."""

    TEXT = "text"
    SYSTEM = "system"
    ACTION = "action"
    ERROR = "error"


class ActivityType(str, Enum):
    """Types of activity log entries."""

    TASK_STARTED = "task_started"
    TASK_COMPLETED = "task_completed"
    TASK_FAILED = "task_failed"
    AGENT_JOINED = "agent_joined"
    AGENT_LEFT = "agent_left"
    MESSAGE_SENT = "message_sent"
    STATUS_CHANGED = "status_changed"


class NotificationType(str, Enum):
    """Severity of a notification."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


class SubscribeAction(str, Enum):
    """Actions that put an agent on a task thread."""

    COMMENTED = "commented"
    ASSIGNED = "assigned"
    MENTIONED = "mentioned"
    CREATED = "created"

    @property
    def reason(self) -> str:
        """Human-readable subscription reason for this action."""
        return _SUBSCRIBE_REASONS[self]


_SUBSCRIBE_REASONS = {
    SubscribeAction.COMMENTED: "You commented on this task",
    SubscribeAction.ASSIGNED: "You were assigned to this task",
    SubscribeAction.MENTIONED: "You were mentioned in this task",
    SubscribeAction.CREATED: "You created this task",
}


# ============================================================================
# Helper Functions
# ============================================================================


def generate_id() -> str:
    """Generate a unique ID."""
    return str(uuid.uuid4())


def now_iso() -> str:
    """Get current UTC time as ISO 8601 string."""
    return datetime.now(UTC).isoformat()


def parse_iso(value: str) -> datetime:
    """Parse an ISO 8601 timestamp, treating naive values as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


# ============================================================================
# Data Models
# ============================================================================


@dataclass
class AgentProfile:
    """
    Represents an AI agent known to Mission Control.

    The notification pipeline only reads ``id``, ``name`` and
    ``session_key``; the rest is carried for the standup report.

    Attributes:
        id: Unique identifier
        name: Display name (e.g., "Jarvis", "Shuri Patel")
        role: Job title (e.g., "Squad Lead")
        status: Current operational status
        session_key: Delivery handle for the agent session (empty if unknown)
        current_task_id: Task being worked on, if any
        last_seen: Last heartbeat time
        created_at: When this agent was registered
        metadata: Extensible key-value data
    """

    id: str = field(default_factory=generate_id)
    name: str = ""
    role: str = ""
    status: AgentStatus = AgentStatus.IDLE
    session_key: str = ""
    current_task_id: str | None = None
    last_seen: str | None = None
    created_at: str = field(default_factory=now_iso)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "status": self.status.value,
            "session_key": self.session_key,
            "current_task_id": self.current_task_id,
            "last_seen": self.last_seen,
            "created_at": self.created_at,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AgentProfile":
        """Create from dictionary."""
        return cls(
            id=data.get("id", generate_id()),
            name=data.get("name", ""),
            role=data.get("role", ""),
            status=AgentStatus(data.get("status", "idle")),
            session_key=data.get("session_key") or "",
            current_task_id=data.get("current_task_id"),
            last_seen=data.get("last_seen"),
            created_at=data.get("created_at", now_iso()),
            metadata=data.get("metadata", {}),
        )


@dataclass
class Task:
    """
    Represents a work item.

    Attributes:
        id: Unique identifier
        title: Short summary of the task
        description: Full details
        status: Current lifecycle status
        priority: Urgency level
        assignee_ids: Agents assigned to this task
        created_by: Agent who created the task
        parent_task_id: For subtasks, the parent task ID
        due_date: Optional deadline (ISO 8601)
        completed_at: When the task was completed
        created_at: When the task was created
        updated_at: Last modification time
        metadata: Extensible key-value data
    """

    id: str = field(default_factory=generate_id)
    title: str = ""
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee_ids: list[str] = field(default_factory=list)
    created_by: str | None = None
    parent_task_id: str | None = None
    due_date: str | None = None
    completed_at: str | None = None
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "assignee_ids": self.assignee_ids,
            "created_by": self.created_by,
            "parent_task_id": self.parent_task_id,
            "due_date": self.due_date,
            "completed_at": self.completed_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        """Create from dictionary."""
        return cls(
            id=data.get("id", generate_id()),
            title=data.get("title", ""),
            description=data.get("description", ""),
            status=TaskStatus(data.get("status", "pending")),
            priority=TaskPriority(data.get("priority", "medium")),
            assignee_ids=data.get("assignee_ids", []),
            created_by=data.get("created_by"),
            parent_task_id=data.get("parent_task_id"),
            due_date=data.get("due_date"),
            completed_at=data.get("completed_at"),
            created_at=data.get("created_at", now_iso()),
            updated_at=data.get("updated_at", now_iso()),
            metadata=data.get("metadata", {}),
        )


@dataclass
class Message:
    """
    Represents a message, usually a comment on a task thread.

    Attributes:
        id: Unique identifier
        task_id: Task thread this message belongs to (None for direct messages)
        from_agent_id: Agent who sent the message
        content: Message text (can contain @mentions)
        message_type: Kind of message
        mentions: IDs of agents resolved from @mentions
        created_at: When the message was sent
        metadata: Extensible key-value data
    """

    id: str = field(default_factory=generate_id)
    task_id: str | None = None
    from_agent_id: str = ""
    content: str = ""
    message_type: MessageType = MessageType.TEXT
    mentions: list[str] = field(default_factory=list)
    created_at: str = field(default_factory=now_iso)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "task_id": self.task_id,
            "from_agent_id": self.from_agent_id,
            "content": self.content,
            "message_type": self.message_type.value,
            "mentions": self.mentions,
            "created_at": self.created_at,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        """Create from dictionary."""
        return cls(
            id=data.get("id", generate_id()),
            task_id=data.get("task_id"),
            from_agent_id=data.get("from_agent_id", ""),
            content=data.get("content", ""),
            message_type=MessageType(data.get("message_type", "text")),
            mentions=data.get("mentions", []),
            created_at=data.get("created_at", now_iso()),
            metadata=data.get("metadata", {}),
        )


@dataclass
class Activity:
    """
    Represents an entry in the activity log.

    Activities are append-only; the standup report aggregates them.

    Attributes:
        id: Unique identifier
        type: Type of activity
        agent_id: Agent who triggered this activity
        task_id: Related task (if applicable)
        message: Human-readable description
        created_at: When the activity occurred
        metadata: Additional context data
    """

    id: str = field(default_factory=generate_id)
    type: ActivityType = ActivityType.STATUS_CHANGED
    agent_id: str | None = None
    task_id: str | None = None
    message: str = ""
    created_at: str = field(default_factory=now_iso)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "type": self.type.value,
            "agent_id": self.agent_id,
            "task_id": self.task_id,
            "message": self.message,
            "created_at": self.created_at,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Activity":
        """Create from dictionary."""
        return cls(
            id=data.get("id", generate_id()),
            type=ActivityType(data.get("type", "status_changed")),
            agent_id=data.get("agent_id"),
            task_id=data.get("task_id"),
            message=data.get("message", ""),
            created_at=data.get("created_at", now_iso()),
            metadata=data.get("metadata", {}),
        )


@dataclass
class ThreadSubscription:
    """
    An agent's interest in a task thread.

    At most one subscription exists per (task_id, agent_id). Records are
    never mutated; they are removed only by an explicit unsubscribe.

    Attributes:
        id: Unique identifier
        task_id: Followed task
        agent_id: Following agent
        subscribed_at: Creation time
        reason: Why the agent is on the thread (free text)
    """

    id: str = field(default_factory=generate_id)
    task_id: str = ""
    agent_id: str = ""
    subscribed_at: str = field(default_factory=now_iso)
    reason: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.task_id, self.agent_id)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "task_id": self.task_id,
            "agent_id": self.agent_id,
            "subscribed_at": self.subscribed_at,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ThreadSubscription":
        """Create from dictionary."""
        return cls(
            id=data.get("id", generate_id()),
            task_id=data.get("task_id", ""),
            agent_id=data.get("agent_id", ""),
            subscribed_at=data.get("subscribed_at", now_iso()),
            reason=data.get("reason"),
        )


@dataclass
class Notification:
    """
    A queued instruction to deliver ``content`` to one agent.

    Notifications move exactly once from undelivered to delivered.
    ``delivered_at`` is set if and only if ``delivered`` is True.

    Attributes:
        id: Unique identifier
        agent_id: Recipient agent
        content: Text to deliver
        notification_type: Severity
        related_task_id: Task the notification is about (optional)
        delivered: Whether the delivery daemon handed it to the sink
        delivered_at: When it was delivered
        created_at: When it was queued
        metadata: Extensible key-value data
    """

    id: str = field(default_factory=generate_id)
    agent_id: str = ""
    content: str = ""
    notification_type: NotificationType = NotificationType.INFO
    related_task_id: str | None = None
    delivered: bool = False
    delivered_at: str | None = None
    created_at: str = field(default_factory=now_iso)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.delivered != (self.delivered_at is not None):
            raise ValueError(
                f"Notification {self.id}: delivered_at must be set if and only if delivered"
            )

    def mark_delivered(self, at: str | None = None) -> None:
        """Flip the record to delivered. No-op if it already is."""
        if self.delivered:
            return
        self.delivered = True
        self.delivered_at = at or now_iso()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "agent_id": self.agent_id,
            "content": self.content,
            "notification_type": self.notification_type.value,
            "related_task_id": self.related_task_id,
            "delivered": self.delivered,
            "delivered_at": self.delivered_at,
            "created_at": self.created_at,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Notification":
        """Create from dictionary."""
        return cls(
            id=data.get("id", generate_id()),
            agent_id=data.get("agent_id", ""),
            content=data.get("content", ""),
            notification_type=NotificationType(data.get("notification_type", "info")),
            related_task_id=data.get("related_task_id"),
            delivered=data.get("delivered", False),
            delivered_at=data.get("delivered_at"),
            created_at=data.get("created_at", now_iso()),
            metadata=data.get("metadata", {}),
        )


# ============================================================================
# Result Records
# ============================================================================


@dataclass
class SubscribeResult:
    """Outcome of an idempotent subscribe."""

    subscription: ThreadSubscription
    already_subscribed: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "subscription": self.subscription.to_dict(),
            "already_subscribed": self.already_subscribed,
        }


@dataclass
class UnsubscribeResult:
    """Outcome of an unsubscribe."""

    success: bool
    error: str | None = None


@dataclass
class PublishResult:
    """Outcome of a notification fan-out.

    One failed recipient does not stop the others; its error is collected
    here instead.
    """

    notifications: list[Notification] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def extend(self, other: "PublishResult") -> None:
        self.notifications.extend(other.notifications)
        self.errors.extend(other.errors)


@dataclass
class CycleResult:
    """Counts from one delivery daemon poll cycle."""

    processed: int = 0
    delivered: int = 0
    pending: int = 0
    skipped: int = 0
