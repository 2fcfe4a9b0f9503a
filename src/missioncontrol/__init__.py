"""Mission Control - task threads and agent notifications.

Created: 2026-02-05

Mission Control is a shared workspace where several agents work on tasks
together. Agents follow task threads, and anything that happens on a thread
(a comment, an @mention, an assignment) queues a notification. A separate
daemon delivers queued notifications to each agent's session.

- Agent profiles with roles, status and a session key for delivery
- Tasks with assignees and a status lifecycle
- Thread subscriptions, created automatically when an agent touches a task
- A durable notification queue (pending -> delivered)
- Activity feed and a daily standup report

Usage:
    from missioncontrol import get_mission_control_manager

    manager = get_mission_control_manager()

    jarvis = await manager.create_agent(name="Jarvis", role="Squad Lead")
    shuri = await manager.create_agent(name="Shuri", role="Product Analyst")

    # Creator is subscribed; Shuri is subscribed and notified
    task = await manager.create_task(
        title="Research competitors",
        created_by=jarvis.id,
        assignee_ids=[shuri.id],
    )

    # Notifies Shuri through the thread
    await manager.post_message(jarvis.id, "Kicking this off today", task_id=task.id)

Delivery runs as its own process (``mc-notifications``).
"""

from missioncontrol.errors import (
    DeliveryError,
    MissionControlError,
    NotFoundError,
    StoreError,
)

# Manager
from missioncontrol.manager import (
    MissionControlManager,
    get_mission_control_manager,
    reset_mission_control_manager,
)

# Models
from missioncontrol.models import (
    Activity,
    ActivityType,
    AgentProfile,
    AgentStatus,
    Message,
    Notification,
    NotificationType,
    PublishResult,
    SubscribeAction,
    SubscribeResult,
    Task,
    TaskPriority,
    TaskStatus,
    ThreadSubscription,
    UnsubscribeResult,
)
from missioncontrol.publisher import NotificationPublisher, extract_mentions

# Store
from missioncontrol.store import (
    FileMissionControlStore,
    get_mission_control_store,
    reset_mission_control_store,
)
from missioncontrol.subscriptions import SubscriptionManager

__all__ = [
    # Models
    "AgentProfile",
    "AgentStatus",
    "Task",
    "TaskStatus",
    "TaskPriority",
    "Message",
    "Activity",
    "ActivityType",
    "ThreadSubscription",
    "SubscribeAction",
    "SubscribeResult",
    "UnsubscribeResult",
    "Notification",
    "NotificationType",
    "PublishResult",
    # Errors
    "MissionControlError",
    "NotFoundError",
    "StoreError",
    "DeliveryError",
    # Store
    "FileMissionControlStore",
    "get_mission_control_store",
    "reset_mission_control_store",
    # Services
    "SubscriptionManager",
    "NotificationPublisher",
    "extract_mentions",
    # Manager
    "MissionControlManager",
    "get_mission_control_manager",
    "reset_mission_control_manager",
]
