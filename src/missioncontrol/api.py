"""Mission Control API endpoints.

Created: 2026-02-05
Updated: 2026-02-14 - Added thread subscription and notification queue
endpoints:
  - GET/POST /tasks/{id}/subscriptions - list / subscribe (idempotent)
  - GET/DELETE /tasks/{id}/subscriptions/{agent_id} - check / unsubscribe
  - GET /tasks/{id}/subscribers - notify-set for an event
  - GET /agents/{id}/subscriptions - threads an agent follows
  - POST /notifications - queue a direct notification
  - POST /agents/{id}/notifications/delivered - mark all delivered
  - DELETE /notifications/{id}

FastAPI router for Mission Control operations.

Provides REST endpoints for:
- Agents: register, list, heartbeat
- Tasks: create, assign, status updates, thread messages with @mentions
- Subscriptions: who follows which task thread
- Notifications: the delivery queue
- Activity feed, stats and standup preview

Mount this router to your FastAPI app:
    from missioncontrol.api import router as mission_control_router
    app.include_router(mission_control_router, prefix="/api/mission-control")
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from missioncontrol.daemon.standup import StandupReporter
from missioncontrol.errors import NotFoundError, StoreError
from missioncontrol.manager import get_mission_control_manager
from missioncontrol.models import (
    AgentStatus,
    MessageType,
    NotificationType,
    SubscribeAction,
    TaskPriority,
    TaskStatus,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Mission Control"])


@contextmanager
def _http_errors() -> Iterator[None]:
    """Map Mission Control errors onto HTTP status codes."""
    try:
        yield
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except StoreError as e:
        logger.error(f"Store unavailable: {e}")
        raise HTTPException(status_code=503, detail="Store unavailable") from e


def _parse_enum(enum_cls, value: str | None, field_name: str):
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {field_name}: {value}")


# ============================================================================
# Request/Response Models
# ============================================================================


class CreateAgentRequest(BaseModel):
    """Request to register a new agent."""

    name: str = Field(..., min_length=1, max_length=50)
    role: str = Field(..., min_length=1, max_length=100)
    session_key: str | None = None


class CreateTaskRequest(BaseModel):
    """Request to create a new task."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="")
    priority: str = Field(default="medium")
    assignee_ids: list[str] = Field(default_factory=list)
    created_by: str | None = None


class AssignTaskRequest(BaseModel):
    """Request to assign agents to a task."""

    agent_ids: list[str]


class UpdateTaskStatusRequest(BaseModel):
    """Request to update a task's status."""

    status: str
    agent_id: str | None = None


class PostMessageRequest(BaseModel):
    """Request to post a message on a task."""

    from_agent_id: str
    content: str = Field(..., min_length=1)
    message_type: str = Field(default="text")


class SubscribeRequest(BaseModel):
    """Request to subscribe an agent to a task thread.

    ``action`` picks a canned reason (commented, assigned, mentioned,
    created); ``reason`` is free text. ``action`` wins when both are set.
    """

    agent_id: str
    reason: str | None = None
    action: str | None = None


class CreateNotificationRequest(BaseModel):
    """Request to queue a notification for an agent."""

    agent_id: str
    content: str = Field(..., min_length=1)
    notification_type: str = Field(default="info")
    related_task_id: str | None = None


class SuccessResponse(BaseModel):
    """Generic success response."""

    success: bool = True
    message: str = ""


# ============================================================================
# Agent Endpoints
# ============================================================================


@router.get("/agents")
async def list_agents(status: str | None = None) -> dict[str, Any]:
    """List all agents."""
    status_enum = _parse_enum(AgentStatus, status, "status")
    manager = get_mission_control_manager()
    with _http_errors():
        agents = await manager.list_agents(status_enum.value if status_enum else None)

    return {
        "agents": [a.to_dict() for a in agents],
        "count": len(agents),
    }


@router.post("/agents")
async def create_agent(request: CreateAgentRequest) -> dict[str, Any]:
    """Register a new agent."""
    manager = get_mission_control_manager()
    with _http_errors():
        agent = await manager.create_agent(
            name=request.name,
            role=request.role,
            session_key=request.session_key,
        )
    return {"agent": agent.to_dict()}


@router.get("/agents/{agent_id}")
async def get_agent(agent_id: str) -> dict[str, Any]:
    """Get an agent by ID."""
    manager = get_mission_control_manager()
    with _http_errors():
        agent = await manager.get_agent(agent_id)

    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")

    return {"agent": agent.to_dict()}


@router.post("/agents/{agent_id}/heartbeat")
async def agent_heartbeat(agent_id: str) -> dict[str, Any]:
    """Record an agent heartbeat."""
    manager = get_mission_control_manager()
    with _http_errors():
        success = await manager.record_heartbeat(agent_id)
        if not success:
            raise HTTPException(status_code=404, detail="Agent not found")
        agent = await manager.get_agent(agent_id)

    return {"agent": agent.to_dict() if agent else None}


# ============================================================================
# Task Endpoints
# ============================================================================


@router.get("/tasks")
async def list_tasks(
    status: str | None = None,
    assignee_id: str | None = None,
    limit: int = 100,
) -> dict[str, Any]:
    """List tasks with optional filters."""
    status_enum = _parse_enum(TaskStatus, status, "status")
    manager = get_mission_control_manager()
    with _http_errors():
        tasks = await manager.list_tasks(status=status_enum, assignee_id=assignee_id)

    return {
        "tasks": [t.to_dict() for t in tasks[:limit]],
        "count": len(tasks),
    }


@router.post("/tasks")
async def create_task(request: CreateTaskRequest) -> dict[str, Any]:
    """Create a new task."""
    priority = _parse_enum(TaskPriority, request.priority, "priority")
    manager = get_mission_control_manager()
    with _http_errors():
        task = await manager.create_task(
            title=request.title,
            description=request.description,
            created_by=request.created_by,
            priority=priority,
            assignee_ids=request.assignee_ids or None,
        )
    return {"task": task.to_dict()}


@router.get("/tasks/{task_id}")
async def get_task(task_id: str) -> dict[str, Any]:
    """Get a task by ID with messages and subscribers."""
    manager = get_mission_control_manager()
    with _http_errors():
        task = await manager.get_task(task_id)
        if not task:
            raise HTTPException(status_code=404, detail="Task not found")

        messages = await manager.get_messages_for_task(task_id)
        subscriptions = await manager.subscriptions.get_by_task(task_id)

    return {
        "task": task.to_dict(),
        "messages": [m.to_dict() for m in messages],
        "subscriber_ids": [s.agent_id for s in subscriptions],
    }


@router.post("/tasks/{task_id}/assign")
async def assign_task(task_id: str, request: AssignTaskRequest) -> dict[str, Any]:
    """Assign agents to a task. Each agent gets one notification."""
    manager = get_mission_control_manager()
    with _http_errors():
        result = await manager.assign_task(task_id, request.agent_ids)
        task = await manager.get_task(task_id)

    return {
        "task": task.to_dict() if task else None,
        "notifications": [n.to_dict() for n in result.notifications],
        "errors": result.errors,
    }


@router.post("/tasks/{task_id}/status")
async def update_task_status(task_id: str, request: UpdateTaskStatusRequest) -> dict[str, Any]:
    """Update a task's status."""
    status = _parse_enum(TaskStatus, request.status, "status")
    manager = get_mission_control_manager()
    with _http_errors():
        task = await manager.update_task_status(task_id, status, request.agent_id)
    return {"task": task.to_dict()}


# ============================================================================
# Message Endpoints
# ============================================================================


@router.get("/tasks/{task_id}/messages")
async def get_task_messages(task_id: str) -> dict[str, Any]:
    """Get all messages for a task."""
    manager = get_mission_control_manager()
    with _http_errors():
        messages = await manager.get_messages_for_task(task_id)

    return {
        "messages": [m.to_dict() for m in messages],
        "count": len(messages),
    }


@router.post("/tasks/{task_id}/messages")
async def post_message(task_id: str, request: PostMessageRequest) -> dict[str, Any]:
    """Post a message on a task thread.

    @mentions notify and subscribe the mentioned agents; other thread
    subscribers are told about the comment.
    """
    message_type = _parse_enum(MessageType, request.message_type, "message_type")
    manager = get_mission_control_manager()
    with _http_errors():
        message = await manager.post_message(
            request.from_agent_id,
            request.content,
            task_id=task_id,
            message_type=message_type,
        )
    return {"message": message.to_dict()}


# ============================================================================
# Subscription Endpoints
# ============================================================================


@router.get("/tasks/{task_id}/subscriptions")
async def list_task_subscriptions(task_id: str) -> dict[str, Any]:
    """List the agents following a task thread."""
    manager = get_mission_control_manager()
    with _http_errors():
        subscriptions = await manager.subscriptions.get_by_task(task_id)

    return {
        "subscriptions": [s.to_dict() for s in subscriptions],
        "count": len(subscriptions),
    }


@router.post("/tasks/{task_id}/subscriptions")
async def subscribe(task_id: str, request: SubscribeRequest) -> dict[str, Any]:
    """Subscribe an agent to a task thread (idempotent)."""
    action = _parse_enum(SubscribeAction, request.action, "action")
    manager = get_mission_control_manager()
    with _http_errors():
        if action:
            result = await manager.subscriptions.auto_subscribe(task_id, request.agent_id, action)
        else:
            result = await manager.subscriptions.subscribe(
                task_id, request.agent_id, reason=request.reason
            )
    return result.to_dict()


@router.get("/tasks/{task_id}/subscriptions/{agent_id}")
async def get_subscription(task_id: str, agent_id: str) -> dict[str, Any]:
    """Check whether an agent follows a task."""
    manager = get_mission_control_manager()
    with _http_errors():
        subscribed = await manager.subscriptions.is_subscribed(task_id, agent_id)
    return {"subscribed": subscribed}


@router.delete("/tasks/{task_id}/subscriptions/{agent_id}")
async def unsubscribe(task_id: str, agent_id: str) -> SuccessResponse:
    """Unsubscribe an agent from a task thread."""
    manager = get_mission_control_manager()
    with _http_errors():
        result = await manager.subscriptions.unsubscribe(task_id, agent_id)

    if not result.success:
        raise HTTPException(status_code=404, detail=result.error)

    return SuccessResponse(message="Unsubscribed")


@router.get("/tasks/{task_id}/subscribers")
async def subscribers_to_notify(
    task_id: str, exclude_agent_id: str | None = None
) -> dict[str, Any]:
    """Subscribers that an event by ``exclude_agent_id`` would notify."""
    manager = get_mission_control_manager()
    with _http_errors():
        subscriptions = await manager.subscriptions.subscribers_to_notify(
            task_id, exclude_agent_id
        )
    return {"agent_ids": [s.agent_id for s in subscriptions]}


@router.get("/agents/{agent_id}/subscriptions")
async def list_agent_subscriptions(agent_id: str) -> dict[str, Any]:
    """List the task threads an agent follows."""
    manager = get_mission_control_manager()
    with _http_errors():
        subscriptions = await manager.subscriptions.get_by_agent(agent_id)

    return {
        "subscriptions": [s.to_dict() for s in subscriptions],
        "count": len(subscriptions),
    }


# ============================================================================
# Notification Endpoints
# ============================================================================


@router.get("/notifications")
async def list_notifications(
    agent_id: str | None = None,
    undelivered: bool = False,
    limit: int = 50,
) -> dict[str, Any]:
    """List notifications, newest first unless ``undelivered`` (queue order)."""
    manager = get_mission_control_manager()
    store = manager.store
    with _http_errors():
        if undelivered:
            notifications = await store.get_undelivered_notifications(agent_id)
        elif agent_id:
            notifications = await store.get_notifications_for_agent(agent_id, limit)
        else:
            notifications = await store.list_notifications(limit)

    return {
        "notifications": [n.to_dict() for n in notifications[:limit]],
        "count": len(notifications),
    }


@router.post("/notifications")
async def create_notification(request: CreateNotificationRequest) -> dict[str, Any]:
    """Queue a direct notification for an agent."""
    notification_type = _parse_enum(
        NotificationType, request.notification_type, "notification_type"
    )
    manager = get_mission_control_manager()
    with _http_errors():
        notification = await manager.publisher.notify(
            request.agent_id,
            request.content,
            notification_type,
            related_task_id=request.related_task_id,
        )
    return {"notification": notification.to_dict()}


@router.post("/notifications/{notification_id}/delivered")
async def mark_delivered(notification_id: str) -> SuccessResponse:
    """Mark a notification as delivered."""
    manager = get_mission_control_manager()
    with _http_errors():
        success = await manager.store.mark_notification_delivered(notification_id)

    if not success:
        raise HTTPException(status_code=404, detail="Notification not found")

    return SuccessResponse(message="Notification marked as delivered")


@router.post("/agents/{agent_id}/notifications/delivered")
async def mark_all_delivered(agent_id: str) -> dict[str, Any]:
    """Mark every pending notification for an agent as delivered."""
    manager = get_mission_control_manager()
    with _http_errors():
        count = await manager.store.mark_all_delivered_for_agent(agent_id)
    return {"count": count}


@router.delete("/notifications/{notification_id}")
async def delete_notification(notification_id: str) -> SuccessResponse:
    """Delete a notification."""
    manager = get_mission_control_manager()
    with _http_errors():
        success = await manager.store.delete_notification(notification_id)

    if not success:
        raise HTTPException(status_code=404, detail="Notification not found")

    return SuccessResponse(message="Notification deleted")


# ============================================================================
# Activity Endpoints
# ============================================================================


@router.get("/activity")
async def get_activity_feed(
    agent_id: str | None = None,
    task_id: str | None = None,
    limit: int = 50,
) -> dict[str, Any]:
    """Get the activity feed."""
    manager = get_mission_control_manager()
    with _http_errors():
        if agent_id or task_id:
            activities = await manager.store.get_activities(
                agent_id=agent_id,
                task_id=task_id,
                limit=limit,
            )
        else:
            activities = await manager.get_activity_feed(limit)

    return {
        "activities": [a.to_dict() for a in activities],
        "count": len(activities),
    }


@router.get("/stats")
async def get_stats() -> dict[str, Any]:
    """Get Mission Control statistics."""
    manager = get_mission_control_manager()
    with _http_errors():
        stats = await manager.store.get_stats()
    return {"stats": stats}


@router.get("/standup")
async def get_standup() -> dict[str, Any]:
    """Preview today's standup report without sending it."""
    manager = get_mission_control_manager()
    with _http_errors():
        standup = await StandupReporter(manager.store).generate()
    return {"standup": standup}
