# Tests for MissionControlManager
# Created: 2026-02-05
# Updated: 2026-02-14 - Subscription and notification side effects of the
# producer operations (create, assign, comment)

import tempfile
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from missioncontrol import (
    ActivityType,
    FileMissionControlStore,
    MissionControlManager,
    NotFoundError,
    StoreError,
    TaskStatus,
    get_mission_control_manager,
    reset_mission_control_manager,
    reset_mission_control_store,
)

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def temp_store_path():
    """Create a temporary directory for test storage."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store(temp_store_path):
    """Create a fresh store for each test."""
    reset_mission_control_store()
    return FileMissionControlStore(temp_store_path)


@pytest.fixture
def manager(store):
    """Create a manager with the test store."""
    reset_mission_control_manager()
    return MissionControlManager(store)


async def _team(manager):
    jarvis = await manager.create_agent("Jarvis", "Squad Lead")
    shuri = await manager.create_agent("Shuri", "Product Analyst")
    friday = await manager.create_agent("Friday", "Developer")
    return jarvis, shuri, friday


async def _pending_by_agent(store):
    counts: dict[str, int] = {}
    for notification in await store.get_undelivered_notifications():
        counts[notification.agent_id] = counts.get(notification.agent_id, 0) + 1
    return counts


# ============================================================================
# Agents
# ============================================================================


class TestAgents:
    @pytest.mark.asyncio
    async def test_create_agent_default_session_key(self, manager):
        """Test default session key is derived from the name."""
        agent = await manager.create_agent("Shuri Patel", "Product Analyst")
        assert agent.session_key == "agent:shuri-patel:main"

    @pytest.mark.asyncio
    async def test_create_agent_explicit_session_key(self, manager):
        agent = await manager.create_agent("Jarvis", "Squad Lead", session_key="agent:main:main")
        assert (await manager.get_agent(agent.id)).session_key == "agent:main:main"

    @pytest.mark.asyncio
    async def test_create_agent_logs_activity(self, manager):
        agent = await manager.create_agent("Jarvis", "Squad Lead")
        feed = await manager.get_activity_feed()
        assert feed[0].type == ActivityType.AGENT_JOINED
        assert feed[0].agent_id == agent.id

    @pytest.mark.asyncio
    async def test_heartbeat(self, manager):
        agent = await manager.create_agent("Jarvis", "Squad Lead")
        assert await manager.record_heartbeat(agent.id)
        assert (await manager.get_agent(agent.id)).last_seen is not None
        assert len(await manager.list_agents()) == 1


# ============================================================================
# Tasks
# ============================================================================


class TestTasks:
    @pytest.mark.asyncio
    async def test_create_task_subscribes_creator_and_assignees(self, manager, store):
        jarvis, shuri, friday = await _team(manager)

        task = await manager.create_task(
            "Research competitors", created_by=jarvis.id, assignee_ids=[shuri.id, friday.id]
        )

        subs = await manager.subscriptions.get_by_task(task.id)
        reasons = {s.agent_id: s.reason for s in subs}
        assert reasons == {
            jarvis.id: "You created this task",
            shuri.id: "You were assigned to this task",
            friday.id: "You were assigned to this task",
        }
        assert await _pending_by_agent(store) == {shuri.id: 1, friday.id: 1}

    @pytest.mark.asyncio
    async def test_assign_three_agents_three_notifications(self, manager, store):
        """Pre-existing subscriptions do not change the count."""
        jarvis, shuri, friday = await _team(manager)
        task = await manager.create_task("Launch plan")
        await manager.subscriptions.subscribe(task.id, shuri.id)

        result = await manager.assign_task(task.id, [jarvis.id, shuri.id, friday.id])

        assert result.success
        assert len(result.notifications) == 3
        pending = await store.get_undelivered_notifications()
        assert len(pending) == 3
        assert {n.agent_id for n in pending} == {jarvis.id, shuri.id, friday.id}
        assert all(n.related_task_id == task.id for n in pending)

        updated = await manager.get_task(task.id)
        assert set(updated.assignee_ids) == {jarvis.id, shuri.id, friday.id}

    @pytest.mark.asyncio
    async def test_assign_unknown_task(self, manager):
        with pytest.raises(NotFoundError):
            await manager.assign_task("missing", [])

    @pytest.mark.asyncio
    async def test_assign_with_unknown_agent_is_best_effort(self, manager, store):
        jarvis, _, _ = await _team(manager)
        task = await manager.create_task("Launch plan")

        result = await manager.assign_task(task.id, [jarvis.id, "ghost"])

        assert len(result.notifications) == 1
        assert len(result.errors) == 1
        assert await _pending_by_agent(store) == {jarvis.id: 1}

    @pytest.mark.asyncio
    async def test_update_status_logs_activity(self, manager):
        jarvis, _, _ = await _team(manager)
        task = await manager.create_task("Ship it")

        updated = await manager.update_task_status(task.id, TaskStatus.COMPLETED, jarvis.id)

        assert updated.status == TaskStatus.COMPLETED
        assert updated.completed_at is not None
        feed = await manager.get_activity_feed()
        assert feed[0].type == ActivityType.TASK_COMPLETED
        assert feed[0].message == "Completed 'Ship it'"

    @pytest.mark.asyncio
    async def test_update_status_blocked(self, manager):
        task = await manager.create_task("Ship it")
        await manager.update_task_status(task.id, TaskStatus.BLOCKED)

        feed = await manager.get_activity_feed()
        assert feed[0].type == ActivityType.STATUS_CHANGED
        assert [t.id for t in await manager.list_tasks(status=TaskStatus.BLOCKED)] == [task.id]

    @pytest.mark.asyncio
    async def test_update_status_unknown_task(self, manager):
        with pytest.raises(NotFoundError):
            await manager.update_task_status("missing", TaskStatus.IN_PROGRESS)


# ============================================================================
# Messages
# ============================================================================


class TestMessages:
    @pytest.mark.asyncio
    async def test_comment_flow(self, manager, store):
        jarvis, shuri, friday = await _team(manager)
        task = await manager.create_task(
            "Research competitors", created_by=jarvis.id, assignee_ids=[shuri.id]
        )
        await store.mark_all_delivered_for_agent(shuri.id)

        message = await manager.post_message(friday.id, "@Jarvis thoughts?", task_id=task.id)

        assert message.mentions == [jarvis.id]
        assert await manager.subscriptions.is_subscribed(task.id, friday.id)

        pending = await store.get_undelivered_notifications()
        by_agent = {n.agent_id: n.content for n in pending}
        assert set(by_agent) == {jarvis.id, shuri.id}
        assert by_agent[jarvis.id] == 'You were mentioned in a message: "@Jarvis thoughts?..."'
        assert by_agent[shuri.id] == "Friday commented on 'Research competitors': @Jarvis thoughts?"

    @pytest.mark.asyncio
    async def test_mention_subscribes_mentioned_agent(self, manager):
        jarvis, shuri, _ = await _team(manager)
        task = await manager.create_task("Research", created_by=jarvis.id)

        await manager.add_comment(task.id, jarvis.id, "@Shuri can you take a look")

        sub = (await manager.subscriptions.get_by_task(task.id))[-1]
        assert sub.agent_id == shuri.id
        assert sub.reason == "You were mentioned in this task"

    @pytest.mark.asyncio
    async def test_self_mention_not_notified(self, manager, store):
        jarvis, _, _ = await _team(manager)
        task = await manager.create_task("Research", created_by=jarvis.id)

        message = await manager.post_message(jarvis.id, "@Jarvis note to self", task_id=task.id)

        assert message.mentions == []
        assert await store.get_undelivered_notifications() == []

    @pytest.mark.asyncio
    async def test_direct_message_mentions(self, manager, store):
        jarvis, shuri, _ = await _team(manager)

        await manager.post_message(jarvis.id, "@Shuri standup in 5")

        assert await _pending_by_agent(store) == {shuri.id: 1}
        assert await manager.subscriptions.get_by_agent(shuri.id) == []

    @pytest.mark.asyncio
    async def test_message_activity_truncated(self, manager):
        jarvis, _, _ = await _team(manager)
        await manager.post_message(jarvis.id, "y" * 300)

        feed = await manager.get_activity_feed()
        assert feed[0].type == ActivityType.MESSAGE_SENT
        assert feed[0].message == "y" * 100

    @pytest.mark.asyncio
    async def test_unknown_sender_or_task(self, manager):
        jarvis, _, _ = await _team(manager)
        with pytest.raises(NotFoundError):
            await manager.post_message("ghost", "hello")
        with pytest.raises(NotFoundError):
            await manager.post_message(jarvis.id, "hello", task_id="missing")

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_fail_message(
        self, manager, store, monkeypatch
    ):
        jarvis, shuri, _ = await _team(manager)
        task = await manager.create_task("Research", created_by=jarvis.id)
        monkeypatch.setattr(
            store, "save_notification", AsyncMock(side_effect=StoreError("disk full"))
        )

        message = await manager.post_message(jarvis.id, "@Shuri please check", task_id=task.id)

        assert [m.id for m in await manager.get_messages_for_task(task.id)] == [message.id]
        assert await manager.subscriptions.is_subscribed(task.id, shuri.id)


class TestSingleton:
    def test_get_manager_uses_store_singleton(self, temp_store_path, monkeypatch):
        import missioncontrol.store as store_module

        reset_mission_control_manager()
        store = FileMissionControlStore(temp_store_path)
        monkeypatch.setattr(store_module, "_store_instance", store)

        manager = get_mission_control_manager()
        assert manager.store is store
        assert get_mission_control_manager() is manager
        reset_mission_control_manager()
