"""Admission Engine: pulls, kicks, precedence and rollback."""

import pytest
from fakes import fill

from linekeeper.errors import (
    DestinationFull,
    InsufficientMembers,
    NotQueued,
    QueueEmpty,
    RelocationFailed,
)
from linekeeper.models.queue import QueueSettings
from linekeeper.services.admission import Destination, plan_admission


class TestPlanAdmission:
    def test_defaults_to_pull_num(self):
        queue = QueueSettings(queue_channel_id=1, guild_id=1, pull_num=2)
        assert plan_admission(queue, available=5) == 2

    def test_empty_wins_over_everything(self):
        queue = QueueSettings(queue_channel_id=1, guild_id=1)
        with pytest.raises(QueueEmpty):
            plan_admission(queue, 0, 3, Destination(2, size_limit=1, current_size=1))

    def test_short_source_before_full_destination(self):
        queue = QueueSettings(queue_channel_id=1, guild_id=1)
        with pytest.raises(InsufficientMembers) as exc_info:
            plan_admission(queue, 2, 3, Destination(2, size_limit=1, current_size=1))
        assert exc_info.value.requested == 3
        assert exc_info.value.available == 2

    def test_partial_pull_takes_what_is_there(self):
        queue = QueueSettings(queue_channel_id=1, guild_id=1, partial_pull=True)
        assert plan_admission(queue, 2, 3) == 2

    def test_allow_partial_overrides_queue_flag(self):
        queue = QueueSettings(queue_channel_id=1, guild_id=1, partial_pull=True)
        with pytest.raises(InsufficientMembers):
            plan_admission(queue, 2, 3, allow_partial=False)

    def test_full_destination(self):
        queue = QueueSettings(queue_channel_id=1, guild_id=1)
        with pytest.raises(DestinationFull):
            plan_admission(queue, 5, 2, Destination(2, size_limit=4, current_size=4))

    def test_destination_headroom_caps_the_pull(self):
        queue = QueueSettings(queue_channel_id=1, guild_id=1)
        assert plan_admission(queue, 5, 3, Destination(2, size_limit=4, current_size=3)) == 1


class TestPull:
    async def test_pulls_the_head_of_the_line(self, db, engine):
        db.add_queue(100)
        await fill(engine, 100, [1, 2, 3, 4])

        result = await engine.admission.pull(100, 2)

        assert result.member_ids == [1, 2]
        assert db.member_ids(100) == [3, 4]

    async def test_pull_uses_queue_pull_num(self, db, engine):
        db.add_queue(100, pull_num=3)
        await fill(engine, 100, [1, 2, 3, 4])

        result = await engine.admission.pull(100)

        assert result.member_ids == [1, 2, 3]
        assert result.requested == 3

    async def test_size_limit_two_pull_three_without_partial(self, db, engine):
        db.add_queue(100, size_limit=2)
        await fill(engine, 100, [1, 2])

        with pytest.raises(InsufficientMembers):
            await engine.admission.pull(100, 3)
        assert db.member_ids(100) == [1, 2]

    async def test_empty_queue(self, db, engine):
        db.add_queue(100)

        with pytest.raises(QueueEmpty):
            await engine.admission.pull(100, 1)

    async def test_pull_runs_removal_hooks(self, db, engine, hooks):
        db.add_queue(100)
        await fill(engine, 100, [1, 2])

        await engine.admission.pull(100, 1)

        assert hooks.removed == [(100, 1)]

    async def test_failed_relocation_restores_order(self, db, engine):
        db.add_queue(100)
        await fill(engine, 100, [1, 2, 3])
        before = await engine.membership.list_ordered(100)

        async def relocate(entries):
            raise RuntimeError("missing permissions")

        with pytest.raises(RelocationFailed):
            await engine.admission.pull(100, 2, relocate=relocate)

        after = await engine.membership.list_ordered(100)
        assert [(e.member_id, e.order_key) for e in after] == [
            (e.member_id, e.order_key) for e in before
        ]

    async def test_relocate_sees_members_in_order(self, db, engine):
        db.add_queue(100)
        await fill(engine, 100, [5, 6, 7])
        seen = []

        async def relocate(entries):
            seen.extend(e.member_id for e in entries)

        await engine.admission.pull(100, 2, relocate=relocate)
        assert seen == [5, 6]


class TestKick:
    async def test_kick_preserves_order_of_the_rest(self, db, engine):
        db.add_queue(100)
        await fill(engine, 100, [1, 2, 3, 4, 5])

        removed = await engine.admission.kick(100, [4, 2])

        assert [e.member_id for e in removed] == [2, 4]
        assert db.member_ids(100) == [1, 3, 5]

    async def test_kick_ignores_unknown_members(self, db, engine):
        db.add_queue(100)
        await fill(engine, 100, [1, 2])

        removed = await engine.admission.kick(100, [2, 42])

        assert [e.member_id for e in removed] == [2]

    async def test_kick_nobody_queued(self, db, engine):
        db.add_queue(100)

        with pytest.raises(NotQueued):
            await engine.admission.kick(100, [1])
