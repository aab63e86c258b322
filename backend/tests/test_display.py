"""Display Scheduler: coalescing, hash skipping, display modes, vanished targets."""

from fakes import fill

from linekeeper import intents
from linekeeper.models.member import MemberState
from linekeeper.models.queue import DisplayMode
from linekeeper.services.display import DisplayScheduler, default_content

QUEUE = 100
TEXT = 500


async def show(db, engine, **settings):
    db.add_queue(QUEUE, **settings)
    return await engine.handle(intents.ShowDisplay(QUEUE, TEXT))


class TestCoalescing:
    async def test_burst_of_changes_renders_once_with_latest_state(
        self, db, engine, surface, settle
    ):
        await show(db, engine)

        await fill(engine, QUEUE, range(1, 11))
        await settle()

        updates = surface.actions("update")
        assert len(updates) == 1
        assert len(updates[0].content.lines) == 10

    async def test_unchanged_state_is_not_rendered(self, db, engine, surface, settle):
        await show(db, engine)
        await fill(engine, QUEUE, [1])
        await settle()
        calls = len(surface.calls)

        # One member: a shuffle changes nothing visible
        await engine.membership.shuffle(QUEUE)
        await settle()

        assert len(surface.calls) == calls
        assert await engine.display.render_now(QUEUE) == 0

    async def test_request_during_render_renders_again(self, db, ctx, settle):
        queue = db.add_queue(QUEUE)
        message_id = await ctx.surface.create_render_target(TEXT, default_content(queue, []))
        await ctx.displays.upsert(QUEUE, TEXT, message_id, None)
        calls = []

        def builder(queue, entries):
            calls.append(len(entries))
            if len(calls) == 1:
                scheduler.request_update(QUEUE)
            return default_content(queue, entries)

        scheduler = DisplayScheduler(ctx, builder)
        scheduler.request_update(QUEUE)
        await settle(6)

        assert len(calls) == 2
        assert not scheduler.is_pending(QUEUE)
        await scheduler.shutdown()

    async def test_pending_until_rendered(self, db, engine, settle):
        await show(db, engine)
        await engine.membership.join(QUEUE, 1)

        assert engine.display.is_pending(QUEUE)
        await settle()
        assert not engine.display.is_pending(QUEUE)


class TestModes:
    async def test_edit_mode_edits_in_place(self, db, engine, surface, settle):
        target = await show(db, engine)
        await engine.membership.join(QUEUE, 1)
        await settle()

        assert [c.message_id for c in surface.actions("update")] == [target.message_id]
        assert surface.actions("delete") == []

    async def test_resend_and_delete(self, db, engine, surface, settle):
        target = await show(db, engine)
        await engine.handle(intents.SetDisplayMode(1, DisplayMode.RESEND_AND_DELETE))

        await engine.membership.join(QUEUE, 1)
        await settle()

        assert len(surface.actions("create")) == 2
        assert [c.message_id for c in surface.actions("delete")] == [target.message_id]
        [current] = await db.displays.list_for_queue(QUEUE)
        assert current.message_id != target.message_id
        assert current.message_id in surface.messages

    async def test_resend_keeps_old_messages(self, db, engine, surface, settle):
        await show(db, engine)
        await engine.handle(intents.SetDisplayMode(1, DisplayMode.RESEND))

        await engine.membership.join(QUEUE, 1)
        await settle()

        assert len(surface.actions("create")) == 2
        assert surface.actions("delete") == []
        assert len(surface.messages) == 2

    async def test_new_guilds_start_in_the_configured_mode(self, db, engine, surface, settle):
        db.guilds.default_mode = DisplayMode.RESEND
        await show(db, engine)

        await engine.membership.join(QUEUE, 1)
        await settle()

        assert len(surface.actions("create")) == 2
        assert surface.actions("update") == []


class TestTargets:
    async def test_vanished_message_drops_the_binding(self, db, engine, surface, settle):
        target = await show(db, engine)
        del surface.messages[target.message_id]

        await engine.membership.join(QUEUE, 1)
        await settle()

        assert await db.displays.list_for_queue(QUEUE) == []

    async def test_other_failures_keep_the_binding(self, db, engine, surface, settle):
        await show(db, engine)
        surface.failing_channels.add(TEXT)

        await engine.membership.join(QUEUE, 1)
        await settle()

        [target] = await db.displays.list_for_queue(QUEUE)
        assert target.display_channel_id == TEXT

    async def test_showing_again_replaces_the_old_message(self, db, engine, surface):
        first = await show(db, engine)
        second = await engine.handle(intents.ShowDisplay(QUEUE, TEXT))

        assert second.id == first.id
        assert first.message_id not in surface.messages
        assert second.message_id in surface.messages

    async def test_show_unknown_queue(self, engine):
        assert await engine.handle(intents.ShowDisplay(404, TEXT)) is None

    async def test_deleting_the_queue_removes_displays(self, db, engine, surface):
        target = await show(db, engine)

        await engine.handle(intents.DeleteQueue(QUEUE))

        assert target.message_id not in surface.messages
        assert db.display_rows == {}


class TestDefaultContent:
    async def test_lines_and_footer(self, db, engine):
        db.add_queue(QUEUE, size_limit=5, header="Ranked games")
        await fill(engine, QUEUE, [1])
        await engine.membership.join(QUEUE, 2, priority=True)
        await db.members.set_state(QUEUE, 1, MemberState.GRACE, db.now())
        await db.queues.update(QUEUE, is_locked=True)

        content = await engine.display.snapshot(QUEUE)

        assert content.lines == ("1. 2 [priority]", "2. 1 [away]")
        assert content.footer == "2/5 in queue | locked"
        assert content.header == "Ranked games"

    async def test_digest_tracks_content(self, db, engine):
        db.add_queue(QUEUE)
        empty = await engine.display.snapshot(QUEUE)
        await engine.membership.join(QUEUE, 1)
        one = await engine.display.snapshot(QUEUE)

        assert empty.digest() != one.digest()
        assert one.digest() == (await engine.display.snapshot(QUEUE)).digest()
