"""Tests for the generic workflow interpreter."""

from __future__ import annotations

import asyncio

import pytest

from memex.errors import WorkflowError
from memex.workflow.engine import COMPLETED, FAILED, Final, Invoke, Pure, Transition, Workflow


def _table() -> Workflow:
    return Workflow(
        id="demo",
        initial="fetch",
        context=lambda input: {"n": input.get("n", 0), "value": None, "label": ""},
        states={
            "fetch": Invoke(
                step="fetch",
                input=lambda ctx: {"n": ctx["n"]},
                assign=lambda ctx, out: {"value": out},
                on_done=[Transition("label")],
            ),
            "label": Pure(
                compute=lambda ctx: {"label": "big" if ctx["value"] > 10 else "small"},
                transitions=[
                    Transition("store", guard=lambda ctx: ctx["label"] == "big"),
                    Transition(COMPLETED),
                ],
            ),
            "store": Invoke(step="store", input=lambda ctx: ctx["value"], on_done=[Transition(COMPLETED)]),
            COMPLETED: Final(),
            FAILED: Final(),
        },
    )


class TestTableValidation:
    def test_unknown_target(self):
        with pytest.raises(WorkflowError):
            Workflow(
                id="bad",
                initial="a",
                states={
                    "a": Invoke(step="a", on_done=[Transition("nowhere")]),
                    COMPLETED: Final(),
                    FAILED: Final(),
                },
            )

    def test_missing_final_states(self):
        with pytest.raises(WorkflowError):
            Workflow(id="bad", initial="a", states={"a": Final()})


class TestRun:
    @pytest.mark.asyncio
    async def test_sync_and_async_steps(self):
        stored = []

        async def fetch(inp):
            return inp["n"] * 10

        run = await _table().create({"fetch": fetch, "store": stored.append}, {"n": 2}).start()
        assert run.state == COMPLETED
        assert run.context["label"] == "big"
        assert stored == [20]

    @pytest.mark.asyncio
    async def test_guard_default_branch(self):
        called = []
        run = await _table().create({"fetch": lambda i: 1, "store": called.append}).start()
        assert run.state == COMPLETED
        assert called == []

    @pytest.mark.asyncio
    async def test_step_exception_fails_with_tag(self):
        def boom(inp):
            raise RuntimeError("nope")

        run = await _table().create({"fetch": boom, "store": lambda v: None}).start()
        assert run.state == FAILED
        assert run.error == {"tag": "demo.fetch", "message": "nope"}

    @pytest.mark.asyncio
    async def test_pure_exception_fails_with_tag(self):
        run = await _table().create({"fetch": lambda i: None, "store": lambda v: None}).start()
        assert run.state == FAILED
        assert run.error["tag"] == "demo.label"

    @pytest.mark.asyncio
    async def test_missing_step(self):
        run = await _table().create({"fetch": lambda i: 50}).start()
        assert run.state == FAILED
        assert run.error == {"tag": "demo.store", "message": "store: not provided"}
        assert run.context["value"] == 50

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def slow(inp):
            await asyncio.sleep(5)

        run = await _table().create({"fetch": slow}, timeouts={"fetch": 0.01}).start()
        assert run.state == FAILED
        assert run.error["tag"] == "demo.fetch"
        assert "timed out" in run.error["message"]

    @pytest.mark.asyncio
    async def test_step_raising_timeout_error_without_timeout(self):
        async def flaky(inp):
            raise TimeoutError("upstream deadline")

        run = await _table().create({"fetch": flaky}).start()
        assert run.state == FAILED
        assert run.error == {"tag": "demo.fetch", "message": "upstream deadline"}

    @pytest.mark.asyncio
    async def test_unserializable_output_fails(self):
        run = await _table().create({"fetch": lambda i: object()}).start()
        assert run.state == FAILED
        assert run.error["tag"] == "demo.fetch"


class TestObservers:
    @pytest.mark.asyncio
    async def test_subscribe_sees_every_state(self):
        seen = []
        run = _table().create({"fetch": lambda i: 50, "store": lambda v: None})
        run.subscribe(lambda snap: seen.append(snap["state"]))
        await run.start()
        assert seen == ["label", "store", COMPLETED]

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        seen = []
        run = _table().create({"fetch": lambda i: 1})
        unsubscribe = run.subscribe(seen.append)
        unsubscribe()
        await run.start()
        assert seen == []

    @pytest.mark.asyncio
    async def test_on_done_fires_once(self):
        calls = []
        run = _table().create({"fetch": lambda i: 1})
        run.on_done(lambda r: calls.append(r.state))
        await run.start()
        await run.start()
        assert calls == [COMPLETED]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_stop_run(self):
        def bad_listener(snap):
            raise ValueError("listener bug")

        calls = []
        run = _table().create({"fetch": lambda i: 50, "store": lambda v: None})
        run.subscribe(bad_listener)
        run.on_done(lambda r: 1 / 0)
        run.on_done(lambda r: calls.append(r.state))
        await run.start()
        assert run.state == COMPLETED
        assert calls == [COMPLETED]


class TestSnapshot:
    @pytest.mark.asyncio
    async def test_restore_mid_run(self):
        snapshots = []
        run = _table().create({"fetch": lambda i: 50, "store": lambda v: None})
        run.subscribe(snapshots.append)
        await run.start()

        at_store = next(s for s in snapshots if s["state"] == "store")
        assert at_store["status"] == "active"

        stored = []
        resumed = await _table().restore(at_store, {"store": stored.append}).start()
        assert resumed.state == COMPLETED
        assert stored == [50]
        assert resumed.context == run.context

    @pytest.mark.asyncio
    async def test_restore_terminal_is_noop(self):
        run = await _table().create({"fetch": lambda i: 1}).start()
        snap = run.snapshot()
        assert snap["status"] == "done"
        resumed = await _table().restore(snap, {}).start()
        assert resumed.state == COMPLETED
        assert resumed.context == run.context

    def test_restore_rejects_other_workflow(self):
        with pytest.raises(WorkflowError):
            _table().restore({"workflow": "other", "state": "fetch", "context": {}}, {})

    def test_restore_rejects_unknown_state(self):
        with pytest.raises(WorkflowError):
            _table().restore({"workflow": "demo", "state": "gone", "context": {}}, {})
