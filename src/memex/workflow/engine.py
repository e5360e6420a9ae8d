"""Generic workflow interpreter.

A ``Workflow`` is a transition table: plain data naming states, the step each
state invokes and the guarded transitions out of it. Step implementations are
injected per run, so a pipeline can be driven with real I/O, with test doubles,
or resumed from a snapshot with a brand-new step map.

State kinds:

- ``Invoke``: call one injected step with ``input(context)``, merge
  ``assign(context, output)`` into the context, then take the first
  transition whose guard passes. Any exception (or timeout) ends the run in
  ``failed`` with ``error.tag == "<workflow id>.<state name>"``.
- ``Pure``: synchronous, no I/O. Merge ``compute(context)`` and branch.
  An exception from ``compute`` fails the run the same way.
- ``Final``: ``completed`` / ``failed``. Nothing leaves a final state.

The run context is a dict of JSON-compatible values so ``snapshot()`` output
can be stored and handed to ``Workflow.restore`` later.
"""

from __future__ import annotations

import asyncio
import copy
import inspect
import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from memex.errors import WorkflowError

logger = logging.getLogger(__name__)

COMPLETED = "completed"
FAILED = "failed"

Guard = Callable[[dict], bool]
Step = Callable[[Any], Union[Awaitable[Any], Any]]
Listener = Callable[[dict], None]


def _no_input(context: dict) -> None:
    return None


def _no_assign(context: dict, output: Any) -> dict:
    return {}


@dataclass(frozen=True)
class Transition:
    """Go to ``target`` when ``guard`` is absent or returns True."""

    target: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Invoke:
    step: str
    on_done: list[Transition]
    input: Callable[[dict], Any] = _no_input
    assign: Callable[[dict, Any], dict] = _no_assign


@dataclass(frozen=True)
class Pure:
    compute: Callable[[dict], dict]
    transitions: list[Transition]


@dataclass(frozen=True)
class Final:
    pass


State = Union[Invoke, Pure, Final]


@dataclass
class Workflow:
    """Transition table plus the factory for a run's initial context."""

    id: str
    initial: str
    states: dict[str, State]
    context: Callable[[dict], dict] = field(default=lambda input: {})

    def __post_init__(self) -> None:
        for name in (COMPLETED, FAILED):
            if not isinstance(self.states.get(name), Final):
                raise WorkflowError(f"{self.id}: missing final state '{name}'")
        if self.initial not in self.states:
            raise WorkflowError(f"{self.id}: unknown initial state '{self.initial}'")
        for name, state in self.states.items():
            transitions = []
            if isinstance(state, Invoke):
                transitions = state.on_done
            elif isinstance(state, Pure):
                transitions = state.transitions
            for t in transitions:
                if t.target not in self.states:
                    raise WorkflowError(f"{self.id}.{name}: unknown target '{t.target}'")

    @property
    def step_names(self) -> list[str]:
        return [s.step for s in self.states.values() if isinstance(s, Invoke)]

    def create(
        self,
        steps: Mapping[str, Step],
        input: dict | None = None,
        *,
        timeouts: Mapping[str, float] | None = None,
    ) -> WorkflowRun:
        return WorkflowRun(self, steps, self.initial, self.context(input or {}), timeouts)

    def restore(
        self,
        snapshot: dict,
        steps: Mapping[str, Step],
        *,
        timeouts: Mapping[str, float] | None = None,
    ) -> WorkflowRun:
        """Reattach a snapshot to a fresh run with a new step map."""
        if snapshot.get("workflow") != self.id:
            raise WorkflowError(
                f"snapshot belongs to workflow {snapshot.get('workflow')!r}, not {self.id!r}"
            )
        state = snapshot.get("state")
        if state not in self.states:
            raise WorkflowError(f"{self.id}: snapshot state {state!r} is not in the table")
        return WorkflowRun(self, steps, state, copy.deepcopy(snapshot.get("context", {})), timeouts)


class WorkflowRun:
    """One execution of a Workflow. Steps run strictly one at a time."""

    def __init__(
        self,
        workflow: Workflow,
        steps: Mapping[str, Step],
        state: str,
        context: dict,
        timeouts: Mapping[str, float] | None = None,
    ) -> None:
        self.workflow = workflow
        self._steps = dict(steps)
        self._timeouts = dict(timeouts or {})
        self._state = state
        self._context = context
        self._listeners: list[Listener] = []
        self._done_callbacks: list[Callable[[WorkflowRun], None]] = []
        self._done_notified = False
        self._running = False

    # ── Introspection ─────────────────────────────────────────

    @property
    def state(self) -> str:
        return self._state

    @property
    def context(self) -> dict:
        return self._context

    @property
    def done(self) -> bool:
        return isinstance(self.workflow.states[self._state], Final)

    @property
    def error(self) -> dict | None:
        return self._context.get("error")

    def snapshot(self) -> dict:
        return {
            "workflow": self.workflow.id,
            "state": self._state,
            "status": "done" if self.done else "active",
            "context": copy.deepcopy(self._context),
        }

    # ── Observers ─────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(snapshot)`` on every state entry."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def on_done(self, callback: Callable[[WorkflowRun], None]) -> None:
        """Call ``callback(run)`` once, when the run reaches a final state."""
        self._done_callbacks.append(callback)

    # ── Driving ───────────────────────────────────────────────

    async def start(self) -> WorkflowRun:
        """Drive the run to ``completed`` or ``failed``. No-op if already final."""
        if self._running:
            raise WorkflowError(f"{self.workflow.id}: run is already being driven")
        self._running = True
        try:
            while not self.done:
                name = self._state
                node = self.workflow.states[name]
                if isinstance(node, Invoke):
                    target = await self._invoke(name, node)
                else:
                    target = self._pure(name, node)
                self._enter(target)
        finally:
            self._running = False

        self._notify_done()
        return self

    async def _invoke(self, name: str, node: Invoke) -> str:
        tag = f"{self.workflow.id}.{name}"
        impl = self._steps.get(node.step)
        if impl is None:
            return self._fail(tag, f"{node.step}: not provided")

        timeout = self._timeouts.get(node.step)
        try:
            result = impl(node.input(self._context))
            if inspect.isawaitable(result):
                if timeout:
                    try:
                        result = await asyncio.wait_for(result, timeout)
                    except asyncio.TimeoutError:
                        return self._fail(tag, f"{node.step} timed out after {timeout}s")
                else:
                    result = await result
            updates = node.assign(self._context, result)
            json.dumps(updates)  # context must stay serializable
        except Exception as e:
            return self._fail(tag, str(e) or type(e).__name__)

        self._context.update(updates)
        return self._select(tag, node.on_done)

    def _pure(self, name: str, node: Pure) -> str:
        tag = f"{self.workflow.id}.{name}"
        try:
            updates = node.compute(self._context)
        except Exception as e:
            return self._fail(tag, str(e) or type(e).__name__)
        self._context.update(updates)
        return self._select(tag, node.transitions)

    def _select(self, tag: str, transitions: list[Transition]) -> str:
        try:
            for t in transitions:
                if t.guard is None or t.guard(self._context):
                    return t.target
        except Exception as e:
            return self._fail(tag, f"guard failed: {e}")
        return self._fail(tag, "no transition matched")

    def _fail(self, tag: str, message: str) -> str:
        self._context["error"] = {"tag": tag, "message": message}
        logger.warning("%s failed: %s", tag, message)
        return FAILED

    def _enter(self, target: str) -> None:
        logger.debug("%s: %s -> %s", self.workflow.id, self._state, target)
        self._state = target
        if self._listeners:
            snap = self.snapshot()
            for listener in list(self._listeners):
                try:
                    listener(snap)
                except Exception as e:
                    logger.warning("%s: listener failed: %s", self.workflow.id, e)

    def _notify_done(self) -> None:
        if self._done_notified:
            return
        self._done_notified = True
        if self._state == COMPLETED:
            logger.info("%s completed", self.workflow.id)
        for callback in self._done_callbacks:
            try:
                callback(self)
            except Exception as e:
                logger.warning("%s: done callback failed: %s", self.workflow.id, e)
