"""Tests for the generation workflow state machine."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from drivetime_planner.errors import CredentialError, ServiceError, TransportError
from drivetime_planner.mapview import GraphicsLayer
from drivetime_planner.markers import MarkerStore
from drivetime_planner.schemas import Phase, Point, WidgetView, WorkflowMode
from drivetime_planner.services.credentials import Credential, StaticCredentialProvider
from drivetime_planner.workflow import WorkflowOrchestrator

RINGS = [[[100.0, 200.0], [101.0, 200.0], [101.0, 201.0], [100.0, 200.0]]]


class FakeIsochroneClient:
    """Scripted stand-in for IsochroneClient; one outcome per call, in order.

    Each outcome is rings (success), None (empty result) or an exception.
    """

    service_url = "https://example.com/solveServiceArea"

    def __init__(self, *outcomes: Any, gate: asyncio.Event | None = None) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[tuple[Point, int, int, str]] = []
        self.gate = gate

    async def solve(
        self, point: Point, wkid: int, drive_time_minutes: int, credential: Credential
    ) -> Any:
        self.calls.append((point, wkid, drive_time_minutes, credential.token))
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.outcomes.pop(0) if self.outcomes else RINGS
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class CountingCredentials:
    def __init__(self, error: Exception | None = None) -> None:
        self.calls = 0
        self.error = error

    async def get_credential(self, service_url: str) -> Credential:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return Credential(token="tok")


def make_workflow(
    client: FakeIsochroneClient,
    mode: WorkflowMode = WorkflowMode.BATCH,
    credentials: Any = None,
    max_drive_time: int = 15,
) -> tuple[WorkflowOrchestrator, GraphicsLayer]:
    workflow = WorkflowOrchestrator(
        MarkerStore(max_drive_time=max_drive_time),
        credentials or StaticCredentialProvider("tok"),
        client,  # type: ignore[arg-type]
        mode=mode,
        title="Drive Times",
    )
    layer = GraphicsLayer(wkid=4326)
    workflow.attach(layer)
    return workflow, layer


class TestInitialState:
    """A fresh workflow is idle and cannot generate."""

    def test_idle(self) -> None:
        """Nothing clicked, nothing running, no error."""
        workflow, _ = make_workflow(FakeIsochroneClient())
        assert workflow.phase is Phase.IDLE
        assert workflow.clicked_point is None
        assert workflow.is_processing is False
        assert workflow.last_error is None

    def test_generate_without_point_is_noop(self) -> None:
        """Generate before any click makes no request."""
        client = FakeIsochroneClient()
        workflow, layer = make_workflow(client)
        assert asyncio.run(workflow.generate()) == []
        assert client.calls == []
        assert layer.graphics == []


class TestMapClick:
    """Clicking replaces the point and resets run state."""

    def test_click_sets_point_and_renders_marker(self) -> None:
        """The click point is stored and drawn in marker 1's color."""
        workflow, layer = make_workflow(FakeIsochroneClient())
        layer.click(100, 200)
        assert workflow.clicked_point == Point.of(100, 200, 4326)
        assert workflow.phase is Phase.READY
        assert len(layer.points) == 1
        assert layer.points[0].color == (51, 51, 204)

    def test_second_click_replaces_point_and_clears_graphics(self) -> None:
        """A new click removes the previous point and polygons."""
        workflow, layer = make_workflow(FakeIsochroneClient())
        layer.click(100, 200)
        asyncio.run(workflow.generate())
        assert len(layer.polygons) == 3

        layer.click(5, 6)
        assert workflow.clicked_point == Point.of(5, 6, 4326)
        assert layer.polygons == []
        assert len(layer.points) == 1

    def test_click_clears_completion_and_error(self) -> None:
        """Clicking resets checkmarks and the error banner."""
        client = FakeIsochroneClient(RINGS, TransportError("boom"))
        workflow, layer = make_workflow(client)
        layer.click(100, 200)
        asyncio.run(workflow.generate())
        assert workflow.last_error == "boom"
        assert workflow.markers.completion()[1] is True

        layer.click(100, 200)
        layer.click(101, 201)
        assert workflow.markers.completion() == {1: False, 2: False, 3: False}
        assert workflow.last_error is None

    def test_attach_subscribes_once(self) -> None:
        """Attaching the same view twice still yields one click handler."""
        workflow, layer = make_workflow(FakeIsochroneClient())
        workflow.attach(layer)
        calls: list[WidgetView] = []
        workflow.subscribe(calls.append)
        layer.click(1, 2)
        assert len(calls) == 1

    def test_attach_new_view_unsubscribes_old(self) -> None:
        """Clicks on a detached view are ignored."""
        workflow, old = make_workflow(FakeIsochroneClient())
        new = GraphicsLayer(wkid=3857)
        workflow.attach(new)
        old.click(1, 2)
        assert workflow.clicked_point is None
        new.click(3, 4)
        assert workflow.clicked_point == Point.of(3, 4, 3857)


class TestBatchGenerate:
    """Markers 1..3 solved in order, stopping at the first failure."""

    def test_all_succeed(self) -> None:
        """Three successes draw three polygons and complete every marker."""
        client = FakeIsochroneClient(RINGS, RINGS, RINGS)
        workflow, layer = make_workflow(client)
        layer.click(100, 200, 4326)
        workflow.set_drive_time(1, 5)
        workflow.set_drive_time(2, 10)
        workflow.set_drive_time(3, 15)

        rendered = asyncio.run(workflow.generate())

        assert len(layer.polygons) == 3
        assert [p.color for p in layer.polygons] == [(51, 51, 204), (204, 51, 51), (51, 204, 51)]
        assert all(p.wkid == 4326 for p in layer.polygons)
        assert all(p.fill_opacity == 0.25 and p.outline_width == 2 for p in layer.polygons)
        assert workflow.markers.completion() == {1: True, 2: True, 3: True}
        assert workflow.is_processing is False
        assert workflow.last_error is None
        assert [iso.marker_id for iso in rendered] == [1, 2, 3]

    def test_requests_in_marker_order_with_drive_times(self) -> None:
        """Requests go out 1, 2, 3 with each marker's drive time."""
        client = FakeIsochroneClient()
        workflow, layer = make_workflow(client)
        layer.click(100, 200)
        workflow.set_drive_time(1, 3)
        workflow.set_drive_time(2, 7)
        workflow.set_drive_time(3, 12)
        asyncio.run(workflow.generate())
        assert [c[2] for c in client.calls] == [3, 7, 12]
        assert all(c[0] == Point.of(100, 200) and c[1] == 4326 for c in client.calls)

    def test_failure_stops_remaining_markers(self) -> None:
        """The first failure ends the run; marker 3 is never requested."""
        client = FakeIsochroneClient(RINGS, ServiceError("Invalid break value"), RINGS)
        workflow, layer = make_workflow(client)
        layer.click(100, 200)

        asyncio.run(workflow.generate())

        assert len(client.calls) == 2
        assert workflow.markers.completion() == {1: True, 2: False, 3: False}
        assert workflow.last_error == "Invalid break value"
        assert workflow.is_processing is False
        assert len(layer.polygons) == 1

    def test_empty_result_is_skipped(self) -> None:
        """An empty result leaves that marker incomplete without an error."""
        client = FakeIsochroneClient(RINGS, None, RINGS)
        workflow, layer = make_workflow(client)
        layer.click(100, 200)

        asyncio.run(workflow.generate())

        assert len(client.calls) == 3
        assert workflow.markers.completion() == {1: True, 2: False, 3: True}
        assert workflow.last_error is None
        assert len(layer.polygons) == 2

    def test_credential_failure_aborts_before_any_marker(self) -> None:
        """No credential means no solve requests."""
        client = FakeIsochroneClient()
        credentials = CountingCredentials(error=CredentialError("no token"))
        workflow, layer = make_workflow(client, credentials=credentials)
        layer.click(100, 200)

        asyncio.run(workflow.generate())

        assert client.calls == []
        assert workflow.last_error == "no token"
        assert workflow.is_processing is False

    def test_one_credential_per_run(self) -> None:
        """The credential is fetched once for all three markers."""
        credentials = CountingCredentials()
        workflow, layer = make_workflow(FakeIsochroneClient(), credentials=credentials)
        layer.click(100, 200)
        asyncio.run(workflow.generate())
        assert credentials.calls == 1

    def test_new_run_clears_previous_error(self) -> None:
        """Generating again clears the last error."""
        client = FakeIsochroneClient(TransportError("down"), RINGS, RINGS, RINGS)
        workflow, layer = make_workflow(client)
        layer.click(100, 200)
        asyncio.run(workflow.generate())
        assert workflow.last_error == "down"

        asyncio.run(workflow.generate())
        assert workflow.last_error is None
        assert workflow.markers.completion() == {1: True, 2: True, 3: True}

    def test_rerun_at_same_point_resets_completion(self) -> None:
        """A second run only shows what that run produced."""
        client = FakeIsochroneClient(RINGS, RINGS, RINGS, RINGS, ServiceError("bad"))
        workflow, layer = make_workflow(client)
        layer.click(100, 200)
        asyncio.run(workflow.generate())
        assert workflow.markers.completion() == {1: True, 2: True, 3: True}

        asyncio.run(workflow.generate())

        assert workflow.markers.completion() == {1: True, 2: False, 3: False}
        assert workflow.last_error == "bad"
        assert len(layer.points) == 1
        assert len(layer.polygons) == 1
        assert layer.polygons[0].color == (51, 51, 204)

    def test_run_start_clears_checkmarks(self) -> None:
        """Checkmarks from the previous run are gone while the new one is in flight."""

        async def scenario() -> None:
            gate = asyncio.Event()
            gate.set()
            client = FakeIsochroneClient(gate=gate)
            workflow, layer = make_workflow(client)
            layer.click(100, 200)
            await workflow.generate()

            gate.clear()
            second = asyncio.create_task(workflow.generate())
            await asyncio.sleep(0)
            assert workflow.is_processing is True
            assert workflow.markers.completion() == {1: False, 2: False, 3: False}
            assert layer.polygons == []

            gate.set()
            await second
            assert workflow.markers.completion() == {1: True, 2: True, 3: True}
            assert len(layer.polygons) == 3

        asyncio.run(scenario())

    def test_marker_id_rejected(self) -> None:
        """Batch mode refuses a marker id."""
        workflow, layer = make_workflow(FakeIsochroneClient())
        layer.click(100, 200)
        with pytest.raises(ValueError, match="batch mode"):
            asyncio.run(workflow.generate(1))

    def test_unexpected_error_resets_processing(self) -> None:
        """A bug propagates but does not leave the workflow busy."""
        client = FakeIsochroneClient(RuntimeError("bug"))
        workflow, layer = make_workflow(client)
        layer.click(100, 200)
        with pytest.raises(RuntimeError):
            asyncio.run(workflow.generate())
        assert workflow.is_processing is False


class TestConcurrency:
    """Single-flight guard and stale-run handling."""

    def test_generate_while_processing_is_noop(self) -> None:
        """A second generate during a run changes nothing."""
        async def scenario() -> None:
            gate = asyncio.Event()
            client = FakeIsochroneClient(gate=gate)
            workflow, layer = make_workflow(client)
            layer.click(100, 200)

            first = asyncio.create_task(workflow.generate())
            await asyncio.sleep(0)
            assert workflow.is_processing is True
            before = (workflow.markers.completion(), workflow.last_error, len(client.calls))

            assert await workflow.generate() == []
            after = (workflow.markers.completion(), workflow.last_error, len(client.calls))
            assert before == after
            assert workflow.is_processing is True

            gate.set()
            await first
            assert workflow.is_processing is False
            assert len(client.calls) == 3

        asyncio.run(scenario())

    def test_click_during_run_discards_late_results(self) -> None:
        """Results arriving after a new click are dropped."""
        async def scenario() -> None:
            gate = asyncio.Event()
            client = FakeIsochroneClient(gate=gate)
            workflow, layer = make_workflow(client)
            layer.click(100, 200)

            run = asyncio.create_task(workflow.generate())
            await asyncio.sleep(0)
            assert len(client.calls) == 1

            layer.click(300, 400)
            assert workflow.markers.completion() == {1: False, 2: False, 3: False}
            assert workflow.is_processing is False

            gate.set()
            rendered = await run

            assert rendered == []
            assert workflow.markers.completion() == {1: False, 2: False, 3: False}
            assert layer.polygons == []
            assert workflow.last_error is None
            assert workflow.clicked_point == Point.of(300, 400)
            # the stale run stops instead of requesting markers 2 and 3
            assert len(client.calls) == 1

        asyncio.run(scenario())

    def test_stale_failure_not_reported(self) -> None:
        """A failure from a superseded run is not shown."""
        async def scenario() -> None:
            gate = asyncio.Event()
            client = FakeIsochroneClient(TransportError("late"), gate=gate)
            workflow, layer = make_workflow(client)
            layer.click(100, 200)

            run = asyncio.create_task(workflow.generate())
            await asyncio.sleep(0)
            layer.click(1, 2)
            gate.set()
            await run
            assert workflow.last_error is None

        asyncio.run(scenario())

    def test_new_run_after_click_is_not_clobbered_by_stale_run(self) -> None:
        """The stale run's cleanup leaves the newer run's flag alone."""
        async def scenario() -> None:
            gate = asyncio.Event()
            client = FakeIsochroneClient(gate=gate)
            workflow, layer = make_workflow(client)
            layer.click(100, 200)
            stale = asyncio.create_task(workflow.generate())
            await asyncio.sleep(0)

            layer.click(300, 400)
            fresh = asyncio.create_task(workflow.generate())
            await asyncio.sleep(0)
            assert workflow.is_processing is True

            gate.set()
            await stale
            assert workflow.is_processing is True or fresh.done()
            await fresh

            assert workflow.markers.completion() == {1: True, 2: True, 3: True}
            assert workflow.is_processing is False
            assert len(layer.polygons) == 3

        asyncio.run(scenario())


class TestIndependentMode:
    """Each marker is generated on its own with its own status."""

    def test_requires_marker_id(self) -> None:
        """Independent mode needs a marker id."""
        workflow, layer = make_workflow(FakeIsochroneClient(), mode=WorkflowMode.INDEPENDENT)
        layer.click(100, 200)
        with pytest.raises(ValueError, match="marker id"):
            asyncio.run(workflow.generate())

    def test_generates_single_marker(self) -> None:
        """Only the requested marker is solved."""
        client = FakeIsochroneClient(RINGS)
        workflow, layer = make_workflow(client, mode=WorkflowMode.INDEPENDENT)
        layer.click(100, 200)
        asyncio.run(workflow.generate(2))
        assert len(client.calls) == 1
        assert client.calls[0][2] == 10
        assert workflow.markers.completion() == {1: False, 2: True, 3: False}
        assert layer.polygons[0].color == (204, 51, 51)

    def test_errors_are_per_marker(self) -> None:
        """Each marker keeps its own error."""
        client = FakeIsochroneClient(TransportError("timeout"), RINGS)
        workflow, layer = make_workflow(client, mode=WorkflowMode.INDEPENDENT)
        layer.click(100, 200)
        asyncio.run(workflow.generate(1))
        asyncio.run(workflow.generate(3))
        assert workflow.errors == {1: "timeout"}
        assert workflow.markers.completion() == {1: False, 2: False, 3: True}
        assert workflow.last_error == "timeout"

    def test_markers_run_side_by_side(self) -> None:
        """Different markers may be in flight together."""
        async def scenario() -> None:
            gate = asyncio.Event()
            client = FakeIsochroneClient(gate=gate)
            workflow, layer = make_workflow(client, mode=WorkflowMode.INDEPENDENT)
            layer.click(100, 200)

            one = asyncio.create_task(workflow.generate(1))
            await asyncio.sleep(0)
            assert workflow.marker_processing(1) is True
            assert workflow.can_generate(1) is False
            assert workflow.can_generate(2) is True
            assert await workflow.generate(1) == []

            two = asyncio.create_task(workflow.generate(2))
            await asyncio.sleep(0)
            gate.set()
            await asyncio.gather(one, two)
            assert workflow.markers.completion() == {1: True, 2: True, 3: False}
            assert workflow.is_processing is False

        asyncio.run(scenario())

    def test_regenerating_marker_replaces_only_its_polygon(self) -> None:
        """Re-running one marker keeps the others' polygons and checkmarks."""
        client = FakeIsochroneClient(RINGS, RINGS, None)
        workflow, layer = make_workflow(client, mode=WorkflowMode.INDEPENDENT)
        layer.click(100, 200)
        asyncio.run(workflow.generate(1))
        asyncio.run(workflow.generate(2))
        assert len(layer.polygons) == 2

        asyncio.run(workflow.generate(2))

        assert workflow.markers.completion() == {1: True, 2: False, 3: False}
        assert [p.color for p in layer.polygons] == [(51, 51, 204)]
        assert len(layer.points) == 1


class TestListeners:
    """Listeners receive a fresh projection after every change."""

    def test_progress_is_visible_left_to_right(self) -> None:
        """Listeners see markers complete one at a time."""
        workflow, layer = make_workflow(FakeIsochroneClient())
        layer.click(100, 200)
        seen: list[dict[int, bool]] = []
        workflow.subscribe(lambda v: seen.append({m.id: m.completed for m in v.markers}))

        asyncio.run(workflow.generate())

        completed_steps = [s for s in seen if any(s.values())]
        assert completed_steps[0] == {1: True, 2: False, 3: False}
        assert {1: True, 2: True, 3: False} in completed_steps
        assert seen[-1] == {1: True, 2: True, 3: True}

    def test_unsubscribe(self) -> None:
        """An unsubscribed listener is not called."""
        workflow, layer = make_workflow(FakeIsochroneClient())
        seen: list[WidgetView] = []
        unsubscribe = workflow.subscribe(seen.append)
        unsubscribe()
        layer.click(1, 2)
        assert seen == []

    def test_set_drive_time_clamps_and_notifies(self) -> None:
        """Drive time changes are clamped and broadcast."""
        workflow, _ = make_workflow(FakeIsochroneClient(), max_drive_time=20)
        seen: list[WidgetView] = []
        workflow.subscribe(seen.append)
        assert workflow.set_drive_time(1, 99) == 20
        assert seen[-1].markers[0].drive_time_minutes == 20
