import asyncio
import base64
import json
import threading

from fastapi.testclient import TestClient

from physarum.app.server import SimulationController, app, controller


def test_snapshot_queue_ack_cleanup(small_config) -> None:
    controller = SimulationController(small_config)

    async def exercise() -> None:
        controller.tick = 1
        await controller._broadcast_snapshot()
        controller.tick = 2
        await controller._broadcast_snapshot()
        async with controller._queue_lock:
            queued_ticks = [item.tick for item in controller._snapshot_queue]
        assert queued_ticks == [1, 2]
        await controller.acknowledge(1)
        async with controller._queue_lock:
            remaining_ticks = [item.tick for item in controller._snapshot_queue]
        assert remaining_ticks == [2]

    asyncio.run(exercise())


def test_snapshot_payload_carries_png_frame(small_config) -> None:
    controller = SimulationController(small_config)
    controller.set_view("food")

    queued = asyncio.run(controller._serialize_snapshot())

    message = json.loads(queued.payload)
    payload = message["payload"]
    assert message["type"] == "snapshot"
    assert payload["view"] == "food"
    assert payload["metadata"]["width"] == 80
    assert base64.b64decode(payload["frame"]).startswith(b"\x89PNG")


def test_reset_clears_queue_and_rewinds_tick(small_config) -> None:
    controller = SimulationController(small_config)

    async def exercise() -> None:
        for _ in range(3):
            controller.world.step(controller.tick)
            controller.tick += 1
            await controller._broadcast_snapshot()
        await controller.reset()
        async with controller._queue_lock:
            ticks = [item.tick for item in controller._snapshot_queue]
        assert ticks == [0]

    asyncio.run(exercise())
    assert controller.tick == 0
    assert controller.world.generation == 2
    assert not controller.world.trail.values.any()


def test_params_endpoints_clamp_and_reject_unknown() -> None:
    client = TestClient(app)

    described = client.get("/api/params").json()
    assert described["parameters"]["speed"]["max"] == 20.0

    response = client.post("/api/params", json={"speed": 100})
    assert response.status_code == 200
    assert response.json()["applied"]["speed"] == 20.0
    assert controller.config.parameters.get("speed") == 20.0

    assert client.post("/api/params", json={"gravity": 1}).status_code == 400
    assert client.post("/api/control/view", json={"view": "agents"}).status_code == 400


def test_tick_runs_off_the_event_loop(small_config) -> None:
    controller = SimulationController(small_config)
    released = threading.Event()
    step_threads = []

    def blocking_step(tick: int) -> None:
        step_threads.append(threading.get_ident())
        # Only returns promptly if the loop is free to run ``release`` meanwhile.
        assert released.wait(timeout=5)

    controller.world.step = blocking_step

    async def release() -> None:
        await asyncio.sleep(0.05)
        released.set()

    async def exercise() -> None:
        await asyncio.gather(controller._advance(), release())

    asyncio.run(exercise())

    assert controller.tick == 1
    assert step_threads and step_threads[0] != threading.get_ident()
