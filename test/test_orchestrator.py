import math
import threading
import time

import numpy as np
import pytest

from plane_seg_ri.errors import InvalidInput, SegmentationFailed
from plane_seg_ri.orchestrator import SegmentationOrchestrator
from plane_seg_ri.orientation import quaternion_from_euler
from plane_seg_ri.segmenter import SegmentationEngine, SegmenterConfig
from plane_seg_ri.types import Block, LabeledCloud, Pose, Result


def canned_result(n_blocks=1):
    return Result([
        Block(size=(1.0, 1.0, 0.01), pose=Pose.identity(),
              hull=[(i, 0.0, 0.0), (i + 1.0, 0.0, 0.0), (i + 1.0, 1.0, 0.0)])
        for i in range(n_blocks)
    ])


class StubEngine(SegmentationEngine):
    def __init__(self, result=None):
        self.result = result if result is not None else canned_result()
        self.requests = []

    def segment(self, request):
        self.requests.append(request)
        return self.result


class FailingEngine(SegmentationEngine):
    def segment(self, request):
        raise RuntimeError("fitter exploded")


CLOUD = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
ORIGIN = np.array([0.0, 0.0, 1.0])
LOOK = np.array([1.0, 0.0, 0.0])


def test_default_parameters_reach_the_engine():
    engine = StubEngine()
    orch = SegmentationOrchestrator(engine)
    orch.process_cloud(CLOUD, ORIGIN, LOOK)

    request = engine.requests[0]
    assert request.config.remove_ground is False
    assert request.config.max_angle_of_plane_segmenter == 10.0
    assert request.config.debug is True
    np.testing.assert_allclose(request.origin, ORIGIN)
    np.testing.assert_allclose(request.look_direction, LOOK)
    np.testing.assert_allclose(request.cloud.points, CLOUD)
    assert isinstance(request.cloud, LabeledCloud)


def test_configured_parameters_reach_the_engine():
    engine = StubEngine()
    config = SegmenterConfig(remove_ground=True, max_angle_of_plane_segmenter=5.0, debug=False)
    SegmentationOrchestrator(engine, config=config).process_cloud(CLOUD, ORIGIN, LOOK)
    assert engine.requests[0].config is config


def test_result_replaces_previous():
    first, second = canned_result(1), canned_result(3)
    engine = StubEngine(first)
    orch = SegmentationOrchestrator(engine)
    assert len(orch.last_result) == 0
    assert orch.cycle_count == 0

    assert orch.process_cloud(CLOUD, ORIGIN, LOOK) is first
    engine.result = second
    assert orch.process_cloud(CLOUD, ORIGIN, LOOK) is second
    assert orch.last_result is second
    assert orch.cycle_count == 2


@pytest.mark.parametrize("cloud", [
    np.zeros((0, 3)),
    [],
    LabeledCloud(points=np.zeros((0, 3))),
])
def test_empty_cloud_is_invalid_and_keeps_last_result(cloud):
    engine = StubEngine()
    orch = SegmentationOrchestrator(engine)
    previous = orch.process_cloud(CLOUD, ORIGIN, LOOK)

    with pytest.raises(InvalidInput):
        orch.process_cloud(cloud, ORIGIN, LOOK)
    assert orch.last_result is previous
    assert len(engine.requests) == 1
    assert orch.cycle_count == 1


@pytest.mark.parametrize("cloud", [
    None,
    np.zeros((4, 2)),
    np.array([[0.0, 0.0, np.nan]]),
    [["a", "b", "c"]],
])
def test_malformed_cloud_is_invalid(cloud):
    engine = StubEngine()
    with pytest.raises(InvalidInput):
        SegmentationOrchestrator(engine).process_cloud(cloud, ORIGIN, LOOK)
    assert engine.requests == []


def test_non_finite_look_direction_is_invalid():
    with pytest.raises(InvalidInput):
        SegmentationOrchestrator(StubEngine()).process_cloud(CLOUD, ORIGIN, [np.inf, 0.0, 0.0])


def test_engine_failure_is_wrapped_and_keeps_last_result():
    orch = SegmentationOrchestrator(StubEngine())
    previous = orch.process_cloud(CLOUD, ORIGIN, LOOK)

    orch.engine = FailingEngine()
    with pytest.raises(SegmentationFailed) as excinfo:
        orch.process_cloud(CLOUD, ORIGIN, LOOK)
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert orch.last_result is previous
    assert orch.cycle_count == 1


def test_engine_returning_garbage_fails():
    orch = SegmentationOrchestrator(StubEngine(result=[1, 2, 3]))
    with pytest.raises(SegmentationFailed):
        orch.process_cloud(CLOUD, ORIGIN, LOOK)
    assert len(orch.last_result) == 0


def test_pose_update_and_snapshot():
    orch = SegmentationOrchestrator(StubEngine())
    assert orch.current_pose == Pose.identity()

    pose = Pose(position=(1.0, 2.0, 3.0), orientation=quaternion_from_euler(0.0, 0.0, math.pi / 2))
    orch.update_pose(pose)
    origin, look = orch.sensor_origin_and_direction()
    np.testing.assert_allclose(origin, [1.0, 2.0, 3.0])
    np.testing.assert_allclose(look, [0.0, 1.0, 0.0], atol=1e-12)


def test_pose_quaternion_is_normalized():
    orch = SegmentationOrchestrator(StubEngine())
    orch.update_pose(Pose(position=(0.0, 0.0, 0.0), orientation=(2.0, 0.0, 0.0, 0.0)))
    assert orch.current_pose.orientation == (1.0, 0.0, 0.0, 0.0)


@pytest.mark.parametrize("pose", [
    Pose(position=(0.0, 0.0, 0.0), orientation=(0.0, 0.0, 0.0, 0.0)),
    Pose(position=(np.nan, 0.0, 0.0), orientation=(1.0, 0.0, 0.0, 0.0)),
    "not a pose",
])
def test_malformed_pose_keeps_previous(pose):
    orch = SegmentationOrchestrator(StubEngine())
    good = Pose(position=(4.0, 5.0, 6.0))
    orch.update_pose(good)
    with pytest.raises(InvalidInput):
        orch.update_pose(pose)
    assert orch.current_pose == good


def test_process_at_current_pose_uses_pose():
    engine = StubEngine()
    orch = SegmentationOrchestrator(engine)
    orch.update_pose(Pose(position=(0.5, 0.0, 1.5)))

    result, origin, look = orch.process_cloud_at_current_pose(CLOUD)
    assert result is engine.result
    np.testing.assert_allclose(engine.requests[0].origin, [0.5, 0.0, 1.5])
    np.testing.assert_allclose(engine.requests[0].look_direction, [1.0, 0.0, 0.0])
    np.testing.assert_allclose(origin, [0.5, 0.0, 1.5])


def test_pose_update_during_cycle_does_not_tear_request():
    orch = None

    class PoseChangingEngine(SegmentationEngine):
        def segment(self, request):
            orch.update_pose(Pose(position=(9.0, 9.0, 9.0),
                                  orientation=quaternion_from_euler(0.0, 0.0, 1.0)))
            self.request = request
            return Result()

    engine = PoseChangingEngine()
    orch = SegmentationOrchestrator(engine)
    orch.process_cloud_at_current_pose(CLOUD)

    np.testing.assert_allclose(engine.request.origin, [0.0, 0.0, 0.0])
    np.testing.assert_allclose(engine.request.look_direction, [1.0, 0.0, 0.0])
    assert orch.current_pose.position == (9.0, 9.0, 9.0)


def test_concurrent_cycles_are_serialized():
    class SlowEngine(SegmentationEngine):
        def __init__(self):
            self.active = 0
            self.max_active = 0
            self.lock = threading.Lock()

        def segment(self, request):
            with self.lock:
                self.active += 1
                self.max_active = max(self.max_active, self.active)
            time.sleep(0.01)
            with self.lock:
                self.active -= 1
            return canned_result(2)

    engine = SlowEngine()
    orch = SegmentationOrchestrator(engine)
    threads = [threading.Thread(target=orch.process_cloud, args=(CLOUD, ORIGIN, LOOK)) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert engine.max_active == 1
    assert orch.cycle_count == 6
    assert len(orch.last_result) == 2
