"""Tests for the detection loop against a hand-fed video sink."""

import asyncio

import numpy as np
import pytest

from camera_session import VideoSink
from capture_state import CaptureState, CaptureStateMachine
from detection_loop import DetectionLoop
from viewport_tracker import ViewportTracker
from tests.helpers import ScriptedDetector, centered_box, wait_until

FRAME = 0.002


def make_loop(detector, size=(800, 600)):
    sink = VideoSink()
    machine = CaptureStateMachine()
    loop = DetectionLoop(sink, detector, ViewportTracker(initial=size), machine, frame_interval=FRAME)
    return loop, sink, machine


class TestDetectionLoop:
    """Test alignment results reaching the state machine."""

    @pytest.mark.asyncio
    async def test_no_frame_means_no_work(self):
        detector = ScriptedDetector(result=centered_box(800, 600))
        loop, sink, machine = make_loop(detector)
        loop.start()
        try:
            await asyncio.sleep(FRAME * 20)
            assert detector.calls == 0
            assert loop.iterations == 0
            assert machine.state is CaptureState.NONE
        finally:
            loop.stop()

    @pytest.mark.asyncio
    async def test_centered_face_becomes_ready(self, blank_frame):
        detector = ScriptedDetector(result=centered_box(800, 600))
        loop, sink, machine = make_loop(detector)
        sink.push(blank_frame)
        loop.start()
        try:
            assert await wait_until(lambda: machine.state is CaptureState.READY)
        finally:
            loop.stop()

    @pytest.mark.asyncio
    async def test_offset_face_stays_none(self):
        detector = ScriptedDetector(result=centered_box(2000, 2000, offset_x=250))
        loop, sink, machine = make_loop(detector, size=(2000, 2000))
        sink.push(np.zeros((2000, 2000, 3), dtype=np.uint8))
        loop.start()
        try:
            assert await wait_until(lambda: detector.calls >= 1)
            await asyncio.sleep(FRAME * 5)
            assert machine.state is CaptureState.NONE
        finally:
            loop.stop()

    @pytest.mark.asyncio
    async def test_face_lost_returns_to_none(self, blank_frame):
        detector = ScriptedDetector(result=centered_box(800, 600))
        loop, sink, machine = make_loop(detector)
        sink.push(blank_frame)
        loop.start()
        try:
            assert await wait_until(lambda: machine.state is CaptureState.READY)
            detector.result = None
            sink.push(blank_frame)
            assert await wait_until(lambda: machine.state is CaptureState.NONE)
        finally:
            loop.stop()

    @pytest.mark.asyncio
    async def test_detector_error_is_no_face(self, blank_frame):
        detector = ScriptedDetector(result=centered_box(800, 600))
        loop, sink, machine = make_loop(detector)
        sink.push(blank_frame)
        loop.start()
        try:
            assert await wait_until(lambda: machine.state is CaptureState.READY)
            detector.result = RuntimeError("inference failed")
            sink.push(blank_frame)
            assert await wait_until(lambda: machine.state is CaptureState.NONE)
            assert loop.running
        finally:
            loop.stop()

    @pytest.mark.asyncio
    async def test_same_frame_not_detected_twice(self, blank_frame):
        detector = ScriptedDetector(result=None)
        loop, sink, machine = make_loop(detector)
        sink.push(blank_frame)
        loop.start()
        try:
            assert await wait_until(lambda: detector.calls == 1)
            await asyncio.sleep(FRAME * 20)
            assert detector.calls == 1
        finally:
            loop.stop()

    @pytest.mark.asyncio
    async def test_captured_is_not_overwritten(self, blank_frame):
        detector = ScriptedDetector(result=centered_box(800, 600))
        loop, sink, machine = make_loop(detector)
        sink.push(blank_frame)
        loop.start()
        try:
            assert await wait_until(lambda: machine.state is CaptureState.READY)
            machine.capture()
            detector.result = None
            sink.push(blank_frame)
            assert await wait_until(lambda: detector.calls >= 2)
            await asyncio.sleep(FRAME * 5)
            assert machine.state is CaptureState.CAPTURED

            machine.retake()
            detector.result = centered_box(800, 600)
            sink.push(blank_frame)
            assert await wait_until(lambda: machine.state is CaptureState.READY)
        finally:
            loop.stop()

    @pytest.mark.asyncio
    async def test_ended_stream_is_no_face(self, blank_frame):
        detector = ScriptedDetector(result=centered_box(800, 600))
        loop, sink, machine = make_loop(detector)
        sink.push(blank_frame)
        loop.start()
        try:
            assert await wait_until(lambda: machine.state is CaptureState.READY)
            sink.detach()
            sink.end()
            assert await wait_until(lambda: machine.state is CaptureState.NONE)
            assert await wait_until(lambda: not loop.running)
        finally:
            loop.stop()


class TestDetectionLoopScheduling:
    """Test backpressure and teardown."""

    @pytest.mark.asyncio
    async def test_iterations_never_overlap(self, blank_frame):
        detector = ScriptedDetector(result=None, block_detect=True)
        loop, sink, machine = make_loop(detector)
        sink.push(blank_frame)
        loop.start()
        try:
            assert await wait_until(lambda: detector.calls == 1)
            for _ in range(10):
                sink.push(blank_frame)
                await asyncio.sleep(FRAME * 2)
            assert detector.calls == 1
            assert detector.max_in_flight == 1
        finally:
            loop.stop()
            detector.release()

    @pytest.mark.asyncio
    async def test_late_result_after_stop_is_discarded(self, blank_frame):
        detector = ScriptedDetector(result=centered_box(800, 600), block_detect=True)
        loop, sink, machine = make_loop(detector)
        changes = []
        machine.subscribe(lambda old, new: changes.append(new))
        sink.push(blank_frame)
        loop.start()
        try:
            assert await wait_until(lambda: detector.in_flight == 1)
            loop.stop()
            detector.release()
            assert await wait_until(lambda: detector.in_flight == 0)
            await asyncio.sleep(FRAME * 20)

            assert machine.state is CaptureState.NONE
            assert changes == []
            assert detector.calls == 1
        finally:
            loop.stop()
            detector.release()

    @pytest.mark.asyncio
    async def test_stop_before_first_iteration(self, blank_frame):
        detector = ScriptedDetector(result=centered_box(800, 600))
        loop, sink, machine = make_loop(detector)
        sink.push(blank_frame)
        loop.start()
        loop.stop()
        await asyncio.sleep(FRAME * 20)
        assert detector.calls == 0
        assert not loop.running

    @pytest.mark.asyncio
    async def test_restart_after_stop(self, blank_frame):
        detector = ScriptedDetector(result=centered_box(800, 600))
        loop, sink, machine = make_loop(detector)
        sink.push(blank_frame)
        loop.start()
        loop.stop()
        loop.start()
        try:
            assert await wait_until(lambda: machine.state is CaptureState.READY)
        finally:
            loop.stop()

    @pytest.mark.asyncio
    async def test_restart_waits_for_abandoned_detection(self, blank_frame):
        detector = ScriptedDetector(result=centered_box(800, 600), block_detect=True)
        loop, sink, machine = make_loop(detector)
        sink.push(blank_frame)
        loop.start()
        try:
            assert await wait_until(lambda: detector.in_flight == 1)
            loop.stop()
            loop.start()
            sink.push(blank_frame)
            await asyncio.sleep(FRAME * 20)
            assert detector.calls == 1

            detector.release()
            assert await wait_until(lambda: machine.state is CaptureState.READY)
            assert detector.calls == 2
            assert detector.max_in_flight == 1
        finally:
            loop.stop()
            detector.release()
