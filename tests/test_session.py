import pytest

from gestures.config import ConfigStore
from gestures.emitter import EventEmitter
from gestures.session import GestureSession


def make_session(settings):
    got = []
    store = ConfigStore(settings)
    sess = GestureSession(config=store, emitter=EventEmitter([got.append]), session_id="s1")
    return sess, store, got


def test_session_blink_sequence(settings, frame_factory):
    sess, _, got = make_session(settings)
    results = [sess.process(frame_factory(100.0 + i, ear=e)) for i, e in enumerate([0.1, 0.1, 0.1, 0.3])]

    assert [len(r.events) for r in results] == [0, 0, 1, 0]
    assert [ev.kind for ev in got] == ["blink"]
    assert got[0].session_id == "s1" and got[0].timestamp == 102.0
    assert results[2].blink_phase == "closing" and results[2].blink_counter == 3
    assert results[3].blink_phase == "open"
    assert results[3].blink_count == 1 and results[3].blink_rate == 1


def test_session_mouth_and_head_turn(settings, frame_factory):
    sess, _, got = make_session(settings)
    sess.process(frame_factory(1.0, mar=0.7))
    sess.process(frame_factory(2.0, mar=0.2))
    r = sess.process(frame_factory(3.0, mar=0.2, nx=0.4))

    assert [ev.kind for ev in got] == ["mouth_open", "mouth_close", "head_turn"]
    assert r.direction == "left" and not r.mouth_open
    assert r.mouth_count == 1
    assert got[-1].to_record()["direction"] == "left"
    assert got[-1].to_record()["yaw_deg"] == pytest.approx(21.8, abs=0.05)


def test_missing_mouth_landmark_leaves_state(settings, frame_factory):
    sess, _, got = make_session(settings)
    sess.process(frame_factory(1.0, mar=0.7))
    assert sess.mouth.is_open

    r = sess.process(frame_factory(2.0, mar=0.1, drop=(13,)))
    assert r.status == "missing_landmarks" and "upper_lip" in r.reason
    assert r.events == []
    assert sess.mouth.is_open
    assert sess.frames == 1
    assert [ev.kind for ev in got] == ["mouth_open"]

    # the skipped timestamp is not consumed
    r = sess.process(frame_factory(2.0, mar=0.1))
    assert r.status == "ok" and [e.kind for e in r.events] == ["mouth_close"]


def test_missing_frame_does_not_advance_blink_counter(settings, frame_factory):
    sess, _, got = make_session(settings)
    sess.process(frame_factory(1.0, ear=0.1))
    sess.process(frame_factory(2.0, ear=0.1, drop=(3,)))
    assert sess.blink.counter == 1
    sess.process(frame_factory(3.0, ear=0.1))
    assert got == []
    sess.process(frame_factory(4.0, ear=0.1))
    assert [ev.kind for ev in got] == ["blink"]


def test_out_of_order_and_busy_frames_dropped(settings, frame_factory):
    sess, _, got = make_session(settings)
    assert sess.process(frame_factory(5.0)).status == "ok"
    r = sess.process(frame_factory(4.0, mar=0.9))
    assert r.status == "dropped" and r.reason == "out_of_order"
    assert not sess.mouth.is_open

    sess._tick.acquire()
    try:
        r = sess.process(frame_factory(6.0, mar=0.9))
    finally:
        sess._tick.release()
    assert r.status == "dropped" and r.reason == "busy"
    assert got == []


def test_config_change_applies_next_frame(settings, frame_factory):
    sess, store, got = make_session(settings)
    sess.process(frame_factory(1.0, ear=0.15))
    # 0.15 reads as open once the threshold drops to 0.1
    store.update(EAR_THRESHOLD=0.1, DEBOUNCE_FRAMES=1)
    r = sess.process(frame_factory(2.0, ear=0.15))
    assert r.blink_phase == "open" and got == []
    store.update(EAR_THRESHOLD=0.2)
    r = sess.process(frame_factory(3.0, ear=0.15))
    assert [ev.kind for ev in r.events] == ["blink"]


def test_smoothing_window_resized_from_config(settings, frame_factory):
    sess, store, _ = make_session(settings)
    store.update(SMOOTHING_WINDOW=2)
    sess.process(frame_factory(1.0, mar=0.2))
    r = sess.process(frame_factory(2.0, mar=0.6))
    assert r.smoothed.mar == pytest.approx(0.4)
    assert r.raw.mar == pytest.approx(0.6)
    assert not r.mouth_open


def test_blink_rate_window(settings, frame_factory):
    sess, store, _ = make_session(settings)
    store.update(DEBOUNCE_FRAMES=1)
    t = 0.0
    for _ in range(3):
        sess.process(frame_factory(t, ear=0.1))
        sess.process(frame_factory(t + 0.5, ear=0.3))
        t += 10.0
    assert sess.last_result.blink_rate == 3
    r = sess.process(frame_factory(60.5, ear=0.3))
    assert r.blink_rate == 2
    assert r.blink_count == 3


def test_close_discards_state(settings, frame_factory):
    sess, store, _ = make_session(settings)
    store.update(DEBOUNCE_FRAMES=1)
    sess.process(frame_factory(1.0, ear=0.1, mar=0.9))
    assert len(sess.smoother) > 0 and len(sess.rate) == 1
    smoother, blink = sess.smoother, sess.blink

    sess.close()
    # same components, emptied in place
    assert sess.smoother is smoother and sess.blink is blink
    assert len(sess.smoother) == 0 and len(sess.rate) == 0
    assert sess.frames == 0 and sess.last_result is None
    assert sess.blink_count == 0 and sess.mouth_count == 0
    assert sess.blink.counter == 0 and sess.blink.phase == "open"
    assert not sess.mouth.is_open
    # timestamps start over after close
    assert sess.process(frame_factory(0.5)).status == "ok"
