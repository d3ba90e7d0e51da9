"""
CLI to replay recorded landmark frames -> gesture events JSON.

Each input line is one JSON frame, either
  {"points": {"33": {"x": .., "y": ..}, ...}, "timestamp": 1700000000.0}
or normalized MediaPipe-style landmarks
  {"landmarks": [[x, y, z], ...], "width": 640, "height": 480, "timestamp": ...}
"""
from __future__ import annotations
import argparse, json, os
from pydantic import ValidationError
from gestures.config import Settings
from gestures.emitter import EventEmitter
from gestures.models import LandmarkFrame
from gestures.session import GestureSession


def load_frame(obj: dict) -> LandmarkFrame:
    if "landmarks" in obj:
        return LandmarkFrame.from_normalized(
            obj["landmarks"], int(obj.get("width", 640)), int(obj.get("height", 480)),
            float(obj["timestamp"]),
        )
    return LandmarkFrame.model_validate(obj)


def replay(path: str, settings: Settings) -> dict:
    records: list[dict] = []
    session = GestureSession(config=settings, emitter=EventEmitter([lambda ev: records.append(ev.to_record())]))
    skipped = 0
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            result = session.process(load_frame(json.loads(line)))
            if result.status != "ok":
                skipped += 1
    return {
        "frames": session.frames,
        "skipped": skipped,
        "blink_count": session.blink_count,
        "mouth_count": session.mouth_count,
        "events": records,
    }


def main(argv=None):
    p = argparse.ArgumentParser()
    p.add_argument("--frames", required=True, help="Path to JSON-lines landmark frames")
    p.add_argument("--out", default="output/events.json", help="Path to output JSON")
    p.add_argument("--ear-threshold", type=float, default=None)
    p.add_argument("--mar-threshold", type=float, default=None)
    p.add_argument("--smoothing-window", type=int, default=None)
    p.add_argument("--debounce-frames", type=int, default=None)
    p.add_argument("--blink-strategy", choices=["average", "per_eye"], default=None)
    args = p.parse_args(argv)

    overrides = {
        "EAR_THRESHOLD": args.ear_threshold,
        "MAR_THRESHOLD": args.mar_threshold,
        "SMOOTHING_WINDOW": args.smoothing_window,
        "DEBOUNCE_FRAMES": args.debounce_frames,
        "BLINK_STRATEGY": args.blink_strategy,
    }
    try:
        settings = Settings(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        p.error("invalid settings: " + "; ".join(
            f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()))
    result = replay(args.frames, settings)
    print(json.dumps(result, indent=2, ensure_ascii=False))

    out_dir = os.path.dirname(args.out)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    with open(args.out, "w", encoding="utf-8") as f:
        json.dump(result, f, indent=2, ensure_ascii=False)
    print(f"Events written to {args.out}")
    return result

if __name__ == "__main__":
    main()
