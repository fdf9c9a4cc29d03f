#!/usr/bin/env python3
"""Generate synthetic source videos for the clipshuffle demo run.

Creates 6 clips in examples/demo-clips/ with mixed aspect ratios and
durations. Each frame carries the clip's name and a running timestamp,
so the rendered shuffle shows which source and which offset every clip
was cut from, and whether it was zoomed or mirrored.

Usage:
    python examples/generate_demo_clips.py
    # Then render:
    clipshuffle render --manifest examples/demo-run.yaml --output examples/demo-shuffle.mp4
"""

import numpy as np
from moviepy import VideoClip
from pathlib import Path
from PIL import Image, ImageDraw, ImageFont

OUTPUT_DIR = Path(__file__).resolve().parent / "demo-clips"
FPS = 30

# Landscape, portrait and square sources, 4s to 12s long.
CLIPS = [
    ("wide-red",     (180, 60, 60),  (640, 360),  8.0),
    ("wide-blue",    (60, 60, 180),  (640, 360),  12.0),
    ("tall-green",   (60, 160, 60),  (360, 640),  6.0),
    ("tall-orange",  (200, 130, 40), (360, 640),  10.0),
    ("square-teal",  (50, 130, 130), (480, 480),  4.0),
    ("ultra-purple", (130, 60, 180), (960, 320),  9.0),
]


def _load_font(size: int):
    try:
        return ImageFont.truetype("/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf", size)
    except OSError:
        return ImageFont.load_default()


def _frame_maker(name: str, color: tuple[int, int, int], size: tuple[int, int], duration: float):
    """Return a make_frame(t) drawing the name, the time and an "L" marker.

    The marker sits in the top-left corner, so a mirrored clip shows it
    top-right.
    """
    w, h = size
    font = _load_font(max(16, h // 10))

    def make_frame(t):
        img = Image.new("RGB", size, color)
        draw = ImageDraw.Draw(img)
        draw.text((w * 0.05, h * 0.05), "L", fill=(255, 255, 255), font=font)
        label = f"{name}\n{t:05.2f}s"
        bbox = draw.multiline_textbbox((0, 0), label, font=font)
        tw, th = bbox[2] - bbox[0], bbox[3] - bbox[1]
        draw.multiline_text(((w - tw) / 2, (h - th) / 2), label,
                            fill=(255, 255, 255), font=font, align="center")
        # Progress bar along the bottom edge.
        draw.rectangle([0, h - 8, int(w * t / duration), h], fill=(255, 255, 255))
        return np.array(img)

    return make_frame


def main():
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    for name, color, size, duration in CLIPS:
        out = OUTPUT_DIR / f"{name}.mp4"
        if out.exists():
            print(f"  skip {name} (exists)")
            continue

        clip = VideoClip(_frame_maker(name, color, size, duration), duration=duration)
        clip.write_videofile(str(out), fps=FPS, audio=False, logger=None)
        print(f"  wrote {name} ({size[0]}x{size[1]}, {duration}s)")

    print(f"\nDone. {len(CLIPS)} clips in {OUTPUT_DIR}")


if __name__ == "__main__":
    main()
