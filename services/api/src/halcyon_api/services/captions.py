"""WebVTT caption generation from a narration script.

Timings are estimated from the segment granularity; no speech alignment is
done. Cues are laid end to end starting at zero.
"""

import base64
import re
from dataclasses import dataclass

from .profiles import CaptionTiming

SEGMENT_PATTERNS = {
    "word": re.compile(r"\s+"),
    "sentence": re.compile(r"[.!?]+"),
    "phrase": re.compile(r"[,;.!?]+"),
}

SEGMENT_SECONDS = {"word": 0.5, "phrase": 3.0, "sentence": 5.0}


def split_into_segments(text: str, timing: CaptionTiming = "phrase") -> list[str]:
    """Split a script into caption segments, dropping empty pieces."""
    pattern = SEGMENT_PATTERNS.get(timing, SEGMENT_PATTERNS["phrase"])
    return [segment.strip() for segment in pattern.split(text) if segment.strip()]


def format_vtt_time(seconds: float) -> str:
    """Format seconds as ``HH:MM:SS.mmm``."""
    total_ms = int(round(seconds * 1000))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, ms = divmod(rest, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{ms:03d}"


def generate_vtt(script: str, timing: CaptionTiming = "phrase") -> str:
    """Build a WebVTT document with one numbered cue per segment.

    Args:
        script: Narration text.
        timing: Segment granularity (word, phrase or sentence).

    Returns:
        The VTT document text.
    """
    step = SEGMENT_SECONDS.get(timing, SEGMENT_SECONDS["phrase"])
    lines = ["WEBVTT", ""]

    for index, segment in enumerate(split_into_segments(script, timing)):
        start = index * step
        lines.append(str(index + 1))
        lines.append(f"{format_vtt_time(start)} --> {format_vtt_time(start + step)}")
        lines.append(segment)
        lines.append("")

    return "\n".join(lines)


def captions_data_url(vtt: str) -> str:
    encoded = base64.b64encode(vtt.encode("utf-8")).decode("ascii")
    return f"data:text/vtt;base64,{encoded}"


@dataclass(frozen=True)
class CaptionTrack:
    """A generated caption file, served inline as a data URL."""

    vtt: str
    timing: CaptionTiming
    credits: int = 0

    @property
    def url(self) -> str:
        return captions_data_url(self.vtt)

    @property
    def cue_count(self) -> int:
        return self.vtt.count(" --> ")


def build_caption_track(script: str, timing: CaptionTiming = "phrase") -> CaptionTrack:
    return CaptionTrack(vtt=generate_vtt(script, timing), timing=timing)
