import json
from collections.abc import Mapping
from typing import Any

from app.services.payload_paths import is_present

SEGMENT_LIST_KEYS = ("items", "segments", "results", "data")
SPEAKER_KEYS = ("speaker", "speaker_name", "participant", "name")
TEXT_KEYS = ("text", "transcript", "content")
QUALITY_MIN_CHARACTERS = 40


def normalize_transcript_to_text(transcript_data: Any) -> str:
    """Flatten a provider transcript payload into plain text.

    Known shapes, in order: a top-level ``text`` string, then a list of
    segments under ``items``/``segments``/``results``/``data`` rendered one
    ``speaker: text`` line per segment. Anything else is returned as
    pretty-printed JSON.
    """
    if transcript_data is None:
        return ""
    if isinstance(transcript_data, str):
        return transcript_data

    if isinstance(transcript_data, Mapping):
        text = transcript_data.get("text")
        if isinstance(text, str):
            return text

        segments = _find_segment_list(transcript_data)
        if segments is not None:
            lines = [_render_segment(segment) for segment in segments]
            return "\n".join(line for line in lines if line)

    return json.dumps(transcript_data, indent=2, ensure_ascii=False, default=str)


def rate_transcript_quality(transcript_text: str | None) -> str:
    if transcript_text and len(transcript_text.strip()) > QUALITY_MIN_CHARACTERS:
        return "ok"
    return "poor"


def _find_segment_list(transcript_data: Mapping[str, Any]) -> list[Any] | None:
    for key in SEGMENT_LIST_KEYS:
        value = transcript_data.get(key)
        if isinstance(value, list):
            return value
    return None


def _render_segment(segment: Any) -> str:
    if not isinstance(segment, Mapping):
        return ""

    text = _first_text(segment, TEXT_KEYS)
    if not text:
        return ""

    speaker = _first_text(segment, SPEAKER_KEYS)
    if speaker:
        return f"{speaker}: {text}"
    return text


def _first_text(segment: Mapping[str, Any], keys: tuple[str, ...]) -> str:
    for key in keys:
        value = segment.get(key)
        # Recall participants are objects carrying the display name.
        if isinstance(value, Mapping):
            value = value.get("name")
        if not is_present(value) or isinstance(value, Mapping | list | tuple):
            continue
        return str(value)
    return ""
