"""Audio helpers built on pydub."""

from pathlib import Path

from pydub import AudioSegment


def measure_audio_duration(audio_path: Path) -> float:
    """
    Measure an audio file's duration by decoding it.

    Args:
        audio_path: Audio file to decode

    Returns:
        Duration in seconds
    """
    segment = AudioSegment.from_file(str(audio_path))
    return segment.duration_seconds


def write_silence(output_path: Path, duration_seconds: float, frame_rate: int = 44100) -> Path:
    """
    Write a silent mono WAV file.

    Args:
        output_path: Destination (.wav)
        duration_seconds: Length of the silence
        frame_rate: Sample rate

    Returns:
        The written path
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    silent_audio = AudioSegment.silent(duration=int(round(duration_seconds * 1000)), frame_rate=frame_rate)
    silent_audio.export(str(output_path), format="wav")
    return output_path
