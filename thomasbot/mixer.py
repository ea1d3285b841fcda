"""Live mixing of queued WAV files into fixed-size PCM frames."""

from __future__ import annotations

import sys
import threading
import wave
from array import array
from pathlib import Path
from typing import Callable

SAMPLE_RATE = 48000
CHANNELS = 1
FRAME_SIZE = 48 * 20 * CHANNELS
_PEAK = 0x7FFF


def _decode_wav(path: str | Path) -> list[int]:
    """Read a PCM WAV file into signed 16-bit samples (interleaved for multi-channel files)."""
    try:
        with wave.open(str(path), "rb") as wav:
            width = wav.getsampwidth()
            frames = wav.readframes(wav.getnframes())
    except (wave.Error, EOFError) as exc:
        raise ValueError(f"not a valid WAV file: {path}") from exc

    if width == 2:
        samples = array("h")
        samples.frombytes(frames)
        if sys.byteorder == "big":
            samples.byteswap()
        return samples.tolist()
    if width == 1:
        return [(byte - 128) << 8 for byte in frames]
    shift = (width - 2) * 8
    return [
        int.from_bytes(frames[start : start + width], "little", signed=True) >> shift
        for start in range(0, len(frames) - width + 1, width)
    ]


class InputStream:
    """A buffer of PCM samples for one stream; queued files play one after another."""

    def __init__(self, stream_id: int) -> None:
        self.stream_id = stream_id
        self._lock = threading.Lock()
        self._buffer: list[int] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)

    def handle_file(self, path: str | Path) -> None:
        """Decode a WAV file and append its samples to the buffer."""
        samples = _decode_wav(path)
        with self._lock:
            self._buffer.extend(samples)

    def read(self, size: int) -> list[int]:
        """Take up to ``size`` samples off the front of the buffer."""
        with self._lock:
            chunk = self._buffer[:size]
            del self._buffer[:size]
        return chunk


class Mixer:
    """Mixes all input streams into frames and hands each frame to a sink."""

    def __init__(self, sink: Callable[[list[int]], object]) -> None:
        self._sink = sink
        self._streams: dict[int, InputStream] = {}
        self._lock = threading.Lock()
        self._stopped = threading.Event()

    def queue(self, stream_id: int, path: str | Path) -> None:
        """Queue a WAV file; different IDs are mixed live, the same ID plays serially."""
        with self._lock:
            stream = self._streams.setdefault(stream_id, InputStream(stream_id))
        stream.handle_file(path)

    def mix_frame(self) -> list[int]:
        """Take one frame from every stream and mix them, clipping at the 16-bit peak."""
        mixed = [0] * FRAME_SIZE
        with self._lock:
            streams = list(self._streams.values())
        for stream in streams:
            samples = stream.read(FRAME_SIZE)
            if not samples:
                continue
            samples += [0] * (FRAME_SIZE - len(samples))
            mixed = [max(-_PEAK, min(_PEAK, a + b)) for a, b in zip(mixed, samples)]
        return mixed

    def process(self) -> None:
        """Mix one frame and send it to the sink."""
        self._sink(self.mix_frame())

    def run(self) -> None:
        """Keep producing frames until stopped."""
        while not self._stopped.is_set():
            self.process()

    def stop(self) -> None:
        self._stopped.set()

    def has_finished_all(self) -> bool:
        """True when no stream has audio left to play."""
        with self._lock:
            streams = list(self._streams.values())
        return all(len(stream) == 0 for stream in streams)