"""Top-level package for voicestudio."""

from . import audio, combiner, config, dispatcher, heuristics, normalizer, storage, transcriber

__all__ = ["audio", "combiner", "config", "dispatcher", "heuristics", "normalizer", "storage", "transcriber"]
