"""
Core package for the call transcription pipeline.

This package contains the modular components used by the HTTP entrypoints in
:mod:`callscribe.main` to send audio to a speech-to-text service, clean and
normalise the returned transcript, and optionally run a structured analysis
(problems, solutions, conversation temperature, summary) through a language
model.
"""

__version__ = "0.1.0"
