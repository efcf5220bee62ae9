"""Core signal and confidence-scoring logic.

This package contains pure business logic with no I/O dependencies
(no file access, no network). Every stage is a deterministic function
from in-memory bar series (plus explicit configuration) to newly
allocated output series. The CLI layer (dipscan/) feeds it validated
bars and renders its results.
"""
