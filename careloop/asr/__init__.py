"""
Transcript intake boundary.

Design intent:
- Accept speech-to-text output as typed, timestamp-valid segments.
- Keep a usable placeholder transcript when recognition is unavailable.
"""
