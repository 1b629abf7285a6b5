"""
CareLoop evidence engine package.

Design intent:
- Turn free-form clinical/diary text into structured, evidence-grounded output.
- Keep every generated claim traceable to a located span of source text.
- Gate text flowing in and out through a best-effort PII boundary.
"""
