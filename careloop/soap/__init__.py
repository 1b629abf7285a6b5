"""
SOAP drafting boundary.

Design intent:
- Generate editable SOAP drafts from transcripts, model-first with a template fallback.
- Keep every SOAP line linkable back to transcript evidence.
"""
