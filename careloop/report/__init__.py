"""
Medical report explanation boundary.

Design intent:
- Turn pasted report text into explained terms, flagged labs, and a reviewable summary.
- Keep every term and lab anchored to a character span of the report.
"""
