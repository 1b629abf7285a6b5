"""
Patient diary boundary.

Design intent:
- Normalize entries once, then derive trends and pre-visit summaries from them.
- Ground every summary item in a concrete diary entry or mark it unverified.
"""
