"""
Natural-language intent parsing.

Responsibilities:
- Prompt the completion backend for structured dining preferences.
- Map price expressions onto price tiers.
- Fall back to default preferences when the model is unavailable or its
  answer does not validate.
"""
