"""
LLM integration layer.

Responsibilities:
- Manage Groq API configuration and credentials.
- Expose a JSON-object completion backend the pipeline depends on.
- Report an unavailable backend or invalid output as a CompletionError so
  callers can fall back to deterministic behaviour.
"""
