"""Developer guardrails (import graph checks)."""
