"""Shared building blocks: errors, LLM client, throttling."""
