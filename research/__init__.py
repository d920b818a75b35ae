"""Transcript research pipeline.

Expands a research question into search terms, collects deduplicated
transcript passages from the search backend, and has the generation model
organize the relevant quotes by theme and speaker, batching the evidence
when it does not fit one context window.
"""
