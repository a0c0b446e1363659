"""Incremental crawl-and-sync subsystem.

Structure:
- base.py: record types, tag normalization, error taxonomy
- spiders/: markup extraction for story index and synopsis pages
- renderer.py: page rendering (Playwright or plain HTTP)
- scheduler.py: round-robin category cursor
- sync.py: diff-based reconciliation against the store
- orchestrator.py: one crawl run composed from the above
- runner.py: CLI entrypoint for scheduled and manual runs
"""

__all__ = [
    "base",
]
