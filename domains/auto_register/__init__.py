"""
Auto-Registration Domain

Watches the projects root and registers new project directories with the
NautManager tracking API:
- Raw filesystem events are debounced per path
- Debounced paths are classified into candidate project directories
- Candidates are gated by an in-memory dedup store and registered once
"""

__all__ = ["classifier", "debounce", "dedup", "paths", "registrar", "watcher"]
