"""
Soylenti - transfer rumour tracking for the Peña Bética Escocesa site.

Collects Real Betis transfer news from RSS/Atom feeds, works out which
players each rumour mentions and keeps a deduplicated player registry that
operators can clean up by merging duplicate records.

Main components:
- feeds: Concurrent feed fetching and RSS/Atom parsing
- players: Name normalization, alias index, mention matching and merges
- services: Rumour sync orchestration and content deduplication
- trending: Half-life decay scoring for the trending players view
- web: FastAPI routes for the public feed and the admin tools
- tasks: Locking helpers for scheduled runs
"""

__version__ = "1.0.0"
