"""
Soylenti services: business logic for the rumour pipeline.

- dedup: decides whether a rumour repeats a recent one
- rumor_sync: fetch -> dedup -> store -> match, one cycle at a time

rumor_sync depends on the player matcher, which itself uses dedup, so it
is imported from its module rather than re-exported here:

    from soylenti.services.rumor_sync import RumorSyncService
"""

from soylenti.services.dedup import (
    DuplicateCheck,
    ExistingRumor,
    check_duplicate,
    generate_content_hash,
)

__all__ = [
    "DuplicateCheck",
    "ExistingRumor",
    "check_duplicate",
    "generate_content_hash",
]
