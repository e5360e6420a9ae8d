"""memex: long-term memory for coding agents.

Layout:
    ~/.memex/memory/
    ├── inbox/
    │   ├── 2026-10-19T08-12-44_amp_3fa2c1.json   # Pending session records
    │   └── .processed/                           # Consumed records
    └── default/                                  # One directory per org
        └── archive/
            ├── top-of-mind-id__indexx.md         # Index note (defrag output)
            └── asyncio-gotchas-id__7Hq2Mz.md     # Notes: # Title, #tags, body

Sessions are captured into the inbox, consolidated into atomic notes by an
LLM, and periodically reorganized ("defrag"), which also rewrites the managed
section of each configured AGENTS.md.
"""

__version__ = "0.3.0"
