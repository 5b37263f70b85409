"""Baseline checkpointing of working directories.

This module records the initial state of a working directory in git:
- Repository initialization when no metadata exists
- Local commit identity configuration
- An initial, possibly empty, checkpoint commit

Every step is best-effort; failures are logged and never raised.
"""
