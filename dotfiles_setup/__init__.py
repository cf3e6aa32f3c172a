"""dotfiles-setup: Zorin OS / Ubuntu desktop setup (Python-first, check-then-install).

Core design goals:
- Idempotent steps: detect, install, verify
- One explicit context object per run
- Required steps abort, optional steps warn
- Downloads retried and cached
- Centralized logging
"""

__all__ = []
