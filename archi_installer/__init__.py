"""Archi installer core (state-driven, resumable).

Prepares a target machine's storage for a fresh install:
- Target disk and secondary volume selection
- Firmware mode detection (UEFI or BIOS)
- Partitioning, formatting and the mount hierarchy under the target root
- Firmware mode handoff to the in-target configuration stage
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
