"""
Vigil - Source Package
======================

Rule-based trust scoring for chat events. Every message and member join
is scored by independent detectors and folded into one moderation
decision with progressive-punishment memory.

Package Structure:
- core/: Settings, guild configuration, errors and the tree logger
- services/antispam/: Detectors, escalation and the risk aggregator
- utils/: Clocks, TTL cache and safe background tasks

Version: v1.0.0
"""

__version__ = "1.0.0"
