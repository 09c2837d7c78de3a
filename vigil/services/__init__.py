"""
Vigil - Services Package
========================

Engine services. The anti-spam package holds every detector and the
RiskAggregator that combines them.

DESIGN:
    Detectors are plain synchronous classes owning their own state.
    Anything that talks to the outside world (webhooks, enforcement)
    sits behind the sink protocols and runs as a background task.

Available Services:
    RiskAggregator: One decision per message or join event
"""

from .antispam import RiskAggregator


__all__ = ["RiskAggregator"]
