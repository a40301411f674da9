"""Token redemption flow and its local helpers"""

from .redemption_flow import FlowStatus, TokenRedemptionFlow
from .artifacts import ArtifactStore

__all__ = ["FlowStatus", "TokenRedemptionFlow", "ArtifactStore"]
