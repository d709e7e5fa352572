"""Re-export all models so Base.metadata sees them."""

from stratix.db.models.onboarding_progress import OnboardingProgress
from stratix.db.models.onboarding_session import OnboardingSession

__all__ = [
    "OnboardingProgress",
    "OnboardingSession",
]
