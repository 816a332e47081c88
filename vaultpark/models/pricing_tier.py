"""Pricing tier per membership type."""
from vaultpark import db
from vaultpark.models.base import BaseModel

class PricingTier(BaseModel):
    """Hourly rate with optional daily cap and monthly unlimited price."""

    __tablename__ = 'pricing_tiers'

    membership_type = db.Column(db.String(30), unique=True, nullable=False, index=True)
    hourly_rate = db.Column(db.Float, nullable=False)
    daily_cap = db.Column(db.Float, nullable=True)
    monthly_unlimited = db.Column(db.Float, nullable=True)

    @classmethod
    def for_membership(cls, membership_type: str) -> 'PricingTier':
        if not membership_type:
            return None
        return cls.query.filter(
            db.func.lower(cls.membership_type) == membership_type.lower()
        ).first()

    def __repr__(self) -> str:
        return f'<PricingTier {self.membership_type}>'
