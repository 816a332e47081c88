"""Database seeding service for demo data."""
from vaultpark import db
from vaultpark.models.user import User, UserRole
from vaultpark.models.pricing_tier import PricingTier

class SeedService:
    """Service to seed database with pricing tiers and demo accounts."""

    PRICING_TIERS = [
        # membership, hourly rate, daily cap, monthly unlimited
        ('Gold', 5.0, 40.0, None),
        ('Platinum', 4.0, 30.0, 200.0),
    ]

    DRIVERS = [
        ('Nimal Perera', 'nimal.perera', 'KA01AB1234', 'Gold'),
        ('Ayesha Fernando', 'ayesha.fernando', 'WP-CAB-4521', 'Platinum'),
        ('Kasun Silva', 'kasun.silva', 'CP-KL-7788', None),
    ]

    @staticmethod
    def seed_all():
        """Seed all demo data."""
        SeedService.seed_pricing_tiers()
        SeedService.seed_security()
        SeedService.seed_drivers()

    @staticmethod
    def seed_pricing_tiers():
        for membership_type, hourly_rate, daily_cap, monthly_unlimited in SeedService.PRICING_TIERS:
            if PricingTier.for_membership(membership_type):
                continue
            db.session.add(PricingTier(
                membership_type=membership_type,
                hourly_rate=hourly_rate,
                daily_cap=daily_cap,
                monthly_unlimited=monthly_unlimited
            ))

        db.session.commit()
        print(f"✅ {PricingTier.query.count()} pricing tiers available")

    @staticmethod
    def seed_security():
        if User.query.filter_by(email='guard@vaultpark.local').first():
            return

        guard = User(
            email='guard@vaultpark.local',
            name='Main Gate Operator',
            role=UserRole.SECURITY
        )
        guard.set_password('guard123')
        db.session.add(guard)
        db.session.commit()
        print("✅ Created operator guard@vaultpark.local / guard123")

    @staticmethod
    def seed_drivers():
        created = 0
        for name, username, vehicle_number, membership_type in SeedService.DRIVERS:
            email = f"{username}@vaultpark.local"
            if User.query.filter_by(email=email).first():
                continue

            driver = User(
                email=email,
                name=name,
                role=UserRole.DRIVER,
                vehicle_number=vehicle_number,
                membership_type=membership_type
            )
            driver.set_password('driver123')
            db.session.add(driver)
            created += 1

        db.session.commit()
        print(f"✅ Created {created} drivers (password: driver123)")
