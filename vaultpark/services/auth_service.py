"""Authentication service for user management."""
from datetime import datetime
from flask_jwt_extended import create_access_token, create_refresh_token
from vaultpark import db
from vaultpark.models.user import User, UserRole
from vaultpark.utils.validators import Validator

class AuthService:
    @staticmethod
    def login(email: str, password: str) -> tuple[dict, str]:
        """Authenticate user and return tokens."""
        if not email or not password:
            return None, "Email and password are required"

        if not Validator.validate_email(email):
            return None, "Invalid email format"

        user = User.query.filter_by(email=email.lower().strip()).first()

        if not user:
            return None, "Invalid email or password"

        if not user.check_password(password):
            user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
            user.save()
            return None, "Invalid email or password"

        if not user.is_active:
            return None, "Account is deactivated"

        user.failed_login_attempts = 0
        user.last_login = datetime.utcnow()
        user.save()

        return {
            "access_token": create_access_token(identity=user.id),
            "refresh_token": create_refresh_token(identity=user.id),
            "user": user.to_dict()
        }, None

    @staticmethod
    def register(email: str, password: str, name: str, role: str = "DRIVER",
                 vehicle_number: str = None, membership_type: str = None,
                 phone: str = None) -> tuple[dict, str]:
        """Register new user."""
        if not all([email, password, name]):
            return None, "Email, password and name are required"

        if not Validator.validate_email(email):
            return None, "Invalid email format"

        password_check = Validator.validate_password(password)
        if not password_check["is_valid"]:
            return None, password_check["errors"][0]

        name_check = Validator.validate_name(name)
        if not name_check["is_valid"]:
            return None, name_check["errors"][0]

        try:
            user_role = UserRole((role or "DRIVER").upper())
        except ValueError:
            return None, "Role must be DRIVER or SECURITY"

        if user_role == UserRole.DRIVER:
            vehicle_check = Validator.validate_vehicle_number(vehicle_number)
            if not vehicle_check["is_valid"]:
                return None, vehicle_check["errors"][0]
            vehicle_number = vehicle_number.strip()

        email = email.lower().strip()
        if User.query.filter_by(email=email).first():
            return None, "Email already exists"

        user = User(
            email=email,
            name=name.strip(),
            role=user_role,
            phone=phone,
            vehicle_number=vehicle_number if user_role == UserRole.DRIVER else None,
            membership_type=membership_type if user_role == UserRole.DRIVER else None
        )
        user.set_password(password)
        user.save()

        return user.to_dict(), None

    @staticmethod
    def refresh_token(user_id: str) -> tuple[dict, str]:
        """Generate new access token."""
        user = db.session.get(User, user_id)
        if not user or not user.is_active:
            return None, "User not found or inactive"

        return {
            "access_token": create_access_token(identity=user.id),
            "user": user.to_dict()
        }, None
