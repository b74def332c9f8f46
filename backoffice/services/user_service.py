from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from backoffice.config import Config
from backoffice.models import Order, Role, User
from backoffice.observability import increment_counter, record_event
from backoffice.services.parsing import clean_str

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(value: Any) -> Optional[str]:
    email = clean_str(value)
    return email.lower() if email else None


class UserService:
    """Accounts, authentication, and the staff/salesman hierarchy."""

    def __init__(self, db_session: Session, config: type[Config] = Config) -> None:
        self.db = db_session
        self.config = config
        self.logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Self-service
    # ------------------------------------------------------------------
    def register(self, name: Any, email: Any, password: Any) -> Tuple[bool, str, Optional[User]]:
        name = clean_str(name)
        email = normalize_email(email)
        if not name or not email or not password:
            return False, "Name, email, and password are required", None
        error = self._validate_email(email) or self._validate_password(password)
        if error:
            return False, error, None
        if self.get_by_email(email):
            return False, "Email already exists", None

        user = User(name=name, email=email, role=Role.CUSTOMER)
        user.passwordHash = generate_password_hash(password)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return False, "Email already exists", None

        self.db.refresh(user)
        increment_counter("users_registered_total")
        record_event("user_registered", {"user_id": user.userID})
        self.logger.info("User %s registered", user.userID)
        return True, "User registered successfully", user

    def authenticate(self, email: Any, password: Any) -> Optional[User]:
        email = normalize_email(email)
        if not email or not password:
            return None
        user = self.get_by_email(email)
        if not user or not check_password_hash(user.passwordHash, password):
            increment_counter("login_failures_total")
            self.logger.warning("Failed login attempt", extra={"email": email})
            return None
        return user

    def update_profile(self, user: User, payload: Dict[str, Any]) -> Tuple[bool, str, Optional[User]]:
        if "name" in payload:
            name = clean_str(payload.get("name"))
            if not name:
                return False, "Name cannot be empty", None
            user.name = name
        if payload.get("email"):
            email = normalize_email(payload["email"])
            error = self._validate_email(email) or self._ensure_email_free(email, user)
            if error:
                self.db.rollback()
                return False, error, None
            user.email = email
        if payload.get("password"):
            if not payload.get("currentPassword") or not check_password_hash(
                user.passwordHash, payload["currentPassword"]
            ):
                self.db.rollback()
                return False, "Current password is incorrect", None
            error = self._validate_password(payload["password"])
            if error:
                self.db.rollback()
                return False, error, None
            user.passwordHash = generate_password_hash(payload["password"])
        return self._commit(user, "Profile updated successfully")

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------
    def list_users(self, role: Optional[str] = None) -> List[User]:
        query = self.db.query(User)
        if role:
            query = query.filter(User.role == Role.normalize(role))
        return query.order_by(User.created_at, User.userID).all()

    def get_user(self, user_id: str) -> Optional[User]:
        return self.db.query(User).filter_by(userID=user_id).first()

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(func.lower(User.email) == email.lower()).first()

    def create_user(
        self,
        name: str,
        email: str,
        password: str,
        role: Role | str = Role.CUSTOMER,
        staff: Optional[User] = None,
    ) -> User:
        """Create an account directly (bootstrap and seeding); flushes without committing."""
        user = User(name=name, email=normalize_email(email), role=Role.normalize(role))
        user.passwordHash = generate_password_hash(password)
        if staff is not None:
            user.staffID = staff.userID
        self.db.add(user)
        self.db.flush()
        return user

    def update_user(self, user_id: str, payload: Dict[str, Any]) -> Tuple[bool, str, Optional[User]]:
        user = self.get_user(user_id)
        if not user:
            return False, "User not found", None

        try:
            role = Role.normalize(payload["role"]) if payload.get("role") else Role.normalize(user.role)
        except ValueError:
            return False, "Invalid role", None

        staff_id = clean_str(payload.get("staffId"))
        # a salesman keeps their current staff member unless a new one is given
        if role == Role.SALESMAN and not (staff_id or user.staffID):
            return False, "Staff ID is required for salesman role", None
        if staff_id and not self._get_with_role(staff_id, Role.STAFF):
            return False, "Invalid staff ID", None

        email = normalize_email(payload.get("email"))
        if email:
            error = self._validate_email(email) or self._ensure_email_free(email, user)
            if error:
                return False, error, None
            user.email = email

        name = clean_str(payload.get("name"))
        if name:
            user.name = name
        previous_role = Role.normalize(user.role)
        user.role = role
        if staff_id:
            user.staffID = staff_id
        elif role != Role.SALESMAN:
            # only salesmen report to a staff member
            user.staffID = None

        success, message, user = self._commit(user, "User updated successfully")
        if success and previous_role != role:
            increment_counter("user_role_changes_total", labels={"role": role.value})
            record_event("user_role_changed", {"user_id": user.userID, "from": previous_role.value, "to": role.value})
        return success, message, user

    def delete_user(self, user_id: str, acting_user: Optional[User] = None) -> Tuple[bool, str]:
        user = self.get_user(user_id)
        if not user:
            return False, "User not found"
        if acting_user is not None and acting_user.userID == user.userID:
            return False, "You cannot delete your own account"
        has_orders = self.db.query(Order.orderID).filter_by(customerID=user.userID).first()
        if has_orders:
            return False, "User has orders as a customer and cannot be deleted"

        self.db.delete(user)
        self.db.commit()
        self.logger.info("User %s deleted", user_id)
        return True, "User deleted successfully"

    def assign_salesman(self, salesman_id: Any, staff_id: Any) -> Tuple[bool, str, Optional[User]]:
        salesman = self._get_with_role(clean_str(salesman_id), Role.SALESMAN)
        staff = self._get_with_role(clean_str(staff_id), Role.STAFF)
        if not salesman or not staff:
            return False, "Invalid salesman or staff ID", None

        salesman.staffID = staff.userID
        return self._commit(salesman, "Salesman assigned successfully")

    def salesmen_for_staff(self, staff: User) -> List[User]:
        return (
            self.db.query(User)
            .filter(User.staffID == staff.userID, User.role == Role.SALESMAN)
            .order_by(User.name)
            .all()
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _get_with_role(self, user_id: Optional[str], role: Role) -> Optional[User]:
        if not user_id:
            return None
        return self.db.query(User).filter(User.userID == user_id, User.role == role).first()

    def _ensure_email_free(self, email: str, user: User) -> Optional[str]:
        existing = self.get_by_email(email)
        if existing and existing.userID != user.userID:
            return "Email already exists"
        return None

    @staticmethod
    def _validate_email(email: Optional[str]) -> Optional[str]:
        if not email or not _EMAIL_PATTERN.match(email):
            return "Invalid email address"
        return None

    def _validate_password(self, password: Any) -> Optional[str]:
        if not isinstance(password, str) or len(password) < self.config.PASSWORD_MIN_LENGTH:
            return f"Password must be at least {self.config.PASSWORD_MIN_LENGTH} characters"
        return None

    def _commit(self, user: User, message: str) -> Tuple[bool, str, Optional[User]]:
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return False, "Email already exists", None
        self.db.refresh(user)
        self.logger.info(message, extra={"target_user_id": user.userID})
        return True, message, user
