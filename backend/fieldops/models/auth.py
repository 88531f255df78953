from __future__ import annotations

from ..extensions import db
from fieldops.time_utils import to_utc_z

ROLE_ADMIN = "admin"
ROLE_GENERAL_MANAGER = "general_manager"
ROLE_SALES_MANAGER = "sales_manager"
ROLE_ACCOUNTING_MANAGER = "accounting_manager"
ROLE_SALES_SUPERVISOR = "sales_supervisor"
ROLE_ACCOUNTANT = "accountant"
ROLE_MERCHANDISER = "merchandiser"

VALID_ROLES = (
    ROLE_ADMIN,
    ROLE_GENERAL_MANAGER,
    ROLE_SALES_MANAGER,
    ROLE_ACCOUNTING_MANAGER,
    ROLE_SALES_SUPERVISOR,
    ROLE_ACCOUNTANT,
    ROLE_MERCHANDISER,
)

# Roles allowed to plan routes for other users.
ROUTE_MANAGER_ROLES = (
    ROLE_ADMIN,
    ROLE_GENERAL_MANAGER,
    ROLE_SALES_MANAGER,
    ROLE_SALES_SUPERVISOR,
)


class User(db.Model):
    """
    Field-sales user accounts for authentication and attribution.

    WHY: Every schedule, snapshot and visit is attributable to a user.
    manager_id builds the reporting hierarchy used by team route views.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint(
            "role IN ('admin', 'general_manager', 'sales_manager', 'accounting_manager', "
            "'sales_supervisor', 'accountant', 'merchandiser')",
            name="ck_users_role",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    full_name = db.Column(db.String(255), nullable=True)
    role = db.Column(db.String(32), nullable=False, default=ROLE_MERCHANDISER)
    manager_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    manager = db.relationship("User", remote_side=[id], backref=db.backref("subordinates", lazy=True))

    @property
    def is_route_manager(self) -> bool:
        return self.role in ROUTE_MANAGER_ROLES

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "role": self.role,
            "manager_id": self.manager_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Opaque bearer session tokens.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - 24-hour absolute timeout
    - 2-hour idle timeout
    - Revocable on logout
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length

    user = db.relationship("User", backref=db.backref("session_tokens", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }
