"""
Account flows behind the /api/auth routes: registration, login, token
refresh, profile edits, password change and account deletion.
"""

from typing import Any, Dict, Optional

from shared.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ValidationError,
)
from shared.logging import get_logger
from ..domain.clock import Clock, utcnow
from ..domain.rejections import from_gate
from ..tokens.codec import TokenCodec, TokenPair, TokenPurpose
from .gate import AccountGate
from .models import PROFILE_FIELDS, Account, ApiCallUsage
from .passwords import PasswordHasher
from .store import AccountStore, DuplicateAccountError

MIN_PASSWORD_LENGTH = 8
DELETE_CONFIRMATION = "DELETE_MY_ACCOUNT"


class AccountService:
    def __init__(
        self,
        store: AccountStore,
        gate: AccountGate,
        codec: TokenCodec,
        hasher: PasswordHasher,
        *,
        registration_enabled: bool = True,
        email_verification_enabled: bool = False,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.gate = gate
        self.codec = codec
        self.hasher = hasher
        self.registration_enabled = registration_enabled
        self.email_verification_enabled = email_verification_enabled
        self._clock = clock
        self.logger = get_logger("access.accounts")

    async def register(
        self,
        email: Optional[str],
        password: Optional[str],
        first_name: Optional[str],
        last_name: Optional[str],
    ) -> Dict[str, Any]:
        if not self.registration_enabled:
            raise AuthorizationError("Registration is currently disabled", "REGISTRATION_DISABLED")
        if not email or not password or not first_name or not last_name:
            raise ValidationError(
                "Email, password, first name, and last name are required", "MISSING_FIELDS"
            )
        email = email.strip().lower()
        if "@" not in email:
            raise ValidationError("Email address is invalid", "VALIDATION_ERROR")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long", "WEAK_PASSWORD"
            )

        now = self._clock()
        account = Account(
            email=email,
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            password_hash=await self.hasher.hash(password),
            is_email_verified=not self.email_verification_enabled,
            usage=ApiCallUsage(last_reset=now),
            created_at=now,
        )
        try:
            account = await self.store.create(account)
        except DuplicateAccountError:
            raise ConflictError("Email already registered", "EMAIL_EXISTS")

        self.logger.info("New user registered", account_id=account.id)
        response = {
            "message": "User registered successfully",
            "user": account.to_public_dict(),
            "tokens": self.codec.issue_pair(account.id).to_dict(),
        }
        if self.email_verification_enabled:
            response["notice"] = "Please check your email to verify your account"
        return response

    async def login(self, email: Optional[str], password: Optional[str]) -> Dict[str, Any]:
        if not email or not password:
            raise ValidationError("Email and password are required", "MISSING_FIELDS")

        result = await self.gate.authenticate(email, password)
        if not result.ok:
            raise from_gate(result).to_exception()

        self.logger.info("User logged in", account_id=result.account.id)
        return {
            "message": "Login successful",
            "user": result.account.to_public_dict(),
            "tokens": self.codec.issue_pair(result.account.id).to_dict(),
        }

    async def refresh(self, refresh_token: Optional[str]) -> TokenPair:
        if not refresh_token:
            raise ValidationError("Refresh token is required", "MISSING_FIELDS")

        verified = self.codec.verify(refresh_token, TokenPurpose.REFRESH)
        if not verified.ok:
            raise AuthenticationError("Invalid refresh token", "INVALID_REFRESH_TOKEN")

        account = await self.store.load_by_id(verified.account_id)
        if account is None or not account.is_active:
            raise AuthenticationError("User not found or inactive", "USER_NOT_FOUND")
        return self.codec.issue_pair(account.id)

    async def update_profile(self, account: Account, updates: Dict[str, Any]) -> Dict[str, Any]:
        changes = {
            name: value.strip()
            for name, value in updates.items()
            if name in PROFILE_FIELDS and isinstance(value, str) and value.strip()
        }
        if not changes:
            raise ValidationError("No valid fields to update", "NO_UPDATES")

        updated = await self.store.update_profile(account.id, changes)
        if updated is None:
            raise AuthenticationError("User not found", "USER_NOT_FOUND")
        self.logger.info("User profile updated", account_id=account.id, updates=sorted(changes))
        return {"message": "Profile updated successfully", "user": updated.to_public_dict()}

    async def change_password(
        self,
        account: Account,
        current_password: Optional[str],
        new_password: Optional[str],
    ) -> None:
        if not current_password or not new_password:
            raise ValidationError("Current password and new password are required", "MISSING_FIELDS")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"New password must be at least {MIN_PASSWORD_LENGTH} characters long", "WEAK_PASSWORD"
            )
        if not account.password_hash:
            raise ValidationError("Cannot change password for this account", "PASSWORD_CHANGE_NOT_ALLOWED")
        if not await self.hasher.verify(current_password, account.password_hash):
            raise AuthenticationError("Current password is incorrect", "INCORRECT_PASSWORD")

        await self.store.update_password(account.id, await self.hasher.hash(new_password))
        self.logger.info("Password changed", account_id=account.id)

    async def delete(self, account: Account, password: Optional[str], confirmation: Optional[str]) -> None:
        if confirmation != DELETE_CONFIRMATION:
            raise ValidationError("Account deletion confirmation required", "CONFIRMATION_REQUIRED")
        if account.password_hash and password:
            if not await self.hasher.verify(password, account.password_hash):
                raise AuthenticationError("Incorrect password", "INCORRECT_PASSWORD")

        await self.store.deactivate(account.id, self._clock())
        self.logger.warning("User account deleted", account_id=account.id)
