"""
Authentication against a managed identity provider.

The provider itself (sign-up, sign-in, hosted federated redirects) is
injected as an ``IdentityProvider``; this module keeps the signed-in user
record in local storage and turns provider error codes into messages that
can be shown to the user.
"""
import logging
import re
import time
from dataclasses import replace
from typing import Any, Dict, List, Optional, Protocol

from trend.domain import UserAuthData, UserPreferences
from trend.storage import AUTH_TEMP_KEY, AUTH_USER_KEY, KeyValueStore
from trend.transforms import user_from_dict, user_to_dict

logger = logging.getLogger(__name__)

AUTH_ERROR_MESSAGES = {
    "UserNotConfirmedException": "Please verify your email address before signing in",
    "NotAuthorizedException": "Invalid email or password",
    "UserNotFoundException": "No account found with this email address",
    "InvalidPasswordException": "Password does not meet requirements",
    "UsernameExistsException": "An account with this email already exists",
    "CodeMismatchException": "Invalid verification code",
    "ExpiredCodeException": "Verification code has expired",
    "LimitExceededException": "Too many attempts. Please try again later",
}

FEDERATED_PROVIDERS = ("Google", "Facebook", "Apple")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class AuthError(Exception):
    def __init__(self, message: str, code: Optional[str] = None):
        self.code = code
        super().__init__(message)


class IdentityProvider(Protocol):
    async def sign_up(self, username: str, password: str, attributes: Dict[str, str]) -> Any: ...

    async def confirm_sign_up(self, username: str, code: str) -> None: ...

    async def resend_sign_up_code(self, username: str) -> None: ...

    async def sign_in(self, username: str, password: str) -> Any: ...

    async def sign_in_with_redirect(self, provider: str) -> None: ...

    async def sign_out(self) -> None: ...

    async def get_current_user(self) -> Optional[dict]: ...

    async def update_user_attributes(self, attributes: Dict[str, str]) -> None: ...

    async def reset_password(self, username: str) -> None: ...

    async def confirm_reset_password(self, username: str, code: str, new_password: str) -> None: ...


def error_code(error: Exception) -> str:
    return getattr(error, "code", None) or getattr(error, "name", None) or type(error).__name__


def translate_error(error: Exception) -> AuthError:
    code = error_code(error)
    message = AUTH_ERROR_MESSAGES.get(code) or str(error) or "Authentication failed"
    return AuthError(message, code)


def user_from_provider(provider_user: dict) -> UserAuthData:
    attributes = provider_user.get("attributes") or {}
    email = attributes.get("email") or ""
    now = time.time()
    return UserAuthData(
        user_id=provider_user.get("user_id") or attributes.get("sub") or "",
        email=email,
        display_name=attributes.get("name") or (email.split("@")[0] if email else None),
        email_verified=str(attributes.get("email_verified")).lower() == "true",
        created_at=now,
        last_login_at=now,
    )


class AuthenticationManager:
    def __init__(self, provider: IdentityProvider, store: KeyValueStore):
        self.provider = provider
        self.store = store
        self.current_user: Optional[UserAuthData] = None

    async def initialize(self) -> None:
        """Restore the signed-in user, if the provider still has a session."""
        try:
            provider_user = await self.provider.get_current_user()
            if not provider_user:
                return
            stored = await self.store.get_item(AUTH_USER_KEY)
            if stored:
                user = user_from_dict(stored)
            else:
                user = user_from_provider(provider_user)
                await self.store.set_item(AUTH_USER_KEY, user_to_dict(user))
            self.current_user = user
            logger.info("User authenticated: %s", user.email)
        except Exception as e:
            logger.info("No authenticated user found: %s", e)
            await self.store.remove_item(AUTH_USER_KEY)

    async def register(self, email: str, password: str, display_name: Optional[str] = None) -> None:
        attributes = {"email": email}
        if display_name:
            attributes["name"] = display_name
        try:
            await self.provider.sign_up(email, password, attributes)
            logger.info("Registration successful, verification required for %s", email)
        except Exception as e:
            logger.error("Registration failed: %s", e)
            raise translate_error(e) from e

    async def confirm_registration(self, email: str, code: str) -> None:
        try:
            await self.provider.confirm_sign_up(email, code)
        except Exception as e:
            logger.error("Email confirmation failed: %s", e)
            raise translate_error(e) from e

    async def resend_confirmation_code(self, email: str) -> None:
        try:
            await self.provider.resend_sign_up_code(email)
        except Exception as e:
            logger.error("Resending confirmation code failed: %s", e)
            raise translate_error(e) from e

    async def login(self, email: str, password: str) -> UserAuthData:
        try:
            await self.provider.sign_in(email, password)
            provider_user = await self.provider.get_current_user() or {}
        except Exception as e:
            logger.error("Login failed: %s", e)
            raise translate_error(e) from e

        stored = await self.store.get_item(AUTH_USER_KEY)
        if stored and stored.get("email") == email:
            user = replace(user_from_dict(stored), last_login_at=time.time())
        else:
            user = user_from_provider(provider_user)
        await self.store.set_item(AUTH_USER_KEY, user_to_dict(user))
        self.current_user = user
        return user

    async def federated_login(self, provider: str) -> None:
        if provider not in FEDERATED_PROVIDERS:
            raise AuthError(f"Unsupported sign-in provider: {provider}")
        try:
            await self.provider.sign_in_with_redirect(provider)
        except Exception as e:
            logger.error("%s sign-in failed: %s", provider, e)
            raise translate_error(e) from e

    async def logout(self) -> None:
        try:
            await self.provider.sign_out()
        except Exception as e:
            logger.error("Logout failed: %s", e)
        await self.store.remove_many([AUTH_USER_KEY, AUTH_TEMP_KEY])
        self.current_user = None

    async def update_profile(self, display_name: Optional[str] = None) -> UserAuthData:
        if self.current_user is None:
            raise AuthError("No user logged in")
        try:
            if display_name:
                await self.provider.update_user_attributes({"name": display_name})
        except Exception as e:
            logger.error("Profile update failed: %s", e)
            raise translate_error(e) from e

        user = replace(self.current_user, display_name=display_name or self.current_user.display_name)
        await self.store.set_item(AUTH_USER_KEY, user_to_dict(user))
        self.current_user = user
        return user

    async def update_preferences(self, **preferences) -> UserPreferences:
        if self.current_user is None:
            raise AuthError("No user logged in")
        try:
            updated = replace(self.current_user.preferences, **preferences)
            user = replace(self.current_user, preferences=updated)
            await self.store.set_item(AUTH_USER_KEY, user_to_dict(user))
        except Exception as e:
            logger.error("Preferences update failed: %s", e)
            raise AuthError("Failed to update preferences") from e
        self.current_user = user
        return updated

    async def request_password_reset(self, email: str) -> None:
        try:
            await self.provider.reset_password(email)
        except Exception as e:
            logger.error("Password reset request failed: %s", e)
            raise translate_error(e) from e

    async def confirm_password_reset(self, email: str, code: str, new_password: str) -> None:
        try:
            await self.provider.confirm_reset_password(email, code, new_password)
        except Exception as e:
            logger.error("Password reset confirmation failed: %s", e)
            raise translate_error(e) from e

    @property
    def is_logged_in(self) -> bool:
        return self.current_user is not None

    @property
    def user_email(self) -> Optional[str]:
        return self.current_user.email if self.current_user else None

    @property
    def is_email_verified(self) -> bool:
        return bool(self.current_user and self.current_user.email_verified)


def validate_email(email: Optional[str]) -> bool:
    return bool(email and EMAIL_RE.match(email))


def validate_password(password: Optional[str]) -> dict:
    password = password or ""
    errors: List[str] = []
    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    return {"is_valid": not errors, "errors": errors}


def validate_registration(data: dict) -> dict:
    errors: List[str] = []
    if not (data.get("first_name") or "").strip():
        errors.append("First name is required")
    if not (data.get("last_name") or "").strip():
        errors.append("Last name is required")
    if not validate_email(data.get("email")):
        errors.append("Valid email is required")
    errors.extend(validate_password(data.get("password"))["errors"])
    if data.get("password") != data.get("confirm_password"):
        errors.append("Passwords do not match")
    return {"is_valid": not errors, "errors": errors}
