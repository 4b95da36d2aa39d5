"""Secure credential generation for project databases.

Usernames are derived from the project ref; passwords come from the
``secrets`` CSPRNG and are bcrypt-hashed before they leave this module.
"""

import asyncio
import dataclasses
import logging
import re
import secrets
from dataclasses import dataclass
from typing import List, Optional

import bcrypt

from ..config import Settings, settings
from ..exceptions import CredentialError
from ..result import Result
from .models import ProjectCredentials
from .validator import CredentialValidator

logger = logging.getLogger(__name__)

LOWERCASE = "abcdefghijklmnopqrstuvwxyz"
UPPERCASE = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
DIGITS = "0123456789"
SPECIAL_CHARS = "!@#$%^&*()_+-=[]{}|;:,.<>?"
SIMILAR_CHARS = "0O1lI"

MAX_PASSWORD_LENGTH = 128
BCRYPT_MAX_BYTES = 72

_NON_ALPHANUMERIC = re.compile(r"[^a-zA-Z0-9]")


@dataclass(frozen=True)
class GenerationOptions:
    """Options for username and password generation."""

    user_prefix: str = "proj_"
    user_suffix: str = "_user"
    password_length: int = 24
    include_special_chars: bool = True
    exclude_similar_chars: bool = True

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "GenerationOptions":
        config = config or settings
        return cls(
            user_prefix=config.user_prefix,
            user_suffix=config.user_suffix,
            password_length=config.password_length,
            include_special_chars=config.include_special_chars,
            exclude_similar_chars=config.exclude_similar_chars,
        )

    def merged(self, **overrides) -> "GenerationOptions":
        """Copy with the non-None overrides applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return dataclasses.replace(self, **changes) if changes else self

    def character_pools(self) -> List[str]:
        """One pool per required character class, ambiguous characters removed."""
        pools = [LOWERCASE, UPPERCASE, DIGITS]
        if self.include_special_chars:
            pools.append(SPECIAL_CHARS)
        if self.exclude_similar_chars:
            pools = ["".join(c for c in pool if c not in SIMILAR_CHARS) for pool in pools]
        return pools


def sanitize_project_ref(project_ref: str) -> str:
    """Replace every non-alphanumeric character with ``_`` and lowercase."""
    return _NON_ALPHANUMERIC.sub("_", project_ref).lower()


def generate_username(project_ref: str, options: Optional[GenerationOptions] = None) -> str:
    options = options or GenerationOptions.from_settings()
    return f"{options.user_prefix}{sanitize_project_ref(project_ref)}{options.user_suffix}"


def generate_secure_password(options: Optional[GenerationOptions] = None) -> str:
    """
    Generate a random password with at least one character of each class.

    Args:
        options: Length and character-class options

    Returns:
        Password of exactly ``options.password_length`` characters

    Raises:
        CredentialError: (validation) if the length cannot fit every class
    """
    options = options or GenerationOptions.from_settings()
    pools = options.character_pools()

    if options.password_length < len(pools):
        raise CredentialError.validation(
            f"Password length must be at least {len(pools)} to include every character class",
            context={"password_length": options.password_length},
        )
    if options.password_length > MAX_PASSWORD_LENGTH:
        raise CredentialError.validation(
            f"Password length must not exceed {MAX_PASSWORD_LENGTH}",
            context={"password_length": options.password_length},
        )

    charset = "".join(pools)
    chars = [secrets.choice(pool) for pool in pools]
    chars.extend(secrets.choice(charset) for _ in range(options.password_length - len(chars)))

    # Fisher-Yates so the guaranteed characters land anywhere
    for i in range(len(chars) - 1, 0, -1):
        j = secrets.randbelow(i + 1)
        chars[i], chars[j] = chars[j], chars[i]

    return "".join(chars)


def _hash_sync(password: str, rounds: int) -> str:
    # bcrypt only looks at the first 72 bytes
    password_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plaintext password against a bcrypt hash."""
    try:
        return bcrypt.checkpw(
            password.encode("utf-8")[:BCRYPT_MAX_BYTES], password_hash.encode("utf-8")
        )
    except ValueError:
        # Not a bcrypt hash
        return False


class CredentialGenerator:
    """Generates validated project credentials.

    Example:
        generator = CredentialGenerator()
        result = await generator.generate_project_credentials("test-project-123")
        result.data.user  # "proj_test_project_123_user"
    """

    def __init__(
        self,
        validator: Optional[CredentialValidator] = None,
        config: Optional[Settings] = None,
    ):
        config = config or settings
        self.validator = validator or CredentialValidator()
        self.options = GenerationOptions.from_settings(config)
        self.bcrypt_rounds = config.bcrypt_rounds

    async def hash_password(self, password: str) -> str:
        """bcrypt-hash ``password`` in a worker thread so the event loop keeps running."""
        return await asyncio.to_thread(_hash_sync, password, self.bcrypt_rounds)

    def generate_username(self, project_ref: str, options: Optional[GenerationOptions] = None) -> str:
        return generate_username(project_ref, options or self.options)

    def generate_secure_password(self, options: Optional[GenerationOptions] = None) -> str:
        return generate_secure_password(options or self.options)

    async def generate_project_credentials(
        self, project_ref: str, options: Optional[GenerationOptions] = None, **overrides
    ) -> Result[ProjectCredentials]:
        """
        Generate, hash and validate credentials for one project.

        Args:
            project_ref: Project reference identifier
            options: Generation options (generator defaults when omitted)
            **overrides: GenerationOptions fields to change for this call only;
                None values are ignored

        Returns:
            Result with the credentials, or a validation error listing every
            violated rule
        """
        options = options or self.options

        try:
            options = options.merged(**overrides)
            username = generate_username(project_ref, options)
            password = generate_secure_password(options)
            password_hash = await self.hash_password(password)
        except Exception as e:
            cause = CredentialError.from_exception(e)
            logger.error(f"[Credential Migration] Failed to generate credentials for {project_ref}: {e}")
            return Result(
                error=CredentialError(
                    f"Failed to generate project credentials: {cause.message}",
                    kind=cause.kind,
                    severity=cause.severity,
                    retryable=cause.retryable,
                    context={"project_ref": project_ref},
                    original_error=e,
                )
            )

        credentials = ProjectCredentials(user=username, password_hash=password_hash)
        validation = self.validator.validate_project_credentials(credentials, require_complete=True)

        if not validation.is_valid:
            messages = ", ".join(validation.all_errors)
            return Result(
                error=CredentialError.validation(
                    f"Generated credentials failed validation: {messages}",
                    context={"project_ref": project_ref, "user": username},
                )
            )

        logger.debug(f"[Credential Migration] Generated credentials {username} for {project_ref}")
        return Result.ok(credentials)
