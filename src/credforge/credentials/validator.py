"""
Username and password validation for project database credentials.

Usernames follow PostgreSQL identifier rules. Passwords are checked against
discrete rules (length, character classes, forbidden substrings) and a
composite 0-100 strength score:

    length      up to 25  (length / min_length * 15)
    variety     up to 40  (10 per character class present)
    uniqueness  up to 20  (distinct chars / length * 20)
    patterns    minus 5 each for runs, sequences and whole-string repetition
    entropy     up to 15  (Shannon entropy * length / 4)
"""

import logging
import math
import re
import unicodedata
from collections import Counter
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from ..config import Settings, settings
from .models import DetailedValidationResult, ProjectCredentials, ValidationResult

logger = logging.getLogger(__name__)

DEFAULT_FORBIDDEN_PATTERNS = (
    "password",
    "admin",
    "root",
    "user",
    "test",
    "123456",
    "qwerty",
    "supabase",
    "postgres",
)

DEFAULT_FORBIDDEN_NAMES = (
    "postgres",
    "root",
    "admin",
    "administrator",
    "sa",
    "user",
    "guest",
    "public",
    "information_schema",
    "pg_catalog",
    "pg_toast",
    "pg_temp",
    "pg_toast_temp",
)

RESERVED_KEYWORDS = frozenset(
    {
        "select",
        "insert",
        "update",
        "delete",
        "create",
        "drop",
        "alter",
        "grant",
        "revoke",
        "table",
        "database",
        "schema",
        "index",
        "view",
        "function",
        "procedure",
        "trigger",
    }
)

SEQUENCES = (
    "abcdefghijklmnopqrstuvwxyz",
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ",
    "0123456789",
    "qwertyuiop",
    "asdfghjkl",
    "zxcvbnm",
)
SEQUENCE_WINDOW = 3

SIMILARITY_THRESHOLD = 0.8

USERNAME_PATTERN = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")
LOWERCASE_RE = re.compile(r"[a-z]")
UPPERCASE_RE = re.compile(r"[A-Z]")
DIGIT_RE = re.compile(r"[0-9]")
SPECIAL_RE = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")
REPEATED_RUN_RE = re.compile(r"(.)\1{2,}", re.DOTALL)
REPEATED_WHOLE_RE = re.compile(r"(.+)\1+", re.DOTALL)
ONLY_LETTERS_RE = re.compile(r"[a-zA-Z]+")
ONLY_DIGITS_RE = re.compile(r"[0-9]+")
LETTER_RE = re.compile(r"[a-zA-Z]")

CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")
SQL_INJECTION_PATTERNS = tuple(
    re.compile(pattern, flags)
    for pattern, flags in (
        (r"['\";]", 0),
        (r"--", 0),
        (r"/\*", 0),
        (r"\*/", 0),
        (r"\bor\b", re.IGNORECASE),
        (r"\band\b", re.IGNORECASE),
        (r"\bunion\b", re.IGNORECASE),
        (r"\bselect\b", re.IGNORECASE),
        (r"\binsert\b", re.IGNORECASE),
        (r"\bupdate\b", re.IGNORECASE),
        (r"\bdelete\b", re.IGNORECASE),
        (r"\bdrop\b", re.IGNORECASE),
        (r"\bexec\b", re.IGNORECASE),
        (r"\bexecute\b", re.IGNORECASE),
    )
)
PLAINTEXT_PREFIXES = (
    re.compile(r"password", re.IGNORECASE),
    re.compile(r"admin", re.IGNORECASE),
    re.compile(r"user", re.IGNORECASE),
    re.compile(r"test", re.IGNORECASE),
    re.compile(r"123"),
    re.compile(r"qwerty", re.IGNORECASE),
)
BCRYPT_HASH_RE = re.compile(r"\$2[aby]\$\d{2}\$[./A-Za-z0-9]{53}")
MIN_HASH_LENGTH = 8
MIN_PLAINTEXT_SAFE_LENGTH = 20


@dataclass(frozen=True)
class PasswordPolicy:
    """Password rules. Use ``dataclasses.replace`` for per-call tweaks."""

    min_length: int = 12
    max_length: int = 128
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_numbers: bool = True
    require_special_chars: bool = True
    forbidden_patterns: Tuple[str, ...] = DEFAULT_FORBIDDEN_PATTERNS
    min_score: int = 70

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "PasswordPolicy":
        config = config or settings
        return cls(
            min_length=config.password_min_length,
            max_length=config.password_max_length,
            min_score=config.password_min_score,
        )


@dataclass(frozen=True)
class UsernamePolicy:
    """Username rules (PostgreSQL identifier limits by default)."""

    min_length: int = 3
    max_length: int = 63
    forbidden_names: Tuple[str, ...] = DEFAULT_FORBIDDEN_NAMES
    require_prefix: Optional[str] = None
    require_suffix: Optional[str] = None

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "UsernamePolicy":
        config = config or settings
        return cls(min_length=config.username_min_length, max_length=config.username_max_length)


def levenshtein_distance(a: str, b: str) -> int:
    """Unit-cost edit distance (insert, delete, substitute)."""
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(current[j - 1] + 1, previous[j] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def shannon_entropy(value: str) -> float:
    """Shannon entropy in bits per character of the character distribution."""
    if not value:
        return 0.0
    length = len(value)
    return -sum((count / length) * math.log2(count / length) for count in Counter(value).values())


def has_sequential_chars(value: str) -> bool:
    """True if ``value`` contains three consecutive characters of a known sequence."""
    for sequence in SEQUENCES:
        for start in range(len(sequence) - SEQUENCE_WINDOW + 1):
            if sequence[start : start + SEQUENCE_WINDOW] in value:
                return True
    return False


def calculate_password_strength(password: str, min_length: int = 12) -> int:
    """Composite strength score, rounded and clamped to 0..100."""
    if not password:
        return 0

    length = len(password)
    score = min(25.0, length / min_length * 15)

    score += 10 * sum(
        1 for pattern in (LOWERCASE_RE, UPPERCASE_RE, DIGIT_RE, SPECIAL_RE) if pattern.search(password)
    )

    score += min(20.0, len(set(password)) / length * 20)

    penalty = 0
    if REPEATED_RUN_RE.search(password):
        penalty += 5
    if has_sequential_chars(password):
        penalty += 5
    if REPEATED_WHOLE_RE.fullmatch(password):
        penalty += 5
    score -= penalty

    score += min(15.0, shannon_entropy(password) * length / 4)

    # Half-up rounding
    return max(0, min(100, math.floor(score + 0.5)))


def are_credentials_too_similar(username: str, password: str) -> bool:
    """Substring containment either way, or normalized edit similarity above 0.8."""
    lower_user = username.lower()
    lower_pass = password.lower()

    if lower_user in lower_pass or lower_pass in lower_user:
        return True

    max_length = max(len(username), len(password))
    if max_length == 0:
        return True
    similarity = 1 - levenshtein_distance(lower_user, lower_pass) / max_length
    return similarity > SIMILARITY_THRESHOLD


class CredentialValidator:
    """Validates usernames, passwords and complete credential pairs.

    Example:
        validator = CredentialValidator()
        result = validator.validate_password("alllowercase123!")
        result.is_valid   # False
        result.errors     # ["Password must contain at least one uppercase letter", ...]
    """

    def __init__(
        self,
        password_policy: Optional[PasswordPolicy] = None,
        username_policy: Optional[UsernamePolicy] = None,
    ):
        self.password_policy = password_policy or PasswordPolicy.from_settings()
        self.username_policy = username_policy or UsernamePolicy.from_settings()

    def validate_username(self, username: Any, policy: Optional[UsernamePolicy] = None) -> ValidationResult:
        """
        Validate a database username.

        Args:
            username: Candidate username (surrounding whitespace is ignored)
            policy: Overrides the validator's username policy

        Returns:
            ValidationResult (no score)
        """
        policy = policy or self.username_policy
        errors: List[str] = []
        warnings: List[str] = []

        if username is None or username == "":
            return ValidationResult(False, ["Username is required"])
        if not isinstance(username, str):
            return ValidationResult(False, ["Username must be a string"])

        name = username.strip()
        if not name:
            return ValidationResult(False, ["Username cannot be empty or only whitespace"])

        if len(name) < policy.min_length:
            errors.append(f"Username must be at least {policy.min_length} characters long")
        if len(name) > policy.max_length:
            errors.append(f"Username must not exceed {policy.max_length} characters")

        if not USERNAME_PATTERN.fullmatch(name):
            errors.append(
                "Username must start with a letter or underscore and contain only letters, "
                "numbers, and underscores"
            )

        lower_name = name.lower()
        if any(lower_name == forbidden.lower() for forbidden in policy.forbidden_names):
            errors.append(f'Username "{name}" is not allowed for security reasons')
        if lower_name in RESERVED_KEYWORDS:
            errors.append(f'Username "{name}" conflicts with PostgreSQL reserved keywords')

        if policy.require_prefix and not name.startswith(policy.require_prefix):
            errors.append(f'Username must start with "{policy.require_prefix}"')
        if policy.require_suffix and not name.endswith(policy.require_suffix):
            errors.append(f'Username must end with "{policy.require_suffix}"')

        if len(name) < 6:
            warnings.append("Username is quite short, consider using a longer name for better security")
        if not LETTER_RE.search(name):
            warnings.append("Username should contain at least one letter")
        if "_" in name and len(name.split("_")) > 3:
            warnings.append("Username has many underscores, consider simplifying")

        return ValidationResult(not errors, errors, warnings)

    def validate_password(self, password: Any, policy: Optional[PasswordPolicy] = None) -> ValidationResult:
        """
        Validate a password (or stored password hash) and score its strength.

        Args:
            password: Candidate password
            policy: Overrides the validator's password policy

        Returns:
            ValidationResult with ``score`` set
        """
        policy = policy or self.password_policy
        errors: List[str] = []
        warnings: List[str] = []

        if password is None or password == "":
            return ValidationResult(False, ["Password is required"], score=0)
        if not isinstance(password, str):
            return ValidationResult(False, ["Password must be a string"], score=0)

        if len(password) < policy.min_length:
            errors.append(f"Password must be at least {policy.min_length} characters long")
        if len(password) > policy.max_length:
            errors.append(f"Password must not exceed {policy.max_length} characters")

        if policy.require_uppercase and not UPPERCASE_RE.search(password):
            errors.append("Password must contain at least one uppercase letter")
        if policy.require_lowercase and not LOWERCASE_RE.search(password):
            errors.append("Password must contain at least one lowercase letter")
        if policy.require_numbers and not DIGIT_RE.search(password):
            errors.append("Password must contain at least one number")
        if policy.require_special_chars and not SPECIAL_RE.search(password):
            errors.append("Password must contain at least one special character")

        # Salt and digest characters are random, so substring rules only apply to plaintext
        if not is_bcrypt_hash(password):
            lower_password = password.lower()
            for pattern in policy.forbidden_patterns:
                if pattern.lower() in lower_password:
                    errors.append(f'Password must not contain "{pattern}"')

        if REPEATED_RUN_RE.search(password):
            warnings.append("Password contains repeated characters, consider more variation")
        if ONLY_LETTERS_RE.fullmatch(password):
            warnings.append(
                "Password contains only letters, consider adding numbers and special characters"
            )
        if ONLY_DIGITS_RE.fullmatch(password):
            errors.append("Password cannot contain only numbers")
        if REPEATED_WHOLE_RE.fullmatch(password):
            warnings.append("Password appears to have repeated patterns")
        if has_sequential_chars(password):
            warnings.append(
                "Password contains sequential characters (e.g., abc, 123), consider more randomness"
            )

        score = calculate_password_strength(password, policy.min_length)
        if score < policy.min_score:
            errors.append(
                f"Password strength is too low ({score}/100). Minimum required: {policy.min_score}"
            )

        return ValidationResult(not errors, errors, warnings, score)

    def validate_project_credentials(
        self,
        credentials: ProjectCredentials,
        username_policy: Optional[UsernamePolicy] = None,
        password_policy: Optional[PasswordPolicy] = None,
        require_complete: bool = True,
    ) -> DetailedValidationResult:
        """
        Validate a username/password-hash pair, including cross-field checks.

        Args:
            credentials: Credentials to validate
            username_policy: Overrides the validator's username policy
            password_policy: Overrides the validator's password policy
            require_complete: Require both fields to be present

        Returns:
            DetailedValidationResult
        """
        user = credentials.user
        password = credentials.password_hash

        user_validation = self.validate_username(user, username_policy)
        password_validation = self.validate_password(password, password_policy)
        overall_errors: List[str] = []

        if require_complete:
            if not user and not password:
                overall_errors.append("Both username and password are required for complete credentials")
            elif not user:
                overall_errors.append("Username is required for complete credentials")
            elif not password:
                overall_errors.append("Password is required for complete credentials")

        if user and password and are_credentials_too_similar(user, password):
            overall_errors.append("Password is too similar to username for security")

        is_valid = user_validation.is_valid and password_validation.is_valid and not overall_errors
        if not is_valid:
            logger.debug(f"[Credential Validation] Credentials for user {user!r} failed validation")

        return DetailedValidationResult(is_valid, user_validation, password_validation, overall_errors)


def validate_credential_format(user: Optional[str], password_hash: Optional[str]) -> ValidationResult:
    """
    Check that stored credentials are safe to hand to the database layer.

    Args:
        user: Stored username
        password_hash: Stored password hash

    Returns:
        ValidationResult (no score)
    """
    errors: List[str] = []
    warnings: List[str] = []

    if user:
        if any(pattern.search(user) for pattern in SQL_INJECTION_PATTERNS):
            errors.append("Username contains potentially dangerous SQL patterns")
        if CONTROL_CHARS_RE.search(user):
            errors.append("Username contains invalid control characters")
        if user != unicodedata.normalize("NFC", user):
            warnings.append("Username contains non-normalized Unicode characters")

    if password_hash:
        if len(password_hash) < MIN_HASH_LENGTH:
            errors.append("Password hash appears to be too short")
        if is_likely_plaintext(password_hash):
            errors.append("Password appears to be stored in plaintext, which is a security risk")
        if CONTROL_CHARS_RE.search(password_hash):
            errors.append("Password contains invalid control characters")

    return ValidationResult(not errors, errors, warnings)


def is_bcrypt_hash(value: str) -> bool:
    """True for a complete bcrypt hash such as '$2b$12$<22 salt chars><31 digest chars>'."""
    return BCRYPT_HASH_RE.fullmatch(value) is not None


def is_likely_plaintext(value: str) -> bool:
    if any(prefix.match(value) for prefix in PLAINTEXT_PREFIXES):
        return True
    if len(value) < MIN_PLAINTEXT_SAFE_LENGTH:
        return True
    # Hashes carry separators like "$" or "/"; purely alphanumeric text does not
    return not re.search(r"[^a-zA-Z0-9\s]", value)


__all__ = [
    "CredentialValidator",
    "PasswordPolicy",
    "UsernamePolicy",
    "are_credentials_too_similar",
    "calculate_password_strength",
    "has_sequential_chars",
    "is_bcrypt_hash",
    "is_likely_plaintext",
    "levenshtein_distance",
    "shannon_entropy",
    "validate_credential_format",
]
