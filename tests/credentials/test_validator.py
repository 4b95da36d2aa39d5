"""Tests for credential validation and validation reports."""

import logging

import pytest

from credforge.credentials.models import ProjectCredentials
from credforge.credentials.reporting import (generate_validation_error_report,
                                             log_validation_failure)
from credforge.credentials.validator import (CredentialValidator,
                                             PasswordPolicy, UsernamePolicy,
                                             are_credentials_too_similar,
                                             calculate_password_strength,
                                             has_sequential_chars,
                                             is_bcrypt_hash,
                                             is_likely_plaintext,
                                             levenshtein_distance,
                                             shannon_entropy,
                                             validate_credential_format)

STRONG_PASSWORD = "Xk9#mP2$vL7@qR4!"
BCRYPT_HASH = "$2b$12$" + "R9h/cIPz0gi.URNNX3kh2OPST9/PgBkqquzi.Ss7KIUgO2t0jWMUW"[:53]
# Random salt and digest characters that happen to spell "root"
ROOT_HASH = "$2b$04$5b6v/qBQr5bt4K2nDKYT5uAQERsP6qwSHqh9vJQROOTgH7mwBjyz."


@pytest.fixture
def validator():
    return CredentialValidator(PasswordPolicy(), UsernamePolicy())


class TestHelpers:
    """Tests for the scoring helpers."""

    @pytest.mark.parametrize(
        "a,b,distance",
        [("kitten", "sitting", 3), ("", "abc", 3), ("abc", "abc", 0), ("flaw", "lawn", 2)],
    )
    def test_levenshtein_distance(self, a, b, distance):
        """Test unit-cost edit distance."""
        assert levenshtein_distance(a, b) == distance
        assert levenshtein_distance(b, a) == distance

    def test_shannon_entropy(self):
        """Test bits per character."""
        assert shannon_entropy("") == 0.0
        assert shannon_entropy("aaaa") == 0.0
        assert shannon_entropy("aabb") == pytest.approx(1.0)
        assert shannon_entropy("abcd") == pytest.approx(2.0)

    @pytest.mark.parametrize(
        "value,expected",
        [("xyz", True), ("ABC", True), ("a789b", True), ("qwe", True), ("a1b2c3", False), ("QWE", False)],
    )
    def test_sequential_chars(self, value, expected):
        """Test the three-character sequence window."""
        assert has_sequential_chars(value) is expected

    def test_strength_of_strong_password(self):
        """Test a password that earns every component."""
        # length 20 + variety 40 + uniqueness 20 + entropy 15
        assert calculate_password_strength(STRONG_PASSWORD) == 95

    def test_strength_with_penalties(self):
        """Test a short repeated password."""
        assert calculate_password_strength("aaa") == 10

    def test_strength_empty(self):
        """Test that empty input scores zero."""
        assert calculate_password_strength("") == 0

    def test_strength_is_clamped(self):
        """Test the 0..100 range for very long input."""
        assert 0 <= calculate_password_strength(STRONG_PASSWORD * 8) <= 100

    @pytest.mark.parametrize(
        "user,password,expected",
        [
            ("proj_user", "proj_user123", True),
            ("abcdefghij", "abcdefghix", True),
            ("alice", "bob", False),
            ("proj_demo_user", STRONG_PASSWORD, False),
        ],
    )
    def test_credentials_too_similar(self, user, password, expected):
        """Test containment and edit-similarity checks."""
        assert are_credentials_too_similar(user, password) is expected


class TestValidateUsername:
    """Tests for CredentialValidator.validate_username."""

    def test_valid_username(self, validator):
        """Test a conventional generated username."""
        result = validator.validate_username("proj_demo_user")
        assert result.is_valid
        assert result.errors == []
        assert result.score is None

    def test_forbidden_name(self, validator):
        """Test a reserved system account name."""
        result = validator.validate_username("postgres")
        assert not result.is_valid
        assert 'Username "postgres" is not allowed for security reasons' in result.errors

    def test_forbidden_name_case_insensitive(self, validator):
        """Test that forbidden names match regardless of case."""
        assert not validator.validate_username("Admin").is_valid

    def test_reserved_keyword(self, validator):
        """Test SQL keyword rejection."""
        result = validator.validate_username("select")
        assert 'Username "select" conflicts with PostgreSQL reserved keywords' in result.errors

    @pytest.mark.parametrize(
        "value,message",
        [
            (None, "Username is required"),
            ("", "Username is required"),
            (123, "Username must be a string"),
            ("   ", "Username cannot be empty or only whitespace"),
        ],
    )
    def test_missing_or_wrong_type(self, validator, value, message):
        """Test inputs rejected before any rule runs."""
        result = validator.validate_username(value)
        assert not result.is_valid
        assert result.errors == [message]

    def test_length_limits(self, validator):
        """Test minimum and maximum length."""
        short = validator.validate_username("ab")
        assert "Username must be at least 3 characters long" in short.errors
        assert any("quite short" in warning for warning in short.warnings)

        long = validator.validate_username("a" * 64)
        assert "Username must not exceed 63 characters" in long.errors

    def test_invalid_characters(self, validator):
        """Test the identifier pattern."""
        result = validator.validate_username("1project")
        assert not result.is_valid
        assert result.errors[0].startswith("Username must start with a letter or underscore")

    def test_surrounding_whitespace_ignored(self, validator):
        """Test that the name is stripped before validation."""
        assert validator.validate_username("  proj_demo_user  ").is_valid

    def test_many_underscores_warning(self, validator):
        """Test the underscore warning."""
        result = validator.validate_username("proj_complete_project_user")
        assert result.is_valid
        assert "Username has many underscores, consider simplifying" in result.warnings

    def test_required_prefix_and_suffix(self, validator):
        """Test per-call policy affixes."""
        policy = UsernamePolicy(require_prefix="proj_", require_suffix="_user")
        result = validator.validate_username("tenant_db", policy)
        assert 'Username must start with "proj_"' in result.errors
        assert 'Username must end with "_user"' in result.errors


class TestValidatePassword:
    """Tests for CredentialValidator.validate_password."""

    def test_strong_password(self, validator):
        """Test a password that satisfies every rule."""
        result = validator.validate_password(STRONG_PASSWORD)
        assert result.is_valid
        assert result.errors == []
        assert result.score == 95

    def test_missing_uppercase(self, validator):
        """Test a password without capitals."""
        result = validator.validate_password("alllowercase123!")
        assert not result.is_valid
        assert "Password must contain at least one uppercase letter" in result.errors
        assert "Password contains repeated characters, consider more variation" in result.warnings

    @pytest.mark.parametrize(
        "value,message",
        [(None, "Password is required"), ("", "Password is required"), (12345, "Password must be a string")],
    )
    def test_missing_or_wrong_type(self, validator, value, message):
        """Test inputs rejected with a zero score."""
        result = validator.validate_password(value)
        assert result.errors == [message]
        assert result.score == 0

    def test_hash_not_checked_for_forbidden_substrings(self, validator):
        """Test that a bcrypt hash spelling a forbidden word is still valid."""
        result = validator.validate_password(ROOT_HASH)
        assert result.is_valid
        assert not any("must not contain" in error for error in result.errors)

        plaintext = validator.validate_password("MyRootPass#2024xyz")
        assert 'Password must not contain "root"' in plaintext.errors

    @pytest.mark.parametrize(
        "value,expected",
        [(ROOT_HASH, True), (BCRYPT_HASH, True), ("$2b$12$tooshort", False), ("Xk9#mP2$vL7@qR4!", False)],
    )
    def test_is_bcrypt_hash(self, value, expected):
        """Test bcrypt hash recognition."""
        assert is_bcrypt_hash(value) is expected

    def test_forbidden_pattern(self, validator):
        """Test a forbidden substring."""
        result = validator.validate_password("MyPassword#2024xyz")
        assert 'Password must not contain "password"' in result.errors

    def test_only_numbers(self, validator):
        """Test digit-only passwords."""
        result = validator.validate_password("987654321098")
        assert "Password cannot contain only numbers" in result.errors

    def test_too_short(self, validator):
        """Test the minimum length rule."""
        result = validator.validate_password("Ab1!")
        assert "Password must be at least 12 characters long" in result.errors

    def test_low_strength_reported(self, validator):
        """Test the strength error format."""
        result = validator.validate_password("Ab1!", PasswordPolicy(min_length=4, min_score=99))
        assert any(
            error.startswith("Password strength is too low (") and error.endswith("Minimum required: 99")
            for error in result.errors
        )

    def test_relaxed_policy(self, validator):
        """Test per-call policy overrides."""
        policy = PasswordPolicy(require_special_chars=False, require_uppercase=False, min_score=0)
        assert validator.validate_password("lowercaseonly9", policy).is_valid


class TestValidateProjectCredentials:
    """Tests for CredentialValidator.validate_project_credentials."""

    def test_valid_pair(self, validator):
        """Test a complete, valid pair."""
        result = validator.validate_project_credentials(ProjectCredentials("proj_demo_user", STRONG_PASSWORD))
        assert result.is_valid
        assert result.all_errors == []

    @pytest.mark.parametrize(
        "credentials,message",
        [
            (ProjectCredentials(), "Both username and password are required for complete credentials"),
            (ProjectCredentials(user="proj_demo_user"), "Password is required for complete credentials"),
            (ProjectCredentials(password_hash=STRONG_PASSWORD), "Username is required for complete credentials"),
        ],
    )
    def test_completeness(self, validator, credentials, message):
        """Test the completeness messages."""
        result = validator.validate_project_credentials(credentials)
        assert not result.is_valid
        assert result.overall_errors == [message]

    def test_completeness_not_required(self, validator):
        """Test that require_complete=False skips the completeness messages."""
        result = validator.validate_project_credentials(ProjectCredentials(), require_complete=False)
        assert result.overall_errors == []
        assert not result.is_valid

    def test_generated_hash_with_forbidden_word_is_valid(self, validator):
        """Test a complete pair whose hash contains a forbidden substring."""
        result = validator.validate_project_credentials(ProjectCredentials("proj_abc_user", ROOT_HASH))
        assert result.is_valid
        assert result.all_errors == []

    def test_too_similar(self, validator):
        """Test the cross-field similarity check."""
        result = validator.validate_project_credentials(
            ProjectCredentials("proj_demo_user", "Proj_demo_user#9X")
        )
        assert "Password is too similar to username for security" in result.overall_errors

    def test_all_errors_order(self, validator):
        """Test that all_errors lists username, password and overall errors."""
        result = validator.validate_project_credentials(ProjectCredentials("postgres", None))
        assert result.all_errors[0] == 'Username "postgres" is not allowed for security reasons'
        assert result.all_errors[-1] == "Password is required for complete credentials"


class TestCredentialFormat:
    """Tests for validate_credential_format."""

    def test_hash_passes(self):
        """Test a bcrypt-style hash and a plain username."""
        result = validate_credential_format("proj_demo_user", BCRYPT_HASH)
        assert result.is_valid
        assert result.warnings == []

    @pytest.mark.parametrize("user", ["bob; drop table", "x' or '1'='1", "name--", "a /* b"])
    def test_sql_patterns(self, user):
        """Test injection markers in usernames."""
        result = validate_credential_format(user, None)
        assert "Username contains potentially dangerous SQL patterns" in result.errors

    def test_word_boundaries(self):
        """Test that keywords inside words are not flagged."""
        assert validate_credential_format("robert_updates", None).is_valid

    def test_control_characters(self):
        """Test control characters in either field."""
        result = validate_credential_format("a\x01b", BCRYPT_HASH + "\x7f")
        assert "Username contains invalid control characters" in result.errors
        assert "Password contains invalid control characters" in result.errors

    def test_non_normalized_unicode_warning(self):
        """Test the NFC warning."""
        result = validate_credential_format("jose\u0301", None)
        assert result.is_valid
        assert result.warnings == ["Username contains non-normalized Unicode characters"]

    def test_plaintext_detected(self):
        """Test plaintext-looking stored passwords."""
        result = validate_credential_format("proj_demo_user", "short")
        assert "Password hash appears to be too short" in result.errors
        assert "Password appears to be stored in plaintext, which is a security risk" in result.errors

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("password-with-separators!", True),
            ("123-with-separators-and-more", True),
            ("abcdefghijklmnopqrstuvwxyz", True),
            ("tooShort$", True),
            (BCRYPT_HASH, False),
        ],
    )
    def test_is_likely_plaintext(self, value, expected):
        """Test the plaintext heuristics."""
        assert is_likely_plaintext(value) is expected


class TestValidationReport:
    """Tests for the validation report and its logging."""

    @pytest.fixture
    def failed_result(self, validator):
        return validator.validate_project_credentials(ProjectCredentials("postgres", "alllowercase123!"))

    def test_report_format(self, failed_result):
        """Test the report layout."""
        report = generate_validation_error_report(
            failed_result, "proj-1", "credential migration", timestamp="2024-01-01T00:00:00+00:00"
        )
        lines = report.split("\n")

        assert lines[0] == "=== Credential Validation Error Report ==="
        assert lines[1] == "Timestamp: 2024-01-01T00:00:00+00:00"
        assert lines[2] == "Project: proj-1"
        assert lines[3] == "Operation: credential migration"
        assert lines[4] == "Overall Status: INVALID"
        assert "Username Validation:" in lines
        assert '    - Username "postgres" is not allowed for security reasons' in lines
        assert "Password Validation:" in lines
        assert any(line.startswith("  Strength Score: ") for line in lines)
        assert "    - Password must contain at least one uppercase letter" in lines
        assert lines[-1] == "=== End Report ==="

    def test_report_without_project(self, failed_result):
        """Test that the project line is omitted when unknown."""
        report = generate_validation_error_report(failed_result)
        assert "Project:" not in report
        assert "Operation: credential validation" in report

    def test_log_validation_failure(self, failed_result, caplog):
        """Test that invalid results are logged at ERROR."""
        with caplog.at_level(logging.ERROR, logger="credforge"):
            log_validation_failure(failed_result, "proj-1", "credential migration")

        assert len(caplog.records) == 1
        assert caplog.records[0].levelno == logging.ERROR
        assert "[Credential Validation] Failure for proj-1" in caplog.text
        assert "=== End Report ===" in caplog.text

    def test_valid_result_not_logged(self, validator, caplog):
        """Test that valid results produce no log record."""
        result = validator.validate_project_credentials(ProjectCredentials("proj_demo_user", STRONG_PASSWORD))
        with caplog.at_level(logging.ERROR, logger="credforge"):
            log_validation_failure(result, "proj-1")
        assert caplog.records == []
