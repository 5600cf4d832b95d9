"""
Linkup Backend - Validator/Sanitiser Unit Tests
=================================================

What we test:
    ✅ required / optional / blank handling
    ✅ length bounds measured on the trimmed value, both bounds reported
    ✅ pattern checks (name, email)
    ✅ sanitisation rewrites the payload in place
    ✅ errors are collected across fields, not fail-fast
"""

from linkup.api.validation import (
    COMMENT_SCHEMA,
    POST_SCHEMA,
    USER_REGISTRATION_SCHEMA,
    FieldRules,
    sanitize_html,
    validate,
)


class TestSanitizeHtml:
    def test_removes_script_blocks_with_content(self):
        assert sanitize_html("hi<script>alert('x')</script> there") == "hi there"

    def test_script_blocks_are_case_insensitive(self):
        assert sanitize_html("<SCRIPT type='text/javascript'>evil()</SCRIPT>ok") == "ok"

    def test_strips_tags_but_keeps_text(self):
        assert sanitize_html("<b>bold</b> and <i>italic</i>") == "bold and italic"

    def test_strips_unterminated_tag(self):
        assert sanitize_html("hello <img src=x onerror=alert(1)") == "hello"

    def test_removes_javascript_scheme(self):
        assert sanitize_html("click JavaScript:alert(1)") == "click alert(1)"

    def test_trims(self):
        assert sanitize_html("   padded   ") == "padded"


class TestRequiredFields:
    def test_missing_required_field(self):
        result = validate({}, POST_SCHEMA)
        assert not result.valid
        assert result.errors == ["content is required"]

    def test_whitespace_only_counts_as_missing(self):
        result = validate({"content": "   \n\t "}, POST_SCHEMA)
        assert result.errors == ["content is required"]

    def test_required_error_skips_other_checks(self):
        schema = {"code": FieldRules(required=True, min_length=3, pattern=None)}
        result = validate({"code": ""}, schema)
        assert result.errors == ["code is required"]

    def test_optional_missing_field_is_skipped(self):
        payload = {"name": "Ada Lovelace", "email": "ada@example.com", "password": "secret123"}
        result = validate(payload, USER_REGISTRATION_SCHEMA)
        assert result.valid
        assert result.errors == []


class TestLengthBounds:
    def test_post_at_max_length_passes(self):
        result = validate({"content": "a" * 1000}, POST_SCHEMA)
        assert result.valid

    def test_post_over_max_length_fails(self):
        result = validate({"content": "a" * 1001}, POST_SCHEMA)
        assert result.errors == ["content cannot exceed 1000 characters"]

    def test_length_is_measured_after_trim(self):
        result = validate({"content": "  " + "a" * 1000 + "  "}, POST_SCHEMA)
        assert result.valid

    def test_comment_over_500_fails(self):
        result = validate({"content": "c" * 501}, COMMENT_SCHEMA)
        assert result.errors == ["content cannot exceed 500 characters"]

    def test_min_and_pattern_both_reported(self):
        result = validate(
            {"name": "A", "email": "ada@example.com", "password": "secret123"},
            USER_REGISTRATION_SCHEMA,
        )
        assert result.errors == ["name must be at least 2 characters long"]

        result = validate(
            {"name": "1", "email": "ada@example.com", "password": "secret123"},
            USER_REGISTRATION_SCHEMA,
        )
        assert result.errors == [
            "name must be at least 2 characters long",
            "name format is invalid",
        ]

    def test_min_and_max_can_both_fire(self):
        schema = {"odd": FieldRules(min_length=10, max_length=5)}
        result = validate({"odd": "abcdefg"}, schema)
        assert result.errors == [
            "odd must be at least 10 characters long",
            "odd cannot exceed 5 characters",
        ]


class TestPatterns:
    def test_invalid_email(self):
        result = validate(
            {"name": "Ada", "email": "not-an-email", "password": "secret123"},
            USER_REGISTRATION_SCHEMA,
        )
        assert result.errors == ["email format is invalid"]

    def test_name_rejects_digits(self):
        result = validate(
            {"name": "Ada 2", "email": "ada@example.com", "password": "secret123"},
            USER_REGISTRATION_SCHEMA,
        )
        assert result.errors == ["name format is invalid"]


class TestCollectsAllErrors:
    def test_every_failing_field_is_reported(self):
        result = validate({"name": "", "email": "bad", "password": "123"}, USER_REGISTRATION_SCHEMA)
        assert not result.valid
        assert result.errors == [
            "name is required",
            "email format is invalid",
            "password must be at least 6 characters long",
        ]

    def test_non_string_value(self):
        result = validate({"content": 42}, POST_SCHEMA)
        assert result.errors == ["content must be a string"]


class TestSanitizeInPlace:
    def test_sanitised_value_is_written_back(self):
        payload = {"content": "  <p>Hello <script>x()</script>world</p>  "}
        result = validate(payload, POST_SCHEMA)
        assert result.valid
        assert payload["content"] == "Hello world"

    def test_unsanitised_fields_untouched(self):
        payload = {"name": "Ada Lovelace", "email": "ada@example.com", "password": " <pw> "}
        validate(payload, USER_REGISTRATION_SCHEMA)
        assert payload["password"] == " <pw> "
