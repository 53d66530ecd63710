"""
Tests for the domain error to API error mapping.
"""

from newsletter_delivery.api.shared import ErrorCode, from_domain_error, is_client_error
from newsletter_delivery.core import errors


class TestFromDomainError:

    def test_invalid_content_is_400_with_details(self):
        exc = errors.InvalidContentError(
            "Invalid newsletter content",
            details=[{"field": "title", "message": "Title must not be empty", "code": "empty"}],
        )

        api_exc = from_domain_error(exc)

        assert api_exc.status_code == 400
        assert api_exc.code == ErrorCode.VALIDATION_ERROR
        assert api_exc.details[0].field == "title"

    def test_idempotency_conflict_is_409(self):
        api_exc = from_domain_error(errors.IdempotencyConflictError("pub-1", "key-1"))

        assert api_exc.status_code == 409
        assert api_exc.code == ErrorCode.IDEMPOTENCY_CONFLICT
        assert "key-1" in api_exc.message

    def test_storage_error_is_503(self):
        api_exc = from_domain_error(errors.StorageError("database is locked"))

        assert api_exc.status_code == 503
        assert api_exc.code == ErrorCode.STORAGE_UNAVAILABLE
        # Driver detail is not leaked to callers
        assert "locked" not in api_exc.message

    def test_unique_violation_is_storage_error(self):
        assert from_domain_error(errors.UniqueViolation("dup")).status_code == 503

    def test_unknown_domain_error_is_500(self):
        api_exc = from_domain_error(errors.NewsletterError("?"))

        assert api_exc.status_code == 500
        assert not is_client_error(api_exc.code)


class TestErrorCodes:

    def test_every_code_has_a_status(self):
        from newsletter_delivery.api.shared.error_codes import ERROR_STATUS_CODES

        assert set(ERROR_STATUS_CODES) == set(ErrorCode)

    def test_codes_are_the_ones_the_api_raises(self):
        assert {code.value for code in ErrorCode} == {
            "VALIDATION_ERROR",
            "UNAUTHORIZED",
            "CONFLICT",
            "IDEMPOTENCY_CONFLICT",
            "INTERNAL_ERROR",
            "STORAGE_UNAVAILABLE",
        }
