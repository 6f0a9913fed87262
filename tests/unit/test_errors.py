from core.errors import (
    USER_MESSAGES,
    AccountLockedError,
    AuthenticationError,
    ConcurrentModificationError,
    ConflictError,
    ErrorCode,
    InvalidAmountError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    TripbookError,
    ValidationError,
)


def test_all_error_codes_have_user_message():
    for code in ErrorCode:
        assert code in USER_MESSAGES


def test_user_message_lookup():
    err = TripbookError("boto3 exploded", code=ErrorCode.INTERNAL_ERROR)
    assert err.user_message == "An unexpected error occurred. Please try again."


def test_status_codes():
    assert ValidationError("bad").status_code == 400
    assert AuthenticationError("no").status_code == 401
    assert PermissionDeniedError("no").status_code == 403
    assert NotFoundError("gone").status_code == 404
    assert ConflictError("dup").status_code == 409
    assert ConcurrentModificationError("race").status_code == 409
    assert AccountLockedError("locked").status_code == 423
    assert RateLimitError("slow down", retry_after=900).status_code == 429
    assert InvalidStateError("nope").status_code == 400
    assert InvalidAmountError("too much").status_code == 400


def test_default_codes():
    assert ConcurrentModificationError("race").code == ErrorCode.CONCURRENT_MODIFICATION
    assert isinstance(ConcurrentModificationError("race"), ConflictError)
    assert InvalidAmountError("x").code == ErrorCode.INVALID_AMOUNT


def test_extra_fields():
    assert RateLimitError("slow down", retry_after=900).extra() == {"retryAfter": 900}
    assert ValidationError("bad", errors=[{"field": "email", "message": "invalid"}]).extra() == {
        "errors": [{"field": "email", "message": "invalid"}]
    }
    assert ValidationError("bad").extra() == {}
    assert PermissionDeniedError("verify", code=ErrorCode.EMAIL_NOT_VERIFIED).extra() == {
        "requiresEmailVerification": True
    }
    assert PermissionDeniedError("no").extra() == {}


def test_user_message_never_exposes_internal_message():
    internal = "ConditionalCheckFailedException on TripbookPayments"
    err = TripbookError(internal, code=ErrorCode.INTERNAL_ERROR)
    assert internal not in err.user_message
