"""
Pairing sync error taxonomy.

Every failure of an export or import surfaces to the user as exactly one of
these. Each carries the HTTP status the code store answers with, so the
server maps errors to responses and the client maps responses back to
errors through the same table.
"""

from typing import Optional


class PairingError(Exception):
    """Base exception for pairing-code sync."""

    http_status: int = 500
    default_message: str = "동기화 중 오류가 발생했습니다."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequestError(PairingError):
    """Missing payload, missing code, or a password that is too short."""
    http_status = 400
    default_message = "잘못된 요청입니다."


class CodeNotFoundError(PairingError):
    """No snapshot is parked under this code."""
    http_status = 404
    default_message = "유효하지 않은 코드입니다."


class CodeAlreadyUsedError(PairingError):
    """The code was already redeemed once."""
    http_status = 409
    default_message = "이미 사용된 코드입니다."


class CodeExpiredError(PairingError):
    """The code is older than the redemption window."""
    http_status = 410
    default_message = "코드가 만료되었습니다."


class SyncFailedError(PairingError):
    """
    Generic failure.

    CRITICAL: Used for a wrong password and for a corrupt payload alike;
    the message never tells the two apart.
    """
    http_status = 502
    default_message = "동기화에 실패했습니다. 코드와 비밀번호를 확인해주세요."


ERRORS_BY_STATUS: dict[int, type[PairingError]] = {
    BadRequestError.http_status: BadRequestError,
    CodeNotFoundError.http_status: CodeNotFoundError,
    CodeAlreadyUsedError.http_status: CodeAlreadyUsedError,
    CodeExpiredError.http_status: CodeExpiredError,
}


def error_for_status(status_code: int, message: Optional[str] = None) -> PairingError:
    """Map a code-store HTTP status back to the taxonomy."""
    error_class = ERRORS_BY_STATUS.get(status_code, SyncFailedError)
    return error_class(message)
