"""
Ledger 예외 계층

저장소/도메인 계층에서 발생하는 오류를 호출자(HTTP 계층 등)가
구분해서 처리할 수 있도록 정의.

- NotFoundError: 엔티티 없음 또는 소유자 불일치 (의도적으로 구분하지 않음)
- ValidationError: 입력 검증 실패
- ConflictError: UNIQUE 제약 충돌
- ReferentialIntegrityError: 참조 중인 행 삭제 시도
- StorageUnavailable: 연결 끊김, 잠금 타임아웃 등 일시적 저장소 장애
"""

from typing import Any


class LedgerError(Exception):
    """Ledger 예외 기본 클래스"""

    pass


class NotFoundError(LedgerError):
    """엔티티를 찾을 수 없음

    Args:
        entity: 엔티티 종류 (예: "transaction")
        key: 조회 키
    """

    def __init__(self, entity: str, key: Any):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}")


class ValidationError(LedgerError):
    """입력 검증 실패

    Args:
        message: 오류 메시지
        errors: 필드별 오류 메시지
    """

    def __init__(self, message: str, errors: dict[str, str] | None = None):
        self.errors = errors or {}
        super().__init__(message)


class UnknownCurrencyError(NotFoundError, ValidationError):
    """카탈로그에 없는 통화 코드

    조회 관점에서는 NotFoundError, 쓰기 입력 관점에서는 ValidationError.
    """

    def __init__(self, code: str):
        self.entity = "currency"
        self.key = code
        self.code = code
        self.errors = {"currency": f"Unknown currency: {code}"}
        LedgerError.__init__(self, f"currency not found: {code}")


class ConflictError(LedgerError):
    """UNIQUE 제약 충돌"""

    pass


class ReferentialIntegrityError(LedgerError):
    """다른 행이 참조 중인 행의 삭제/변경 시도"""

    pass


class StorageUnavailable(LedgerError):
    """일시적 저장소 장애

    호출자가 요청 단위로 재시도할 것을 기대함.
    """

    pass
