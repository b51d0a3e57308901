"""
엔진 계층 공통 오류 분류

엔진 내부에서는 예외로 던져 트랜잭션을 롤백시키고,
공개 메서드 경계에서 ``Err`` 로 감싸 호출자에게 돌려준다.
"""

class ServiceError(Exception):
    kind = "service_error"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.reason!r})"

class ValidationError(ServiceError):
    """잘못된 입력 (지갑 주소 형식, 0 이하 수량 등)"""
    kind = "validation"

class NotFoundError(ServiceError):
    kind = "not_found"

class ConflictError(ServiceError):
    """잔액/보유 수량 부족, 이미 보유된 NFT, 중복 토큰 ID"""
    kind = "conflict"

class ExternalUnavailable(ServiceError):
    kind = "external_unavailable"

class TransactionIntegrityError(ServiceError):
    """커밋 시점 동시 수정/제약 위반 (1회 재시도 후에도 실패)"""
    kind = "transaction_integrity"
