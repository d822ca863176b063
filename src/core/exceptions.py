"""Custom exception hierarchy for the portfolio-construction engine.

이 모듈은 엔진 전반에서 사용하는 도메인 예외 계층을 정의합니다.
예외는 처리 방식에 따라 분류됩니다.

Exception Categories:
    - Fail Fast: 잘못된 전략/포트폴리오 구성 (ConfigurationError)
    - Log and Skip: 입력 데이터 검증 실패 (DataValidationError)
    - Contained: 최적화 내부 실패 (OptimizationError, optimizer 경계 밖으로 전파 금지)

Host collaborator(포지션/주문/시계열 제공자)에서 발생한 예외는
이 계층으로 감싸지 않고 그대로 전파됩니다.

Rules Applied:
    - #23 Exception Handling: Domain-driven hierarchy, add_note()
"""


class EngineError(Exception):
    """모든 엔진 관련 예외의 기본 클래스.

    이 예외를 직접 발생시키지 말고, 하위 클래스를 사용하세요.

    Attributes:
        message: 에러 메시지
        context: 추가 컨텍스트 정보 (디버깅용)
    """

    def __init__(self, message: str, *, context: dict[str, object] | None = None) -> None:
        """EngineError 초기화.

        Args:
            message: 에러 메시지
            context: 추가 컨텍스트 정보 (선택)
        """
        super().__init__(message)
        self.message = message
        self.context: dict[str, object] = context or {}

    def __str__(self) -> str:
        """에러 메시지와 컨텍스트를 포함한 문자열 반환."""
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message


# =============================================================================
# Configuration Errors (Unrecoverable - Fail Fast)
# =============================================================================


class ConfigurationError(EngineError):
    """전략/포트폴리오 구성 오류.

    잘못된 카테고리의 instrument 위에 전략을 생성하는 등,
    재시도로 해결되지 않는 구성 문제입니다. 즉시 표면화해야 합니다.

    Example:
        >>> raise ConfigurationError(
        ...     "Instrument not a Strategy",
        ...     context={"instrument": "SPY", "category": "etf"}
        ... )
    """


class ScenarioError(ConfigurationError):
    """YAML 시나리오 파일의 구조적 오류 (참조 누락 등)."""


# =============================================================================
# Data Validation Errors (Unrecoverable - Log and Skip)
# =============================================================================


class DataValidationError(EngineError):
    """데이터 검증 오류 (정렬되지 않은 시계열, 음수 가격 등).

    Example:
        >>> raise DataValidationError(
        ...     "Series index must be sorted",
        ...     context={"instrument": "ES1"}
        ... )
    """


# =============================================================================
# Optimization Errors (Contained)
# =============================================================================


class OptimizationError(EngineError):
    """최적화 내부 실패.

    optimizer 내부에서만 발생시키며, optimizer 경계에서 항상 포착되어
    로그로 남고 균등 가중치로 대체됩니다.
    """


# =============================================================================
# Utility Functions
# =============================================================================


def add_context_note(exc: Exception, note: str) -> None:
    """예외에 컨텍스트 노트 추가 (Python 3.11+ add_note).

    원본 Traceback을 보존하면서 디버깅 정보를 추가합니다.

    Args:
        exc: 예외 객체
        note: 추가할 노트 문자열

    Example:
        >>> try:
        ...     portfolio.aggregated_position_orders(date)
        ... except Exception as e:
        ...     add_context_note(e, f"Failed while valuing {strategy_id}")
        ...     raise
    """
    exc.add_note(note)
