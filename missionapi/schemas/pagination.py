# 엔드포인트별 페이지네이션 제한
class PaginationLimits:
    LEDGER_HISTORY = {"min": 1, "max": 100, "default": 50}
    PARTICIPATIONS = {"min": 1, "max": 100, "default": 20}
    PAYOUTS = {"min": 1, "max": 100, "default": 20}
