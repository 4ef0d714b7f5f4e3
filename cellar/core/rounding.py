from decimal import Decimal, ROUND_HALF_UP


def round_half_up(value: float, digits: int = 0) -> float:
    """四舍五入 (.5 向上取整)，内置 round() 是银行家舍入，展示用百分比不能用它"""
    # 走 str 避免二进制浮点误差 (如 1.005)
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def percentage(part: float, whole: float) -> int:
    """整数百分比，分母 <= 0 时返回 0 而不是抛异常"""
    if not whole or whole <= 0:
        return 0
    return int(round_half_up(part / whole * 100))
