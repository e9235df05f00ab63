"""
统一代币记录模型
字段名即对外 JSON 字段名，是与前端约定的兼容性契约
"""

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator


def to_float(value: Any) -> float:
    """上游数值可能为 None / 字符串 / NaN / 超大整数，统一转为 float，无法解析时取 0"""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


class TokenRecord(BaseModel):
    """单个代币的聚合记录（不可变）"""

    model_config = ConfigDict(frozen=True)

    token_address: str = ""
    token_name: str = ""
    token_ticker: str = ""
    price_sol: float = 0.0
    market_cap_sol: float = 0.0
    volume_sol: float = 0.0
    liquidity_sol: float = 0.0
    transaction_count: int = 0
    price_1hr_change: float = 0.0
    protocol: str = ""

    @field_validator("token_address", "token_name", "token_ticker", "protocol", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @field_validator(
        "price_sol", "market_cap_sol", "volume_sol", "liquidity_sol", "price_1hr_change",
        mode="before",
    )
    @classmethod
    def _coerce_float(cls, value: Any) -> float:
        return to_float(value)

    @field_validator("transaction_count", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        return max(0, int(to_float(value)))

    @property
    def normalized_address(self) -> str:
        """去重用的身份键：小写地址"""
        return self.token_address.lower()
