"""
Layer 3 – 数据处理层
将两个数据源的代币列表按地址（小写）去重合并，并负责缓存所用的 JSON 序列化。
"""

import logging
from typing import Dict, Iterable, List

from pydantic import TypeAdapter

from token_service.models.token import TokenRecord

logger = logging.getLogger(__name__)

_TOKEN_LIST = TypeAdapter(List[TokenRecord])

_TEXT_FIELDS = ("token_name", "token_ticker", "protocol")
_NUMERIC_FIELDS = (
    "price_sol",
    "market_cap_sol",
    "volume_sol",
    "liquidity_sol",
    "transaction_count",
    "price_1hr_change",
)


def merge_tokens(
    primary: Iterable[TokenRecord],
    secondary: Iterable[TokenRecord],
    enrich: bool = False,
) -> List[TokenRecord]:
    """
    合并主 / 补充数据源

    - 以小写地址为键，空地址记录直接丢弃
    - 主数据源内部重复：后出现的覆盖先出现的
    - 地址已由主数据源提供时整条丢弃补充记录（主数据源优先）
    - 补充数据源中的新地址按顺序追加，其内部重复同样后者覆盖前者
    - 返回顺序：主数据源在前，补充数据源新增在后

    Args:
        enrich: 为 True 时，冲突记录中主数据源的空字符串 / 0 值字段
                由补充数据源对应字段填充
    """
    merged: Dict[str, TokenRecord] = {}

    for token in primary:
        address = token.normalized_address
        if address:
            merged[address] = token

    from_primary = set(merged)
    for token in secondary:
        address = token.normalized_address
        if not address:
            continue
        if address in from_primary:
            logger.debug(f"代币 {token.token_ticker or address} 两个数据源均存在，保留主数据源记录")
            if enrich:
                merged[address] = enrich_token(merged[address], token)
            continue
        merged[address] = token

    return list(merged.values())


def enrich_token(base: TokenRecord, extra: TokenRecord) -> TokenRecord:
    """用 extra 填充 base 中为空 / 为 0 的字段，base 的非空值保持不变"""
    update = {}
    for name in _TEXT_FIELDS:
        if not getattr(base, name) and getattr(extra, name):
            update[name] = getattr(extra, name)
    for name in _NUMERIC_FIELDS:
        if getattr(base, name) == 0 and getattr(extra, name) != 0:
            update[name] = getattr(extra, name)
    return base.model_copy(update=update) if update else base


def serialize_tokens(tokens: List[TokenRecord]) -> str:
    return _TOKEN_LIST.dump_json(tokens).decode("utf-8")


def deserialize_tokens(blob: str) -> List[TokenRecord]:
    return _TOKEN_LIST.validate_json(blob)
