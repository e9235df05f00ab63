"""
Layer 1 – 数据获取层
从 DexScreener（主数据源，字段完整）与 Jupiter（补充数据源，仅基础信息）
拉取原始代币数据，逐字段映射为统一的 TokenRecord。

适配器对调用方永不抛异常：任何网络错误、非 2xx 状态码、响应结构异常
都在内部捕获，记录日志后返回空列表。
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import httpx
from pydantic import ValidationError

from token_service.config import settings
from token_service.models.token import TokenRecord, to_float

logger = logging.getLogger(__name__)

JUPITER_PROTOCOL = "Jupiter"


@dataclass
class FetchResult:
    """单次拉取结果：成功时携带记录，失败时携带原因"""
    ok: bool
    records: List[TokenRecord] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def success(cls, records: List[TokenRecord]) -> "FetchResult":
        return cls(ok=True, records=records)

    @classmethod
    def failure(cls, error: str) -> "FetchResult":
        return cls(ok=False, error=error)


def _first(*values: Any) -> Any:
    """返回第一个非 None 的值"""
    for value in values:
        if value is not None:
            return value
    return None


def _get(obj: Any, *path: str) -> Any:
    """沿嵌套字典路径取值，任一层缺失返回 None"""
    for key in path:
        if not isinstance(obj, Mapping):
            return None
        obj = obj.get(key)
    return obj


class SourceAdapter:
    """上游数据源适配器基类：一次 GET，映射为 TokenRecord 列表"""

    name: str = "source"

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url
        self._timeout = timeout if timeout is not None else settings.UPSTREAM_TIMEOUT
        self._user_agent = user_agent or settings.UPSTREAM_USER_AGENT
        self._transport = transport

    async def fetch(self, query: str) -> List[TokenRecord]:
        """拉取并映射；失败时返回空列表"""
        result = await self.fetch_result(query)
        if not result.ok:
            logger.warning(f"{self.name} 数据获取失败（query={query}）: {result.error}")
            return []
        return result.records

    async def fetch_result(self, query: str) -> FetchResult:
        try:
            payload = await self._get_json(query)
            records = self.parse(payload)
        except httpx.HTTPStatusError as exc:
            return FetchResult.failure(f"HTTP {exc.response.status_code}")
        except httpx.HTTPError as exc:
            return FetchResult.failure(f"{type(exc).__name__}: {exc}")
        except (ValueError, TypeError, ValidationError) as exc:
            # json 解码错误与字段校验错误均归为响应结构异常
            return FetchResult.failure(f"响应结构异常: {exc}")
        except Exception as exc:
            # 例如嵌套过深的 JSON 触发 RecursionError
            return FetchResult.failure(f"{type(exc).__name__}: {exc}")
        logger.info(f"{self.name} 返回 {len(records)} 条代币（query={query}）")
        return FetchResult.success(records)

    async def _get_json(self, query: str) -> Any:
        async with httpx.AsyncClient(
            timeout=self._timeout,
            headers={"User-Agent": self._user_agent},
            transport=self._transport,
        ) as client:
            response = await client.get(self._base_url, params=self.build_params(query))
            logger.debug(f"{self.name} 响应状态: {response.status_code}")
            response.raise_for_status()
            return response.json()

    def build_params(self, query: str) -> Dict[str, str]:
        raise NotImplementedError

    def parse(self, payload: Any) -> List[TokenRecord]:
        raise NotImplementedError


class DexScreenerAdapter(SourceAdapter):
    """DexScreener 交易对搜索：价格、市值、成交量、流动性、交易笔数齐全"""

    name = "DexScreener"

    def __init__(self, base_url: Optional[str] = None, **kwargs):
        root = (base_url or settings.DEXSCREENER_API).rstrip("/")
        super().__init__(f"{root}/search", **kwargs)

    def build_params(self, query: str) -> Dict[str, str]:
        return {"q": query}

    def parse(self, payload: Any) -> List[TokenRecord]:
        if not isinstance(payload, Mapping):
            raise ValueError(f"期望 JSON 对象，实际为 {type(payload).__name__}")
        pairs = payload.get("pairs")
        if pairs is None:
            return []
        if not isinstance(pairs, list):
            raise ValueError("pairs 字段不是数组")
        return [self._map_pair(pair) for pair in pairs if isinstance(pair, Mapping)]

    @staticmethod
    def _map_pair(pair: Mapping[str, Any]) -> TokenRecord:
        base = _first(pair.get("baseToken"), pair.get("base_token")) or {}
        buys = _get(pair, "txns", "h24", "buys") or 0
        sells = _get(pair, "txns", "h24", "sells") or 0
        return TokenRecord(
            token_address=_get(base, "address"),
            token_name=_get(base, "name"),
            token_ticker=_get(base, "symbol"),
            price_sol=_first(pair.get("priceNative"), pair.get("price_native")),
            market_cap_sol=_first(pair.get("fdv"), pair.get("marketCap")),
            volume_sol=_get(pair, "volume", "h24"),
            liquidity_sol=_get(pair, "liquidity", "usd"),
            transaction_count=to_float(buys) + to_float(sells),
            price_1hr_change=_get(pair, "priceChange", "h1"),
            protocol=_first(pair.get("dexId"), pair.get("dex_id")),
        )


class JupiterAdapter(SourceAdapter):
    """Jupiter 代币搜索：只提供地址、名称、符号"""

    name = JUPITER_PROTOCOL

    def __init__(self, base_url: Optional[str] = None, **kwargs):
        super().__init__(base_url or settings.JUPITER_API, **kwargs)

    def build_params(self, query: str) -> Dict[str, str]:
        return {"query": query}

    def parse(self, payload: Any) -> List[TokenRecord]:
        if not isinstance(payload, list):
            raise ValueError(f"期望 JSON 数组，实际为 {type(payload).__name__}")
        return [
            TokenRecord(
                token_address=_first(token.get("address"), token.get("id"), token.get("mint")),
                token_name=token.get("name"),
                token_ticker=token.get("symbol"),
                protocol=JUPITER_PROTOCOL,
            )
            for token in payload
            if isinstance(token, Mapping)
        ]
