"""
代币聚合服务单元测试（纯逻辑部分）

覆盖范围：
  - 配置模块（服务发现、环境变量解析）
  - TokenRecord 模型（空值兜底、不可变）
  - 处理层（去重合并、主数据源优先、序列化）
  - 缓存层（Redis 正常 / 不可用 / 报错）
  - 缓存键生成逻辑
  - API 响应模型
"""

import asyncio
import json
import os
import random
from unittest.mock import AsyncMock, patch

import pytest
from pydantic import ValidationError
from redis.exceptions import ConnectionError as RedisConnectionError

from token_service.models.token import TokenRecord, to_float


# ─────────────────────────────────────────────────────────
# 辅助函数
# ─────────────────────────────────────────────────────────

def _token(address: str, protocol: str = "raydium", price: float = 0.0, **fields) -> TokenRecord:
    return TokenRecord(token_address=address, protocol=protocol, price_sol=price, **fields)


def _random_tokens(rng: random.Random, n: int, protocol: str) -> list:
    # 地址池很小，保证同源内部和跨源都会出现重复，并夹杂大小写变体与空地址
    pool = ["0xaa", "0xAA", "0xbb", "0xcc", "0xCc", "0xdd", "", "0xee"]
    return [
        _token(rng.choice(pool), protocol=protocol, price=round(rng.uniform(0, 10), 4))
        for _ in range(n)
    ]


# ─────────────────────────────────────────────────────────
# 1. 配置模块测试
# ─────────────────────────────────────────────────────────

class TestConfig:
    def test_defaults(self):
        from token_service.config import TokenServiceSettings
        s = TokenServiceSettings()
        assert s.PORT == 3000
        assert s.CACHE_TTL == 30
        assert s.CACHE_KEY_PREFIX == "tokens_v5"
        assert s.DEFAULT_QUERY == "SOL"
        assert s.BROADCAST_INTERVAL == 10
        assert s.BROADCAST_EVENT == "price-update"
        assert s.MERGE_ENRICH_FIELDS is False

    def test_redis_url_no_auth(self):
        from token_service.config import TokenServiceSettings
        s = TokenServiceSettings(REDIS_PASSWORD="", REDIS_URL_OVERRIDE="")
        assert s.REDIS_URL.startswith("redis://")
        assert "@" not in s.REDIS_URL

    def test_redis_url_with_auth(self):
        from token_service.config import TokenServiceSettings
        s = TokenServiceSettings(
            REDIS_PASSWORD="secret", REDIS_HOST="cache", REDIS_PORT=6379, REDIS_URL_OVERRIDE=""
        )
        assert ":secret@cache:6379" in s.REDIS_URL

    def test_redis_url_override(self):
        from token_service.config import TokenServiceSettings
        s = TokenServiceSettings(REDIS_URL_OVERRIDE="redis://elsewhere:6380/2")
        assert s.REDIS_URL == "redis://elsewhere:6380/2"

    def test_docker_service_discovery(self):
        with patch.dict(os.environ, {"DOCKER_CONTAINER": "true"}, clear=False):
            from token_service import config as cfg_module
            assert cfg_module._default_redis_host() == "redis"

    def test_local_defaults(self):
        with patch.dict(os.environ, {"DOCKER_CONTAINER": "false"}, clear=False), \
             patch("os.path.exists", return_value=False):
            from token_service import config as cfg_module
            assert cfg_module._default_redis_host() == "localhost"


# ─────────────────────────────────────────────────────────
# 2. TokenRecord 模型测试
# ─────────────────────────────────────────────────────────

class TestTokenRecord:
    def test_none_values_default(self):
        t = TokenRecord(
            token_address=None, token_name=None, price_sol=None,
            transaction_count=None, protocol=None,
        )
        assert t.token_address == "" and t.token_name == "" and t.protocol == ""
        assert t.price_sol == 0.0 and t.transaction_count == 0

    def test_numeric_strings_parsed(self):
        t = TokenRecord(price_sol="1.25", market_cap_sol="abc", price_1hr_change=float("nan"))
        assert t.price_sol == 1.25
        assert t.market_cap_sol == 0.0
        assert t.price_1hr_change == 0.0

    def test_transaction_count_non_negative(self):
        assert TokenRecord(transaction_count=-5).transaction_count == 0
        assert TokenRecord(transaction_count=7.0).transaction_count == 7

    def test_overflowing_int_is_zero(self):
        assert to_float(10 ** 400) == 0.0
        assert TokenRecord(market_cap_sol=10 ** 400).market_cap_sol == 0.0

    def test_immutable(self):
        t = _token("0x1")
        with pytest.raises(ValidationError):
            t.price_sol = 3.0

    def test_normalized_address_keeps_original(self):
        t = _token("So11ABC")
        assert t.token_address == "So11ABC"
        assert t.normalized_address == "so11abc"

    def test_wire_field_names(self):
        assert set(_token("0x1").model_dump()) == {
            "token_address", "token_name", "token_ticker", "price_sol",
            "market_cap_sol", "volume_sol", "liquidity_sol",
            "transaction_count", "price_1hr_change", "protocol",
        }


# ─────────────────────────────────────────────────────────
# 3. 处理层（合并）测试
# ─────────────────────────────────────────────────────────

class TestMergeTokens:
    def test_primary_wins_on_conflict(self):
        """主数据源与补充数据源地址冲突（大小写不同）时保留主数据源记录"""
        from token_service.layers.processing import merge_tokens
        primary = [_token("0x123", protocol="dex1", price=1.5, token_name="Token A")]
        secondary = [
            _token("0X123", protocol="Jupiter", price=0.0),
            _token("0x789", protocol="Jupiter", token_name="Token C"),
        ]
        merged = merge_tokens(primary, secondary)
        assert len(merged) == 2
        first = next(t for t in merged if t.normalized_address == "0x123")
        assert first.protocol == "dex1"
        assert first.price_sol == 1.5
        assert first == primary[0]

    def test_order_primary_then_new_secondary(self):
        from token_service.layers.processing import merge_tokens
        merged = merge_tokens(
            [_token("0xa"), _token("0xb")],
            [_token("0xc", "Jupiter"), _token("0xA", "Jupiter"), _token("0xd", "Jupiter")],
        )
        assert [t.token_address for t in merged] == ["0xa", "0xb", "0xc", "0xd"]

    def test_empty_addresses_dropped(self):
        from token_service.layers.processing import merge_tokens
        merged = merge_tokens([_token(""), _token("0x1")], [_token("", "Jupiter")])
        assert [t.token_address for t in merged] == ["0x1"]

    def test_within_primary_last_wins(self):
        from token_service.layers.processing import merge_tokens
        merged = merge_tokens([_token("0x1", price=1.0), _token("0X1", price=2.0)], [])
        assert len(merged) == 1
        assert merged[0].price_sol == 2.0

    def test_within_secondary_last_wins_for_new_addresses(self):
        from token_service.layers.processing import merge_tokens
        merged = merge_tokens(
            [_token("0x1")],
            [_token("0x2", "Jupiter", token_name="old"), _token("0x2", "Jupiter", token_name="new")],
        )
        assert [t.token_name for t in merged if t.token_address == "0x2"] == ["new"]

    def test_secondary_duplicate_of_primary_never_overrides(self):
        from token_service.layers.processing import merge_tokens
        merged = merge_tokens(
            [_token("0x1", "dex1", price=3.0)],
            [_token("0x1", "Jupiter"), _token("0x1", "Jupiter", price=9.0)],
        )
        assert merged == [_token("0x1", "dex1", price=3.0)]

    def test_both_empty(self):
        from token_service.layers.processing import merge_tokens
        assert merge_tokens([], []) == []

    def test_randomized_invariants(self):
        """去重、主数据源优先、数量完整性在随机输入下均成立"""
        from token_service.layers.processing import merge_tokens
        rng = random.Random(42)
        for _ in range(200):
            primary = _random_tokens(rng, rng.randint(0, 8), "dex")
            secondary = _random_tokens(rng, rng.randint(0, 8), "Jupiter")
            merged = merge_tokens(primary, secondary)

            keys = [t.normalized_address for t in merged]
            assert len(keys) == len(set(keys))
            assert "" not in keys

            primary_last = {}
            for t in primary:
                if t.normalized_address:
                    primary_last[t.normalized_address] = t
            secondary_keys = {t.normalized_address for t in secondary if t.normalized_address}
            assert len(merged) == len(primary_last) + len(secondary_keys - set(primary_last))

            for t in merged:
                if t.normalized_address in primary_last:
                    assert t == primary_last[t.normalized_address]

    def test_enrich_fills_empty_fields_only(self):
        from token_service.layers.processing import merge_tokens
        primary = [_token("0x1", "dex1", price=1.5, token_name="")]
        secondary = [_token("0x1", "Jupiter", price=0.0, token_name="Token A", token_ticker="TKA")]
        merged = merge_tokens(primary, secondary, enrich=True)
        assert len(merged) == 1
        assert merged[0].protocol == "dex1"
        assert merged[0].price_sol == 1.5
        assert merged[0].token_name == "Token A"
        assert merged[0].token_ticker == "TKA"

    def test_serialization_shape(self):
        from token_service.layers.processing import deserialize_tokens, serialize_tokens
        tokens = [_token("0x1", "dex1", price=1.5), _token("0x2", "Jupiter")]
        blob = serialize_tokens(tokens)
        assert json.loads(blob)[0]["protocol"] == "dex1"
        assert deserialize_tokens(blob) == tokens
        assert serialize_tokens([]) == "[]"


# ─────────────────────────────────────────────────────────
# 4. 缓存层测试
# ─────────────────────────────────────────────────────────

class TestCacheLayer:
    def test_get_hit_and_miss(self):
        from token_service.layers.cache import CacheLayer
        redis = AsyncMock()
        redis.get.side_effect = lambda key: "[]" if key == "tokens_v5:SOL" else None
        cache = CacheLayer(lambda: redis)
        assert asyncio.run(cache.get("tokens_v5:SOL")) == "[]"
        assert asyncio.run(cache.get("tokens_v5:DOGE")) is None

    def test_get_decodes_bytes(self):
        from token_service.layers.cache import CacheLayer
        redis = AsyncMock()
        redis.get.return_value = b"[1]"
        assert asyncio.run(CacheLayer(lambda: redis).get("k")) == "[1]"

    def test_set_uses_setex_with_ttl(self):
        from token_service.layers.cache import CacheLayer
        redis = AsyncMock()
        ok = asyncio.run(CacheLayer(lambda: redis).set("k", "[]", ttl=12))
        assert ok is True
        redis.setex.assert_awaited_once_with("k", 12, "[]")

    def test_set_default_ttl(self):
        from token_service.config import settings
        from token_service.layers.cache import CacheLayer
        redis = AsyncMock()
        asyncio.run(CacheLayer(lambda: redis).set("k", "[]"))
        redis.setex.assert_awaited_once_with("k", settings.CACHE_TTL, "[]")

    def test_no_connection_degrades(self):
        from token_service.layers.cache import CacheLayer
        cache = CacheLayer(lambda: None)
        assert asyncio.run(cache.get("k")) is None
        assert asyncio.run(cache.set("k", "v")) is False
        assert asyncio.run(cache.delete("k")) is False
        assert asyncio.run(cache.stats()) == {"redis": {"status": "disabled"}}

    def test_store_errors_are_swallowed(self):
        from token_service.layers.cache import CacheLayer
        redis = AsyncMock()
        redis.get.side_effect = RedisConnectionError("down")
        redis.setex.side_effect = RedisConnectionError("down")
        redis.delete.side_effect = RedisConnectionError("down")
        cache = CacheLayer(lambda: redis)
        assert asyncio.run(cache.get("k")) is None
        assert asyncio.run(cache.set("k", "v")) is False
        assert asyncio.run(cache.delete("k")) is False

    def test_stats(self):
        from token_service.layers.cache import CacheLayer
        redis = AsyncMock()
        redis.dbsize.return_value = 4
        assert asyncio.run(CacheLayer(lambda: redis).stats()) == {
            "redis": {"keys": 4, "status": "healthy"}
        }


# ─────────────────────────────────────────────────────────
# 5. 缓存键生成测试
# ─────────────────────────────────────────────────────────

class TestCacheKeys:
    def test_key_format(self):
        from token_service.layers.cache import make_key
        assert make_key("tokens_v5", "SOL") == "tokens_v5:SOL"

    def test_query_not_normalized(self):
        from token_service.layers.cache import make_key
        assert make_key("tokens_v5", "SOL") != make_key("tokens_v5", "sol")

    def test_key_consistency(self):
        from token_service.layers.cache import make_key
        assert make_key("a", "b", "c") == make_key("a", "b", "c") == "a:b:c"


# ─────────────────────────────────────────────────────────
# 6. API 响应模型测试
# ─────────────────────────────────────────────────────────

class TestApiResponse:
    def test_ok(self):
        from token_service.models.response import ApiResponse
        r = ApiResponse.ok(data={"k": "v"}, message="done")
        assert r.success and r.error is None

    def test_fail(self):
        from token_service.models.response import ApiResponse
        r = ApiResponse.fail(error="oops")
        assert not r.success and r.error == "oops"

    def test_error_body_is_generic(self):
        from token_service.models.response import ErrorResponse
        assert ErrorResponse().model_dump() == {"error": "Internal Server Error"}
