"""
Token Aggregator 服务
独立的代币行情聚合微服务，提供 HTTP 与 WebSocket 接口

架构分层：
  数据获取层 (Acquisition)  → 从 DexScreener / Jupiter 拉取原始代币数据
  缓存层     (Cache)        → Redis 缓存（TTL 由 Redis 负责过期）
  处理层     (Processing)   → 按地址去重合并、序列化
"""

__version__ = "1.0.0"
