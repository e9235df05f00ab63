"""
数据流分层架构
  Layer 1 – Acquisition  : 数据获取（DexScreener 主数据源 / Jupiter 补充数据源）
  Layer 2 – Cache        : Redis 缓存
  Layer 3 – Processing   : 去重合并与序列化
"""
