"""
API 响应模型
  - ApiResponse   : 管理类接口（缓存统计 / 清理）的统一封装
  - ErrorResponse : /api/tokens 出错时的通用错误体，不暴露上游细节
"""

from typing import Any, Optional

from pydantic import BaseModel

GENERIC_ERROR = "Internal Server Error"


class ApiResponse(BaseModel):
    """管理接口响应封装"""
    success: bool = True
    data: Optional[Any] = None
    message: str = ""
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None, message: str = "success") -> "ApiResponse":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, error: str, message: str = "failed") -> "ApiResponse":
        return cls(success=False, error=error, message=message)


class ErrorResponse(BaseModel):
    error: str = GENERIC_ERROR
