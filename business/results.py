"""操作结果 —— 面向前台的成功/失败提示。"""
from dataclasses import dataclass


@dataclass(frozen=True)
class OperationResult:
    """账本操作的结果。

    拒绝类操作（校验失败、记录不存在）不抛异常，而是返回
    ``success=False`` 及一条可直接展示给前台人员的提示。

    Attributes:
        success: 操作是否生效。
        message: 提示文本。
        level: 提示级别：success / info / error。
    """
    success: bool
    message: str
    level: str = "success"

    @classmethod
    def ok(cls, message: str) -> "OperationResult":
        return cls(True, message, "success")

    @classmethod
    def info(cls, message: str) -> "OperationResult":
        return cls(False, message, "info")

    @classmethod
    def error(cls, message: str) -> "OperationResult":
        return cls(False, message, "error")

    def __bool__(self) -> bool:
        return self.success
