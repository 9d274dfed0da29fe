"""
dropboxfs 异常类型。

远端 API 的失败统一包装为 TransportError（消息前缀为失败的操作，原异常挂在 __cause__ 上）；
其余为句柄自身的状态错误。
"""

from __future__ import annotations


class DropboxFsError(Exception):
    """dropboxfs 所有异常的基类。"""


class NotSupportedError(DropboxFsError):
    """远端 API 不支持的操作（写入时 seek、truncate 等）。"""

    def __init__(self, message: str = "operation not supported") -> None:
        super().__init__(message)


class AlreadyOpenedError(DropboxFsError):
    """写入流已打开时再次打开。"""

    def __init__(self, message: str = "file already opened") -> None:
        super().__init__(message)


class InvalidSeekError(DropboxFsError):
    """计算出的读取位置为负数。"""

    def __init__(self, position: int) -> None:
        super().__init__(f"invalid seek offset: {position}")
        self.position = position


class FileClosedError(DropboxFsError):
    """句柄上既没有读取流也没有写入流。"""

    def __init__(self, message: str = "file already closed") -> None:
        super().__init__(message)


class TransportError(DropboxFsError):
    """远端调用失败；op 描述失败的操作。"""

    def __init__(self, op: str, cause: BaseException | None = None) -> None:
        message = f"{op}: {cause}" if cause is not None else op
        super().__init__(message)
        self.op = op
