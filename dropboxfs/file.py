"""
Dropbox 文件句柄。

Dropbox 只提供「整文件上传」和「从某偏移下载到末尾」，这里把它们适配成常规的
read / write / seek / readdir 接口：
- 读：一个 Range 下载流；seek 即关闭当前流并从新位置重新下载。
- 写：打开时就启动后台上传线程，write 通过 BytePipe 把数据交给上传请求体；
  close 关闭管道并等待上传结果（Future），上传失败在 close 时抛出。
- 目录：见 DirectoryPager。

同一个 File 不能被多个线程同时使用；需要并发访问请各自打开句柄。
"""

from __future__ import annotations

import io
import logging
import threading
from concurrent.futures import Future
from typing import Any, Protocol

import httpx

from dropboxfs.client import DownloadStream
from dropboxfs.errors import (
    AlreadyOpenedError,
    FileClosedError,
    InvalidSeekError,
    NotSupportedError,
    TransportError,
)
from dropboxfs.models import FileInfo, ListFolderResult, Metadata
from dropboxfs.pager import DirectoryPager
from dropboxfs.pipe import DEFAULT_CAPACITY, BytePipe

logger = logging.getLogger(__name__)

# 远端调用可能抛出的、需要包装为 TransportError 的异常
_TRANSPORT_ERRORS = (httpx.HTTPError, OSError)


class RemoteClient(Protocol):
    def list_folder(self, path: str, limit: int | None = None) -> ListFolderResult: ...

    def list_folder_continue(self, cursor: str) -> ListFolderResult: ...

    def download(self, path: str, start: int | None = None) -> DownloadStream: ...

    def upload(self, path: str, content: Any, *, mode: str = ..., autorename: bool = ...) -> Metadata: ...

    def get_metadata(self, path: str) -> Metadata: ...


class File:
    """
    一个已打开路径的句柄。读取流与写入流互斥；close 之后可以换一种模式重新打开。

    :param client: 远端客户端（DropboxClient 或同接口对象）
    :param name: 远程路径
    :param dir_list_limit: 目录首页 limit，0 表示服务端默认
    :param pipe_capacity: 写入管道最多缓存的数据块数
    """

    def __init__(
        self,
        client: RemoteClient,
        name: str,
        *,
        dir_list_limit: int = 0,
        pipe_capacity: int = DEFAULT_CAPACITY,
        info: FileInfo | None = None,
    ):
        self.client = client
        self._name = name
        self.dir_list_limit = dir_list_limit
        self.pipe_capacity = pipe_capacity
        self._stream_read: DownloadStream | None = None
        self._stream_read_offset = 0
        # 写入管道与对应的上传结果，二者同时存在
        self._stream_write: tuple[BytePipe, Future[FileInfo]] | None = None
        self._pager: DirectoryPager | None = None
        self._cached_info = info

    def __repr__(self) -> str:
        return f"<File {self._name!r}>"

    def __enter__(self) -> File:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @property
    def name(self) -> str:
        return self._name

    @property
    def reading(self) -> bool:
        return self._stream_read is not None

    @property
    def writing(self) -> bool:
        return self._stream_write is not None

    # ------------------------- 打开流 -------------------------

    def open_read_stream(self, start: int = 0) -> None:
        """从 start 字节处开始下载到末尾。"""
        if self._stream_write is not None:
            raise AlreadyOpenedError("file is opened for writing")
        if self._stream_read is not None:
            raise AlreadyOpenedError("file is opened for reading")
        self._stream_read_offset = start
        try:
            self._stream_read = self.client.download(self._name, start)
        except _TRANSPORT_ERRORS as e:
            raise TransportError("couldn't download file", e) from e

    def open_write_stream(self) -> None:
        """启动后台整文件上传（覆盖模式），之后 write 的数据经管道送入上传请求体。"""
        if self._stream_write is not None:
            raise AlreadyOpenedError()
        if self._stream_read is not None:
            raise AlreadyOpenedError("file is opened for reading")

        # 文件即将被改写，旧的元数据作废
        self._cached_info = None

        pipe = BytePipe(self.pipe_capacity)
        result: Future[FileInfo] = Future()
        self._stream_write = (pipe, result)

        thread = threading.Thread(
            target=self._upload,
            args=(pipe, result),
            name=f"dropboxfs-upload:{self._name}",
            daemon=True,
        )
        thread.start()
        logger.debug("opened write stream for %s", self._name)

    def _upload(self, pipe: BytePipe, result: Future[FileInfo]) -> None:
        # 先关闭读端再交出结果；BaseException 也交给 Future，否则 close 会一直等待
        try:
            meta = self.client.upload(self._name, iter(pipe), mode="overwrite", autorename=False)
            info = FileInfo.from_metadata(meta)
        except BaseException as e:
            pipe.close_reader()
            logger.warning("upload of %s failed: %r", self._name, e)
            result.set_exception(e)
            return
        pipe.close_reader()
        result.set_result(info)

    # ------------------------- 关闭 -------------------------

    def close(self) -> None:
        """
        关闭当前的流；没有流时什么也不做。

        写入流：关闭管道写端并等待上传完成，上传失败在此抛出 TransportError，
        成功时服务端返回的元数据成为新的缓存。
        """
        if self._stream_read is not None:
            stream, self._stream_read = self._stream_read, None
            try:
                stream.close()
            except _TRANSPORT_ERRORS as e:
                raise TransportError("couldn't close read stream", e) from e
            return

        if self._stream_write is not None:
            (pipe, result), self._stream_write = self._stream_write, None
            pipe.close()
            try:
                info = result.result()
            except Exception as e:
                raise TransportError("couldn't upload file", e) from e
            self._cached_info = info
            logger.debug("uploaded %s (%d bytes)", self._name, info.size)

    # ------------------------- 读 -------------------------

    def read(self, size: int = -1) -> bytes:
        """
        读取至多 size 个字节（size < 0 读到末尾）。

        读完时返回 b""；非空但少于 size 的结果只是一次普通的短读。
        """
        if self._stream_read is None:
            raise FileClosedError()
        try:
            data = self._stream_read.read(size)
        except _TRANSPORT_ERRORS as e:
            raise TransportError("couldn't read from stream", e) from e
        self._stream_read_offset += len(data)
        return data

    def readinto(self, buffer: bytearray | memoryview) -> int:
        """读入 buffer，返回字节数；读完时返回 0。"""
        data = self.read(len(buffer))
        n = len(data)
        buffer[:n] = data
        return n

    def read_at(self, size: int, offset: int) -> bytes:
        """
        从当前读取位置再向后 offset 字节处读取 size 字节：先 seek(offset, SEEK_CUR) 再 read。

        会改变句柄的读取位置，不能与其他调用者共享同一句柄。
        """
        self.seek(offset, io.SEEK_CUR)
        return self.read(size)

    def tell(self) -> int:
        return self._stream_read_offset

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """
        移动读取位置，返回新位置。

        写入时不支持；有读取流时关闭当前下载并从新位置重新下载；没有流时抛 FileClosedError。
        注意 SEEK_END 的位置是 size - offset（与 io 模块的 size + offset 相反）。
        """
        if self._stream_write is not None:
            raise NotSupportedError("seek is not supported while writing")
        if self._stream_read is not None:
            return self._seek_read(self._stream_read, offset, whence)
        raise FileClosedError()

    def _seek_read(self, stream: DownloadStream, offset: int, whence: int) -> int:
        if whence == io.SEEK_SET:
            start = offset
        elif whence == io.SEEK_CUR:
            start = self._stream_read_offset + offset
        elif whence == io.SEEK_END:
            # 末尾相对位置为 size - offset：seek(4, SEEK_END) 定位到末尾前 4 字节
            start = self.stat().size - offset
        else:
            raise ValueError(f"invalid whence ({whence!r})")

        # 无论新位置是否合法，旧的下载流都会被关闭
        self._stream_read = None
        try:
            stream.close()
        except _TRANSPORT_ERRORS as e:
            raise TransportError("couldn't close previous stream", e) from e

        if start < 0:
            raise InvalidSeekError(start)

        logger.debug("seek %s to %d", self._name, start)
        self.open_read_stream(start)
        return start

    # ------------------------- 写 -------------------------

    def write(self, data: bytes | bytearray | memoryview) -> int:
        """把数据交给上传线程；管道满时阻塞。上传本身的失败在 close 时才报告。"""
        if self._stream_write is None:
            raise FileClosedError()
        try:
            return self._stream_write[0].write(data)
        except BrokenPipeError as e:
            raise TransportError("couldn't write to stream", e) from e

    def write_string(self, s: str) -> int:
        return self.write(s.encode("utf-8"))

    def write_at(self, data: bytes | bytearray | memoryview, offset: int) -> int:
        """
        先 seek 再 write。写入流打开时 seek 本身不被支持，
        所以对写模式的句柄这总是抛 NotSupportedError。
        """
        self.seek(offset, io.SEEK_SET)
        return self.write(data)

    # ------------------------- 目录 -------------------------

    def _get_pager(self) -> DirectoryPager:
        if self._pager is None:
            self._pager = DirectoryPager(self.client, self._name, limit=self.dir_list_limit)
        return self._pager

    def readdir(self, count: int = 0) -> list[FileInfo]:
        """
        读取目录条目。count <= 0 时一次返回全部；
        否则每次至多 count 个，接着上一次继续，全部读完后返回空列表。
        """
        try:
            return self._get_pager().read_page(count)
        except _TRANSPORT_ERRORS as e:
            raise TransportError("couldn't fetch files list", e) from e

    def readdirnames(self, count: int = 0) -> list[str]:
        try:
            return self._get_pager().read_names(count)
        except _TRANSPORT_ERRORS as e:
            raise TransportError("couldn't fetch files list", e) from e

    # ------------------------- 元数据与不支持的操作 -------------------------

    def stat(self) -> FileInfo:
        """返回缓存的元数据；没有缓存时请求一次并缓存。"""
        if self._cached_info is None:
            try:
                meta = self.client.get_metadata(self._name)
            except FileNotFoundError:
                # 路径不存在不算传输错误，原样抛出
                raise
            except _TRANSPORT_ERRORS as e:
                raise TransportError("couldn't stat file", e) from e
            self._cached_info = FileInfo.from_metadata(meta)
        return self._cached_info

    def sync(self) -> None:
        """每次 write 都已经是网络操作，没有本地缓冲需要刷新。"""

    def truncate(self, size: int | None = None) -> None:
        """Dropbox 不支持修改文件的一部分。"""
        raise NotSupportedError("truncate is not supported")
