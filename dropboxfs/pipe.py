"""
写入端与上传线程之间的有界字节管道。

File.write 往管道里放数据块，上传线程把管道当作 httpx 的请求体迭代；
队列满时 write 阻塞，直到上传把数据发出去。
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Iterator

DEFAULT_CAPACITY = 8

# 单个数据块的最大字节数，大的 write 会被切成多块
CHUNK_SIZE = 64 * 1024


class BytePipe:
    """
    单生产者、单消费者的字节块管道。

    capacity 按数据块计数，每块至多 CHUNK_SIZE 字节，所以管道里缓存的数据
    不超过 capacity * CHUNK_SIZE 字节。write 会复制调用方的数据，
    一次大的 write 在写完之前同时占用调用方的缓冲区和管道里的副本。
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, chunk_size: int = CHUNK_SIZE):
        self.capacity = max(1, capacity)
        self.chunk_size = max(1, chunk_size)
        self._chunks: deque[bytes] = deque()
        self._cond = threading.Condition()
        self._reader_closed = False
        self._writer_closed = False

    @property
    def reader_closed(self) -> bool:
        return self._reader_closed

    def write(self, data: bytes | bytearray | memoryview) -> int:
        """写入数据；读端关闭后抛 BrokenPipeError。"""
        if self._writer_closed:
            raise ValueError("write to closed pipe")
        view = memoryview(data).cast("B")
        for i in range(0, len(view), self.chunk_size):
            chunk = bytes(view[i:i + self.chunk_size])
            with self._cond:
                while len(self._chunks) >= self.capacity and not self._reader_closed:
                    self._cond.wait()
                if self._reader_closed:
                    raise BrokenPipeError("read end of pipe closed")
                self._chunks.append(chunk)
                self._cond.notify_all()
        return len(view)

    def close(self) -> None:
        """关闭写端，通知读端数据结束。不等待读端取走数据。"""
        with self._cond:
            self._writer_closed = True
            self._cond.notify_all()

    def close_reader(self) -> None:
        """关闭读端并丢弃未读数据，阻塞中的 write 会随即失败。"""
        with self._cond:
            self._reader_closed = True
            self._chunks.clear()
            self._cond.notify_all()

    def __iter__(self) -> Iterator[bytes]:
        while True:
            with self._cond:
                while not self._chunks and not self._writer_closed and not self._reader_closed:
                    self._cond.wait()
                if self._reader_closed or not self._chunks:
                    return
                chunk = self._chunks.popleft()
                self._cond.notify_all()
            yield chunk
