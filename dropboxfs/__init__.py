"""Dropbox 文件句柄适配层：在整文件上传 / 按偏移下载 / 分页列目录之上提供 read / write / seek / readdir。"""

from dropboxfs.client import DownloadStream, DropboxClient
from dropboxfs.errors import (
    AlreadyOpenedError,
    DropboxFsError,
    FileClosedError,
    InvalidSeekError,
    NotSupportedError,
    TransportError,
)
from dropboxfs.file import File
from dropboxfs.fs import DropboxFs, normalize_path
from dropboxfs.models import SIMULATED_FILE_MODE, EntryKind, FileInfo
from dropboxfs.pager import DIR_LISTING_MAX_LIMIT, DirectoryPager

__all__ = [
    "DropboxClient",
    "DownloadStream",
    "DropboxFs",
    "File",
    "FileInfo",
    "EntryKind",
    "DirectoryPager",
    "normalize_path",
    "DIR_LISTING_MAX_LIMIT",
    "SIMULATED_FILE_MODE",
    "DropboxFsError",
    "NotSupportedError",
    "AlreadyOpenedError",
    "InvalidSeekError",
    "FileClosedError",
    "TransportError",
]
