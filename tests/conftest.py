"""
pytest 配置与共享 fixture。

远端一律使用 tests.fakes.FakeDropbox（内存实现），不访问网络。
"""

from __future__ import annotations

import pytest

from dropboxfs import DropboxFs, File

from tests.config import DIR_ENTRY_COUNT, SAMPLE_CONTENT, SAMPLE_DIR, SAMPLE_FILE
from tests.fakes import FakeDropbox, file_meta, folder_meta


@pytest.fixture
def dropbox() -> FakeDropbox:
    """含一个示例文件和一个 DIR_ENTRY_COUNT 条目目录的 FakeDropbox。"""
    fake = FakeDropbox()
    entries = [file_meta(f"{SAMPLE_DIR}/file{i:02d}.txt", i) for i in range(DIR_ENTRY_COUNT - 1)]
    entries.append(folder_meta(f"{SAMPLE_DIR}/sub"))
    fake.add_folder(SAMPLE_DIR, entries)
    fake.files[SAMPLE_FILE] = SAMPLE_CONTENT
    return fake


@pytest.fixture
def fs(dropbox: FakeDropbox) -> DropboxFs:
    return DropboxFs(dropbox)  # type: ignore[arg-type]


@pytest.fixture
def reader(dropbox: FakeDropbox) -> File:
    """已在 SAMPLE_FILE 上打开读取流的句柄。"""
    f = File(dropbox, SAMPLE_FILE)
    f.open_read_stream(0)
    return f
