"""
目录分页测试：服务端每页 SERVER_PAGE_SIZE 条，调用方每次要任意条数。
"""

from __future__ import annotations

import pytest

from dropboxfs import DirectoryPager, File, FileInfo, TransportError

from tests.config import DIR_ENTRY_COUNT, SAMPLE_DIR, SERVER_PAGE_SIZE
from tests.fakes import FakeDropbox, file_meta


def _names(infos: list[FileInfo]) -> list[str]:
    return [i.name for i in infos]


@pytest.fixture
def all_names(dropbox: FakeDropbox) -> list[str]:
    return [m["name"] for m in dropbox.folders[SAMPLE_DIR]]


@pytest.mark.parametrize("count", [0, -1, -100])
def test_non_positive_count_returns_everything(dropbox: FakeDropbox, all_names: list[str], count: int) -> None:
    pager = DirectoryPager(dropbox, SAMPLE_DIR)
    assert _names(pager.read_page(count)) == all_names
    # 每页一次请求
    assert dropbox.count("list_folder") == 1
    assert dropbox.count("list_folder_continue") == (DIR_ENTRY_COUNT - 1) // SERVER_PAGE_SIZE


def test_read_all_does_not_touch_page_state(dropbox: FakeDropbox, all_names: list[str]) -> None:
    pager = DirectoryPager(dropbox, SAMPLE_DIR)
    first = pager.read_page(3)
    assert _names(pager.read_all()) == all_names
    assert _names(pager.read_page(3)) == all_names[3:6]
    assert _names(first) == all_names[:3]


@pytest.mark.parametrize("counts", [[1] * 30, [3, 5, 10, 20], [7, 7, 7, 7], [2, 13, 1, 100], [25], [26, 5]])
def test_pages_are_prefix_consistent_and_duplicate_free(
    dropbox: FakeDropbox, all_names: list[str], counts: list[int]
) -> None:
    pager = DirectoryPager(dropbox, SAMPLE_DIR)
    got: list[str] = []
    for count in counts:
        page = _names(pager.read_page(count))
        assert len(page) <= count
        if len(page) < count:
            # 只有取完了才会少给
            assert pager.done and pager.buffered == 0
        got.extend(page)
        assert got == all_names[: len(got)]
    assert len(got) == len(set(got))
    assert len(got) == min(sum(counts), DIR_ENTRY_COUNT)


def test_exhausted_pager_returns_empty(dropbox: FakeDropbox) -> None:
    pager = DirectoryPager(dropbox, SAMPLE_DIR)
    assert len(pager.read_page(1000)) == DIR_ENTRY_COUNT
    calls = len(dropbox.calls)
    assert pager.read_page(5) == []
    assert len(dropbox.calls) == calls


def test_buffer_drained_after_last_page(dropbox: FakeDropbox, all_names: list[str]) -> None:
    """最后一页取回后 done 为真，但缓冲区里剩下的条目仍要继续返回。"""
    dropbox.add_folder("/small", [file_meta(f"/small/f{i}", i) for i in range(5)])
    pager = DirectoryPager(dropbox, "/small")
    assert _names(pager.read_page(2)) == ["f0", "f1"]
    assert pager.done
    assert _names(pager.read_page(2)) == ["f2", "f3"]
    assert _names(pager.read_page(2)) == ["f4"]
    assert pager.read_page(2) == []
    assert dropbox.count("list_folder") == 1


def test_fetch_only_when_buffer_empty(dropbox: FakeDropbox) -> None:
    pager = DirectoryPager(dropbox, SAMPLE_DIR)
    pager.read_page(2)
    assert pager.buffered == SERVER_PAGE_SIZE - 2
    pager.read_page(SERVER_PAGE_SIZE - 2)
    assert pager.buffered == 0
    assert len(dropbox.calls) == 1
    pager.read_page(1)
    assert len(dropbox.calls) == 2


def test_cursor_follows_server_tokens(dropbox: FakeDropbox) -> None:
    pager = DirectoryPager(dropbox, SAMPLE_DIR)
    assert pager.cursor == "" and not pager.done
    pager.read_page(SERVER_PAGE_SIZE + 1)
    assert pager.cursor == f"{SAMPLE_DIR}|{2 * SERVER_PAGE_SIZE}"
    assert dropbox.calls == [
        ("list_folder", SAMPLE_DIR, None),
        ("list_folder_continue", f"{SAMPLE_DIR}|{SERVER_PAGE_SIZE}"),
    ]


def test_limit_only_on_first_page(dropbox: FakeDropbox) -> None:
    pager = DirectoryPager(dropbox, SAMPLE_DIR, limit=4)
    pager.read_page(6)
    assert dropbox.calls[0] == ("list_folder", SAMPLE_DIR, 4)
    assert dropbox.calls[1] == ("list_folder_continue", f"{SAMPLE_DIR}|4")


def test_page_larger_than_capacity(dropbox: FakeDropbox) -> None:
    pager = DirectoryPager(dropbox, SAMPLE_DIR, capacity=SERVER_PAGE_SIZE - 1)
    with pytest.raises(OverflowError):
        pager.read_page(1)


def test_read_names_returns_base_names(dropbox: FakeDropbox) -> None:
    dropbox.add_folder("/nested", [{".tag": "file", "name": "a/b/c.txt", "size": 1}, {".tag": "folder", "name": "d"}])
    pager = DirectoryPager(dropbox, "/nested")
    assert pager.read_names(0) == ["c.txt", "d"]
    assert DirectoryPager(dropbox, "/nested").read_names(1) == ["c.txt"]


def test_file_readdir_and_readdirnames(dropbox: FakeDropbox, all_names: list[str]) -> None:
    f = File(dropbox, SAMPLE_DIR, dir_list_limit=5)
    page = f.readdir(4)
    assert _names(page) == all_names[:4]
    assert f.readdirnames(3) == all_names[4:7]
    assert dropbox.calls[0] == ("list_folder", SAMPLE_DIR, 5)
    assert _names(f.readdir(0)) == all_names
    folders = [i for i in f.readdir(0) if i.is_dir]
    assert _names(folders) == ["sub"]


def test_file_readdir_wraps_transport_errors(dropbox: FakeDropbox) -> None:
    f = File(dropbox, "/missing")
    with pytest.raises(TransportError, match="couldn't fetch files list"):
        f.readdir(3)
    with pytest.raises(TransportError):
        f.readdirnames(0)
