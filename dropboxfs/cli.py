"""
dbxfs CLI：token 保存一次到本地；所有命令都通过 File 句柄读写 Dropbox。
"""

from __future__ import annotations

import getpass
import io
import logging
import os
import sys
from pathlib import Path
from typing import Annotated, Callable, Optional

import typer

from dropboxfs import DropboxClient, DropboxFs, FileInfo
from dropboxfs.cli_config import clear_config, load_config, resolve_token, save_config, TOKEN_ENV_VAR

# get / put / cat 每次读写的块大小
COPY_CHUNK_SIZE = 1024 * 1024


def _format_size(n: int) -> str:
    """将字节数格式化为人类可读（KiB/MiB/GiB）。"""
    if n < 1024:
        return f"{n} B"
    if n < 1024 * 1024:
        return f"{n / 1024:.1f} KiB"
    if n < 1024 * 1024 * 1024:
        return f"{n / (1024 * 1024):.1f} MiB"
    return f"{n / (1024 * 1024 * 1024):.1f} GiB"


def _make_progress_callback(filename: str) -> tuple[Callable[[int, int], None], Callable[[], None]]:
    """返回 (on_progress(done, total) 回调, finish 回调)。进度条输出到 stderr。"""
    last_pct: list[int] = [-1]
    bar_width = 24

    def on_progress(done: int, total_bytes: int) -> None:
        if total_bytes <= 0:
            return
        pct = min(100, int(100 * done / total_bytes))
        if pct != last_pct[0] and (pct % 5 == 0 or pct == 100 or done == total_bytes):
            last_pct[0] = pct
            filled = int(bar_width * pct / 100) if pct < 100 else bar_width
            bar = "=" * filled + ">" * (1 if filled < bar_width else 0) + " " * (bar_width - filled - (1 if filled < bar_width else 0))
            sys.stderr.write(f"\r  {filename} [{bar}] {pct}% {_format_size(done)}/{_format_size(total_bytes)}   ")
            sys.stderr.flush()

    def finish() -> None:
        sys.stderr.write("\n")
        sys.stderr.flush()

    return on_progress, finish


def _setup_logging(verbose: bool) -> None:
    """[TIME] [LEVEL] [LOGGER]: MESSAGE"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    logging.getLogger("httpx").setLevel(logging.INFO if verbose else logging.WARNING)


app = typer.Typer(
    name="dbxfs",
    help="Dropbox file CLI. Save a token once; all commands read and write through file handles.",
)

_token_option: type = Annotated[
    Optional[str],
    typer.Option("--token", "-t", help=f"Access token (overrides ${TOKEN_ENV_VAR} and saved config)"),
]


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    _setup_logging(verbose)


def _require_fs(token: str | None) -> DropboxFs:
    token = resolve_token(token)
    if not token:
        typer.echo(f"error: no access token. run 'dbxfs login', set ${TOKEN_ENV_VAR} or pass --token", err=True)
        raise typer.Exit(1)
    cfg = load_config() or {}
    return DropboxFs(DropboxClient(token), dir_list_limit=int(cfg.get("dir_list_limit") or 0))


def _fail(e: Exception) -> typer.Exit:
    typer.echo(f"error: {e}", err=True)
    return typer.Exit(1)


def _format_entry(info: FileInfo) -> str:
    if info.is_dir:
        return f"  {info.name}/"
    modified = info.mod_time.isoformat() if info.mod_time else "-"
    return f"  {info.name}  {_format_size(info.size)}  {modified}"


# ------------------------- login / logout / auth -------------------------


@app.command("login", help="Save access token to local config")
def login(
    token: Annotated[Optional[str], typer.Option("--token", "-t", help="Access token (unsafe in shell)")] = None,
    dir_list_limit: Annotated[Optional[int], typer.Option("--dir-list-limit", help="Directory page size hint")] = None,
) -> None:
    token = token or getpass.getpass("Access token: ").strip()
    if not token:
        typer.echo("error: access token required", err=True)
        raise typer.Exit(1)
    save_config(token, dir_list_limit)
    typer.echo("Saved.")


@app.command("logout", help="Clear saved token")
def logout() -> None:
    if clear_config():
        typer.echo("Cleared.")
    else:
        typer.echo("No saved credentials.")


auth_app = typer.Typer(help="Auth subcommands")
app.add_typer(auth_app, name="auth")


@auth_app.command("status", help="Show whether a token is saved")
def auth_status() -> None:
    cfg = load_config()
    if not cfg:
        typer.echo("Not logged in.")
        return
    typer.echo("auth: yes")
    if cfg.get("dir_list_limit"):
        typer.echo(f"dir_list_limit: {cfg['dir_list_limit']}")


@app.command("info", help="Show where the token comes from")
def info_cmd() -> None:
    if os.environ.get(TOKEN_ENV_VAR):
        typer.echo(f"token: ${TOKEN_ENV_VAR}")
    elif load_config():
        typer.echo("token: saved config")
    else:
        typer.echo("Not logged in. Run 'dbxfs login' or pass --token for commands.")


# ------------------------- ls / stat -------------------------


@app.command("ls", help="List directory")
def ls_cmd(
    path: Annotated[str, typer.Argument(help="Directory path (default: /)")] = "/",
    page_size: Annotated[int, typer.Option("--page-size", "-n", help="Entries per page (0: all at once)")] = 0,
    token: _token_option = None,
) -> None:
    fs = _require_fs(token)
    try:
        with fs.open(path) as f:
            if not f.stat().is_dir:
                typer.echo(_format_entry(f.stat()))
                return
            if page_size <= 0:
                for info in f.readdir(0):
                    typer.echo(_format_entry(info))
                return
            while True:
                page = f.readdir(page_size)
                for info in page:
                    typer.echo(_format_entry(info))
                if len(page) < page_size:
                    break
    except Exception as e:
        raise _fail(e)
    finally:
        fs.client.close()


@app.command("stat", help="Show file metadata")
def stat_cmd(
    path: Annotated[str, typer.Argument(help="Remote path")],
    token: _token_option = None,
) -> None:
    fs = _require_fs(token)
    try:
        info = fs.stat(path)
    except Exception as e:
        raise _fail(e)
    finally:
        fs.client.close()
    typer.echo(f"name: {info.name}")
    typer.echo(f"type: {info.kind.value}")
    typer.echo(f"size: {info.size}")
    typer.echo(f"modified: {info.mod_time.isoformat() if info.mod_time else '-'}")
    typer.echo(f"mode: {info.mode:o}")


# ------------------------- cat / get -------------------------


@app.command("cat", help="Print file contents (optionally from a byte offset)")
def cat_cmd(
    path: Annotated[str, typer.Argument(help="Remote file path")],
    offset: Annotated[int, typer.Option("--offset", "-o", help="Start at byte offset (negative: from end)")] = 0,
    token: _token_option = None,
) -> None:
    fs = _require_fs(token)
    try:
        with fs.open(path) as f:
            if offset > 0:
                f.seek(offset, io.SEEK_SET)
            elif offset < 0:
                f.seek(-offset, io.SEEK_END)
            while True:
                chunk = f.read(COPY_CHUNK_SIZE)
                if not chunk:
                    break
                typer.echo(chunk, nl=False)
    except Exception as e:
        raise _fail(e)
    finally:
        fs.client.close()


@app.command("get", help="Download a file")
def get_cmd(
    remote_path: Annotated[str, typer.Argument(help="Remote file path (e.g. /docs/foo.txt)")],
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Local path (default: same name)")] = None,
    progress: Annotated[bool, typer.Option("--progress", "-p", help="Show download progress")] = False,
    token: _token_option = None,
) -> None:
    out = output if output is not None else Path(Path(remote_path).name or "download")
    fs = _require_fs(token)
    on_progress, progress_finish = _make_progress_callback(out.name) if progress else (None, lambda: None)
    try:
        with fs.open(remote_path) as f:
            total = f.stat().size
            done = 0
            out.parent.mkdir(parents=True, exist_ok=True)
            with out.open("wb") as fp:
                while True:
                    chunk = f.read(COPY_CHUNK_SIZE)
                    if not chunk:
                        break
                    fp.write(chunk)
                    done += len(chunk)
                    if on_progress:
                        on_progress(done, total)
    except Exception as e:
        raise _fail(e)
    finally:
        if progress:
            progress_finish()
        fs.client.close()
    typer.echo(f"Saved to {out}.")


# ------------------------- put -------------------------


@app.command("put", help="Upload a file (overwrites the remote file)")
def put_cmd(
    path: Annotated[Path, typer.Argument(help="Local file path")],
    remote_path: Annotated[Optional[str], typer.Argument(help="Remote path (default: /<local name>)")] = None,
    progress: Annotated[bool, typer.Option("--progress", "-p", help="Show upload progress")] = False,
    token: _token_option = None,
) -> None:
    if not path.is_file():
        typer.echo(f"error: not a file: {path}", err=True)
        raise typer.Exit(1)
    remote = remote_path or f"/{path.name}"
    total = path.stat().st_size
    fs = _require_fs(token)
    on_progress, progress_finish = _make_progress_callback(path.name) if progress else (None, lambda: None)
    try:
        f = fs.create(remote)
        try:
            with path.open("rb") as fp:
                done = 0
                while True:
                    chunk = fp.read(COPY_CHUNK_SIZE)
                    if not chunk:
                        break
                    done += f.write(chunk)
                    if on_progress:
                        on_progress(done, total)
        finally:
            # 上传失败在 close 时抛出
            f.close()
        info = f.stat()
    except Exception as e:
        raise _fail(e)
    finally:
        if progress:
            progress_finish()
        fs.client.close()
    typer.echo(f"Uploaded {info.name} ({_format_size(info.size)}).")


# ------------------------- mkdir / rm / mv -------------------------


@app.command("mkdir", help="Create a folder")
def mkdir_cmd(
    path: Annotated[str, typer.Argument(help="Remote folder path")],
    token: _token_option = None,
) -> None:
    fs = _require_fs(token)
    try:
        fs.mkdir(path)
    except Exception as e:
        raise _fail(e)
    finally:
        fs.client.close()
    typer.echo("Created.")


@app.command("rm", help="Delete a file or folder")
def rm_cmd(
    path: Annotated[str, typer.Argument(help="Remote path")],
    token: _token_option = None,
) -> None:
    fs = _require_fs(token)
    try:
        fs.remove(path)
    except Exception as e:
        raise _fail(e)
    finally:
        fs.client.close()
    typer.echo("Deleted.")


@app.command("mv", help="Move or rename a file or folder")
def mv_cmd(
    src: Annotated[str, typer.Argument(help="Source path")],
    dst: Annotated[str, typer.Argument(help="Destination path")],
    token: _token_option = None,
) -> None:
    fs = _require_fs(token)
    try:
        fs.rename(src, dst)
    except Exception as e:
        raise _fail(e)
    finally:
        fs.client.close()
    typer.echo("Moved.")


# ------------------------- main -------------------------


def main() -> None:
    app()


if __name__ == "__main__":
    main()
