"""Frame configuration: ``key=value`` settings read from files and argument lists."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator

_COMMENT_MARK = "##"
_LEADING_INT = re.compile(r"[+-]?\d+")

_DEFAULT_GATE_INFO = (
    "forClientIp:127.0.0.1*forServerIp:127.0.0.1*startPort:12000"
    "+forClientIp:127.0.0.1*forServerIp:127.0.0.1*startPort:22000"
)
_TOKEN_TIMER_NOTE = "删除token计算器时间间隔(单位毫秒)"


class _Kind(Enum):
    """Storage kind of a setting, which fixes how it is parsed and written."""

    BOOL = ("bool", 0, False)
    WORD = ("word", 16, True)
    UWORD = ("uword", 16, False)
    UDWORD = ("udword", 32, False)
    STR = ("str", 0, False)

    def __init__(self, label: str, bits: int, signed: bool) -> None:
        self.label = label
        self.bits = bits
        self.signed = signed


def _option(default, kind: _Kind, comment: str | None = None):
    return field(default=default, metadata={"kind": kind, "comment": comment})


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text.lstrip())
    return int(match.group()) if match else 0


def _first_token(text: str) -> str:
    parts = text.split()
    return parts[0] if parts else ""


def _parse_int(text: str, kind: _Kind, current: int) -> int:
    """Read a leading integer the way a formatted stream extraction does."""
    text = text.lstrip()
    if not text:
        return current
    match = _LEADING_INT.match(text)
    if match is None:
        return 0
    number = int(match.group())
    if kind.signed:
        low = -(1 << (kind.bits - 1))
        high = (1 << (kind.bits - 1)) - 1
        return min(max(number, low), high)
    high = (1 << kind.bits) - 1
    magnitude = abs(number)
    if magnitude > high:
        return high
    return (-magnitude) % (1 << kind.bits) if number < 0 else magnitude


def _parse_str(text: str) -> str:
    token = _first_token(text)
    if token.startswith('"') and token.endswith('"'):
        token = token[1:-1]
    return token


@dataclass
class FrameConfig:
    """Runtime settings of a frame process, with their defaults."""

    alloc_debug: bool = _option(False, _Kind.BOOL)
    app_group_id: int = _option(4, _Kind.UWORD)
    app_net_type: int = _option(0, _Kind.WORD)
    clear_tag: bool = _option(False, _Kind.BOOL)
    dbg_sleep: int = _option(0, _Kind.UWORD)
    del_save_token_time: int = _option(30000, _Kind.UDWORD, _TOKEN_TIMER_NOTE)
    dump_msg: bool = _option(False, _Kind.BOOL)
    end_point: str = _option("", _Kind.STR)
    frame_config_file: str = _option("", _Kind.STR, "框架配置文件")
    frame_home: str = _option("", _Kind.STR, "框架的安装目录")
    gate_app_group_id: int = _option(0, _Kind.UWORD)
    gate_index: int = _option(0xFFFF, _Kind.UWORD)
    gate_info: str = _option(_DEFAULT_GATE_INFO, _Kind.STR, "gate IP 等")
    gate_route_server_group_id: int = _option(0, _Kind.UWORD)
    heartbeat_setp: int = _option(900000, _Kind.UDWORD, _TOKEN_TIMER_NOTE)
    home_dir: str = _option("", _Kind.STR)
    ip: str = _option("127.0.0.1", _Kind.STR)
    level0: str = _option("cppLevel0L", _Kind.STR)
    log_con: bool = _option(True, _Kind.BOOL)
    log_file: str = _option("", _Kind.STR)
    log_level: int = _option(2, _Kind.WORD)
    logic_model: str = _option("", _Kind.STR)
    model_name: str = _option("", _Kind.STR)
    model_s: str = _option("", _Kind.STR)
    net_lib: str = _option("", _Kind.STR)
    net_num: int = _option(4, _Kind.UWORD)
    project_install_dir: str = _option("", _Kind.STR, "安装目录")
    run_work_num: str = _option("", _Kind.STR, "client进程及线程启动的数量")
    save_pack_tag: int = _option(0, _Kind.UDWORD)
    serialize_pack_lib: str = _option("protobufSer", _Kind.STR)
    srand: bool = _option(True, _Kind.BOOL)
    start_port: int = _option(12000, _Kind.UWORD)
    test_tag: int = _option(1234, _Kind.UDWORD)

    def proc_cmd_args(self, args: Iterable[str]) -> None:
        """Apply ``key=value`` entries; malformed or unknown entries are ignored."""
        for arg in args:
            parts = arg.split("=", 2)
            if len(parts) != 2:
                continue
            raw_key, raw_value = parts
            name = _NAMES_BY_KEY.get(_first_token(raw_key))
            if name is None:
                continue
            kind: _Kind = _KINDS[name]
            if kind is _Kind.BOOL:
                token = _first_token(raw_value)
                value = token == "true" or _atoi(token) != 0
            elif kind is _Kind.STR:
                value = _parse_str(raw_value)
            else:
                value = _parse_int(raw_value, kind, getattr(self, name))
            setattr(self, name, value)

    def dump_config(self, path) -> None:
        """Write every setting to ``path``, one ``key=value`` line each."""
        with open(path, "w", encoding="utf-8") as stream:
            stream.writelines(self._lines())

    def load_config(self, path) -> None:
        """Read settings from ``path``; if it cannot be found, write the current ones there."""
        try:
            with open(path, encoding="utf-8") as stream:
                text = stream.read()
        except FileNotFoundError:
            self.dump_config(path)
            return
        lines = text.split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        self.proc_cmd_args(line.split(_COMMENT_MARK, 1)[0] for line in lines)

    def _lines(self) -> Iterator[str]:
        for item in fields(self):
            kind: _Kind = item.metadata["kind"]
            value = getattr(self, item.name)
            if kind is _Kind.BOOL:
                text = "1" if value else "0"
            elif kind is _Kind.STR:
                text = value if value else '""'
            else:
                text = str(value)
            comment = item.metadata["comment"]
            suffix = f"  {_COMMENT_MARK} {comment}   " if comment else ""
            yield f"{_camel(item.name)}={text}{suffix}\n"


_NAMES_BY_KEY = {_camel(item.name): item.name for item in fields(FrameConfig)}
_KINDS = {item.name: item.metadata["kind"] for item in fields(FrameConfig)}


def config_keys() -> list[str]:
    """Keys as they appear in configuration files, in file order."""
    return [_camel(item.name) for item in fields(FrameConfig)]