"""Message definitions: structs, RPC groups and their ask/ret messages read from XML."""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path

EMPTY_LOOP_HANDLE = "c_emptyLoopHandle"
SESSION_PARAMS = ", serverIdType srcSer, SessionIDType seId"

_LEADING_INT = re.compile(r"[+-]?\d+")
_PROLOG = re.compile(r"^\s*<\?xml[^>]*\?>", re.IGNORECASE)


class MsgLoadError(ValueError):
    """Raised when a message definition document is malformed or inconsistent."""


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text.lstrip())
    return int(match.group()) if match else 0


def _bool_attr(element: ET.Element, name: str) -> bool | None:
    value = element.get(name)
    if value is None:
        return None
    return value.strip() == "true" or _atoi(value) != 0


def _int_attr(element: ET.Element, name: str) -> int | None:
    value = element.get(name)
    return None if value is None else _atoi(value)


def _to_word(name: str) -> str:
    return name[:1].upper() + name[1:]


@dataclass
class DataField:
    """One member of a struct or message."""

    name: str
    data_type: str
    commit: str | None = None
    length: int = 1
    zero_end: bool = False
    have_size: bool = False
    word_size: bool = False


@dataclass
class StructDef:
    """A named record with fields kept in declaration order."""

    name: str
    power_com: bool = True
    commit: str | None = None
    data: dict[str, DataField] = field(default_factory=dict)

    def has_data(self) -> bool:
        """True when the struct declares at least one field."""
        return bool(self.data)


@dataclass
class Message(StructDef):
    """An ask or ret message of an RPC, with the names generated for it."""

    msg_name: str = ""
    str_msg_id: str = ""
    msg_full_name: str = ""
    ext_ph: bool = False
    need_session: bool = False
    addr_type: int = 0
    pack_fun_name: str = ""
    msg_fun_name: str = ""
    msg_fun_dec: str = ""
    def_pro_server_id: str | None = EMPTY_LOOP_HANDLE
    def_pro_server_tmp_id: str | None = None


@dataclass
class Rpc:
    """An RPC of a group: the names of its ask and, optionally, ret message."""

    name: str
    group_name: str
    ask_msg_name: str = ""
    ret_msg_name: str | None = None


@dataclass
class MsgGroup:
    """A group of RPCs sharing defaults and a message id space."""

    name: str
    has_order: bool = False
    order: int = 0
    ext_ph: bool = False
    addr_type: int = 0
    rpc_names: list[str] = field(default_factory=list)

    @property
    def full_change_name(self) -> str:
        return f"{self.name}2FullMsg"

    @property
    def rpc_src_file_name(self) -> str:
        return f"{self.name}Rpc"


@dataclass
class MessageCatalog:
    """Everything loaded from the message files of one protocol."""

    pmp_name: str = "defMsg"
    msg_def_files: list[str] = field(default_factory=list)
    structs: dict[str, StructDef] = field(default_factory=dict)
    groups: dict[str, MsgGroup] = field(default_factory=dict)
    rpcs: dict[str, Rpc] = field(default_factory=dict)
    msgs: dict[str, Message] = field(default_factory=dict)

    def find_msg(self, name: str) -> Message | None:
        """Return the message called ``name``, or None."""
        return self.msgs.get(name)


def _parse_document(text: str) -> ET.Element:
    body = _PROLOG.sub("", text, count=1)
    try:
        return ET.fromstring(f"<_document>{body}</_document>")
    except ET.ParseError as exc:
        raise MsgLoadError(f"malformed message document: {exc}") from exc


def _load_body(struct: StructDef, element: ET.Element) -> None:
    """Fill ``struct`` from ``element``'s attributes and child elements."""
    commit = element.get("commit")
    if commit is not None:
        struct.commit = commit
    power_com = _int_attr(element, "powerCom")
    if power_com is not None:
        struct.power_com = power_com != 0
    for child in element:
        data_type = child.get("dataType")
        if data_type is None:
            raise MsgLoadError(f"field {child.tag!r} of {element.tag!r} has no dataType")
        if child.tag in struct.data:
            raise MsgLoadError(
                f"two fields have the same name {child.tag!r} in {element.tag!r}"
            )
        item = DataField(child.tag, data_type, commit=child.get("commit"))
        length = _int_attr(child, "length")
        if length is not None:
            item.length = length
        for attr, name in (
            ("zeroEnd", "zero_end"),
            ("haveSize", "have_size"),
            ("wordSize", "word_size"),
        ):
            flag = _bool_attr(child, attr)
            if flag is not None:
                setattr(item, name, flag)
        struct.data[child.tag] = item


def _load_structs(element: ET.Element | None, catalog: MessageCatalog, power_com: bool) -> None:
    if element is None:
        return
    for child in element:
        if child.tag in catalog.structs:
            raise MsgLoadError(f"two structs have the same name: {child.tag}")
        struct = StructDef(child.tag, power_com=power_com)
        try:
            _load_body(struct, child)
        except MsgLoadError:
            # A faulty body keeps the fields read so far; the struct is still registered.
            pass
        catalog.structs[child.tag] = struct


def _new_message(name: str, power_com: bool, group: MsgGroup, element: ET.Element) -> Message:
    msg_id = f"{group.name}MsgId_{name}"
    ext_ph = _bool_attr(element, "extPH")
    need_session = _bool_attr(element, "neetSession")
    addr_type = _int_attr(element, "addrType")
    word = _to_word(name)
    return Message(
        name,
        power_com=power_com,
        msg_name=f"{name}Msg",
        str_msg_id=msg_id,
        msg_full_name=f"{group.full_change_name}({msg_id})",
        ext_ph=group.ext_ph if ext_ph is None else ext_ph,
        need_session=bool(need_session),
        addr_type=group.addr_type if addr_type is None else addr_type,
        pack_fun_name=f"on{word}",
        msg_fun_name=f"proc{word}",
    )


def _load_body_or_fail(message: Message, element: ET.Element, rpc_name: str) -> None:
    try:
        _load_body(message, element)
    except MsgLoadError as exc:
        raise MsgLoadError(f"rpc {rpc_name!r}: {exc}") from exc


def _load_rpc(element: ET.Element, group: MsgGroup, catalog: MessageCatalog, power_com: bool) -> None:
    rpc_name = element.tag
    if rpc_name in catalog.rpcs:
        raise MsgLoadError(f"rpc has the same name: {rpc_name}")
    rpc = Rpc(rpc_name, group.name)
    catalog.rpcs[rpc_name] = rpc
    group.rpc_names.append(rpc_name)

    ask_element = element.find("ask")
    if ask_element is None:
        raise MsgLoadError(f"rpc {rpc_name!r} has no ask")
    ask = _new_message(f"{rpc_name}Ask", power_com, group, ask_element)
    rpc.ask_msg_name = ask.name
    _load_body_or_fail(ask, ask_element, rpc_name)
    if ask.name in catalog.msgs:
        raise MsgLoadError(f"msg has the same name: {ask.name}")
    catalog.msgs[ask.name] = ask

    ask_dec = f"void {ask.msg_fun_name} ("
    ask_has_data = ask.has_data()
    if ask_has_data:
        ask_dec += f"const {ask.name}& rAsk "

    ret_element = element.find("ret")
    if ret_element is not None:
        ret = _new_message(f"{rpc_name}Ret", power_com, group, ret_element)
        rpc.ret_msg_name = ret.name
        _load_body_or_fail(ret, ret_element, rpc_name)
        ret_dec = f"void {ret.msg_fun_name} ("
        if ask_has_data:
            ret_dec += f"const {ask.name}& rAsk"
        if ret.has_data():
            if ask_has_data:
                ask_dec += ", "
                ret_dec += ", "
            ask_dec += f"{ret.name}& rRet"
            ret_dec += f"{ret.name}& rRet"
        if ret.need_session:
            ret_dec += SESSION_PARAMS
        ret.msg_fun_dec = ret_dec + ")"
        if ret.name in catalog.msgs:
            raise MsgLoadError(f"msg has the same name: {ret.name}")
        catalog.msgs[ret.name] = ret

    if ask.need_session:
        ask_dec += SESSION_PARAMS
    ask.msg_fun_dec = ask_dec + ")"


def _load_group(element: ET.Element, catalog: MessageCatalog, power_com: bool) -> None:
    group = MsgGroup(element.tag)
    order = _int_attr(element, "order")
    if order is not None:
        group.has_order = True
        group.order = order
    ext_ph = _bool_attr(element, "extPH")
    if ext_ph is not None:
        group.ext_ph = ext_ph
    addr_type = _int_attr(element, "addrType")
    if addr_type is not None:
        group.addr_type = addr_type
    if group.name in catalog.groups:
        raise MsgLoadError(f"group has the same name: {group.name}")
    catalog.groups[group.name] = group
    for rpc_element in element:
        _load_rpc(rpc_element, group, catalog, power_com)


def load_message_string(text: str, catalog: MessageCatalog) -> None:
    """Add the structs and RPC groups defined in ``text`` to ``catalog``."""
    document = _parse_document(text)
    power_com = True
    power_element = document.find("powerCom")
    if power_element is not None:
        power_com = _atoi(power_element.text or "") != 0
    _load_structs(document.find("struct"), catalog, power_com)
    rpc_element = document.find("rpc")
    if rpc_element is not None:
        for group_element in rpc_element:
            _load_group(group_element, catalog, power_com)


def load_message_file(path, catalog: MessageCatalog) -> None:
    """Add the definitions of the XML file at ``path`` to ``catalog``."""
    load_message_string(Path(path).read_text(encoding="utf-8"), catalog)