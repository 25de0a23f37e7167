"""Loading of an application layout document into apps, servers and endpoints."""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from .apppre import AppXmlError, get_key_value, preprocess_apps
from .msgdefs import EMPTY_LOOP_HANDLE, MessageCatalog, load_message_file

DEFAULT_PMP = "defMsg"
DEFAULT_RET_VALUE = "procPacketFunRetType_del"
LISTEN_IP = "0.0.0.0"
CONNECT_IP = "127.0.0.1"

_LEADING_INT = re.compile(r"[+-]?\d+")


def _atoi(text: str | None) -> int:
    if text is None:
        return 0
    match = _LEADING_INT.match(text.lstrip())
    return int(match.group()) if match else 0


def _first_token(text: str) -> str:
    parts = text.split()
    return parts[0] if parts else ""


@dataclass
class EndPoint:
    """A listening or connecting endpoint of a server."""

    name: str = ""
    ip: str = ""
    port: int = 0
    is_default: bool = True
    user_data: int = 0
    target: str | None = None


@dataclass(frozen=True)
class ProcRpc:
    """An RPC message that a server handles."""

    name: str
    ask: bool
    ret_value: str = DEFAULT_RET_VALUE


@dataclass
class ServerSpec:
    """A server of an application, as declared in the layout document."""

    name: str
    server_group_id: str = ""
    attrs: list[str] = field(default_factory=list)
    fps_setp: int = 0
    open_num: int = 1
    route: bool = False
    sleep_setp: int = 0
    rear_end: bool = False
    reg_route: bool = False
    auto_run: bool = True
    listen: list[EndPoint] = field(default_factory=list)
    connect: list[EndPoint] = field(default_factory=list)
    proc_rpcs: list[ProcRpc] = field(default_factory=list)

    @property
    def handle(self) -> str:
        return f"{self.name}Handle"

    @property
    def tmp_handle(self) -> str:
        return f"{self.name}TmpHandle"

    @property
    def reg_pack_fun_name(self) -> str:
        return f"reg{self.name[:1].upper()}{self.name[1:]}ProcPacketFun"

    @property
    def reg_pack_fun_dec(self) -> str:
        return f"int {self.reg_pack_fun_name} (regMsgFT fnRegMsg, ServerIDType serId)"

    @property
    def has_default_listener(self) -> bool:
        return any(ep.is_default for ep in self.listen)

    @property
    def has_default_connector(self) -> bool:
        return any(ep.is_default for ep in self.connect)


@dataclass
class AppSpec:
    """An application: its arguments, servers and main-loop server."""

    name: str
    net_type: int = 0
    detach_server_s: bool = False
    args: list[str] = field(default_factory=list)
    servers: dict[str, ServerSpec] = field(default_factory=dict)
    order: list[ServerSpec] = field(default_factory=list)
    main_loop_server: str | None = None
    main_loop_group_id: str | None = None

    @property
    def app_group_id(self) -> str:
        return f"{self.name}GroupId"


@dataclass
class ProjectSpec:
    """Everything loaded from a project layout document."""

    xml_dir: Path = Path(".")
    config_def: str | None = None
    config_file: str | None = None
    net_num: int | None = None
    args: list[str] = field(default_factory=list)
    endpoints: dict[str, int] = field(default_factory=dict)
    catalogs: dict[str, MessageCatalog] = field(default_factory=dict)
    apps: dict[str, AppSpec] = field(default_factory=dict)
    servers: dict[str, ServerSpec] = field(default_factory=dict)
    root_servers: list[str] = field(default_factory=list)

    def server_by_handle(self, handle: str) -> ServerSpec | None:
        """Return the server whose handle is ``handle``, or None."""
        for name in sorted(self.servers):
            server = self.servers[name]
            if server.handle == handle:
                return server
        return None

    def server_by_listen_endpoint(self, name: str) -> ServerSpec | None:
        """Return the last server, in name order, listening on endpoint ``name``."""
        found = None
        for server_name in sorted(self.servers):
            server = self.servers[server_name]
            if any(ep.name == name for ep in server.listen):
                found = server
        return found


def parse_endpoints(element: ET.Element) -> dict[str, int]:
    """Read the named global endpoints and their ports."""
    endpoints: dict[str, int] = {}
    for child in element:
        port = child.get("port")
        if port is None:
            raise AppXmlError(f"endpoint {child.tag!r} has no port")
        if child.tag in endpoints:
            raise AppXmlError(f"two endpoints have the same name: {child.tag}")
        endpoints[child.tag] = _atoi(port) & 0xFFFF
    return endpoints


def _endpoint_flags(element: ET.Element, endpoint: EndPoint) -> None:
    def_route = element.get("defRoute")
    endpoint.is_default = True if def_route is None else _atoi(def_route) != 0
    endpoint.user_data = _atoi(element.get("teag"))


def _load_proc_rpcs(
    element: ET.Element, server: ServerSpec, app: AppSpec, catalog: MessageCatalog | None
) -> None:
    seen: set[tuple[str, bool]] = set()
    for child in element:
        ask_type = child.get("askType")
        if ask_type is None:
            raise AppXmlError(f"rpc {child.tag!r} has no askType")
        if ask_type == "ask":
            ask = True
        elif ask_type == "ret":
            ask = False
        else:
            raise AppXmlError(f"rpc {child.tag!r} has the wrong askType {ask_type!r}")
        if (child.tag, ask) in seen:
            raise AppXmlError(f"rpc {child.tag!r} with askType {ask_type!r} appears twice")
        seen.add((child.tag, ask))
        server.proc_rpcs.append(ProcRpc(child.tag, ask, child.get("retValue", DEFAULT_RET_VALUE)))
        msg_name = child.tag + ("Ask" if ask else "Ret")
        message = catalog.find_msg(msg_name) if catalog is not None else None
        if message is None:
            raise AppXmlError(f"message {msg_name!r} is not defined")
        if message.def_pro_server_id == EMPTY_LOOP_HANDLE:
            message.def_pro_server_id = server.handle
            message.def_pro_server_tmp_id = (
                f"(({app.app_group_id}<<8) + {server.server_group_id})"
            )


def load_server(
    element: ET.Element,
    app: AppSpec,
    endpoints: dict[str, int],
    catalog: MessageCatalog | None,
) -> ServerSpec:
    """Build the server declared by ``element`` of ``app``."""
    name = element.tag
    server = ServerSpec(name, server_group_id=f"{app.name}ServerTmpID_{name}")
    if (value := element.get("showFps")) is not None:
        server.attrs.append(f"showFps={value}")
    if (value := element.get("showFpsSetp")) is not None:
        server.attrs.append(f"showFpsSetp={value}")
        server.fps_setp = _atoi(value)
    if (value := element.get("openNum")) is not None:
        server.open_num = _atoi(value)
    if (value := element.get("route")) is not None:
        server.route = _atoi(value) != 0
    if (value := element.get("sleepSetp")) is not None:
        server.sleep_setp = _atoi(value)
        server.attrs.append(f"sleepSetp={value}")
    if (value := element.get("rearEnd")) is not None:
        server.rear_end = _atoi(value) != 0
    if (value := element.get("regRoute")) is not None:
        server.reg_route = _atoi(value) != 0
    if (value := element.get("autoRun")) is not None:
        server.auto_run = _atoi(value) != 0
    if _atoi(element.get("mainLoop")):
        if app.main_loop_server:
            raise AppXmlError(f"app {app.name!r} has more than one main-loop server")
        app.main_loop_server = server.tmp_handle
        app.main_loop_group_id = server.server_group_id
        server.auto_run = False

    for child in element:
        if child.tag == "listen":
            ep_name = child.get("name")
            if ep_name is None:
                raise AppXmlError(f"listen endpoint of {name!r} has no name")
            if ep_name not in endpoints:
                raise AppXmlError(f"endpoint has an unknown name: {ep_name}")
            endpoint = EndPoint(name=ep_name, port=endpoints[ep_name])
            _endpoint_flags(child, endpoint)
            endpoint.ip = child.get("ip", LISTEN_IP)
            server.listen.append(endpoint)
        elif child.tag == "connect":
            endpoint = EndPoint()
            _endpoint_flags(child, endpoint)
            target = child.get("targetEndPoint")
            if target is not None:
                endpoint.target = target
                endpoint.name = target
            endpoint.ip = child.get("ip", CONNECT_IP)
            server.connect.append(endpoint)

    defaults = sum(1 for ep in server.connect if ep.is_default)
    if server.connect and defaults != 1:
        raise AppXmlError(f"server {name!r} must have exactly one default connector")

    proc = element.find("procRpc")
    if proc is not None:
        _load_proc_rpcs(proc, server, app, catalog)
    return server


def _move_first(order: list[ServerSpec], start: int, wanted) -> bool:
    for index in range(start + 1, len(order)):
        if wanted(order[index]):
            order[start], order[index] = order[index], order[start]
            return True
    return False


def order_servers(servers: Iterable[ServerSpec]) -> list[ServerSpec]:
    """Order servers so those with a default connector, else a listener, come first."""
    order = list(servers)
    if not order or order[0].has_default_connector:
        return order
    found = False
    for start in range(len(order) - 1):
        if not _move_first(order, start, lambda s: s.has_default_connector):
            break
        found = True
    if not found and not order[0].listen:
        for start in range(len(order) - 1):
            if not _move_first(order, start, lambda s: bool(s.listen)):
                break
    return order


def load_app(
    element: ET.Element, endpoints: dict[str, int], catalog: MessageCatalog | None
) -> AppSpec:
    """Build the application declared by ``element``."""
    app = AppSpec(element.tag)
    net_type = element.get("appNetType")
    if net_type is not None:
        app.net_type = _atoi(net_type) & 0xFF
    for arg in element.findall("appArg"):
        text = arg.text or ""
        pair = get_key_value(text)
        if pair is not None and _first_token(pair[0]) == "detachServerS":
            app.detach_server_s = _atoi(pair[1]) != 0
        app.args.append(text)

    servers = element.find("server")
    if servers is not None:
        for child in servers:
            if child.tag in app.servers:
                raise AppXmlError(f"two servers of {app.name!r} have the same name: {child.tag}")
            app.servers[child.tag] = load_server(child, app, endpoints, catalog)
        app.order = order_servers(app.servers.values())

    if not app.main_loop_server:
        for server in app.order:
            if server.open_num == 1:
                app.main_loop_server = server.tmp_handle
                app.main_loop_group_id = server.server_group_id
                server.auto_run = False
                break
    return app


def root_servers(apps: Iterable[AppSpec]) -> list[str]:
    """Handles of servers with a default listener and no default connector."""
    return [
        server.handle
        for app in apps
        for server in app.order
        if server.has_default_listener and not server.has_default_connector
    ]


def load_project(path) -> ProjectSpec:
    """Load the layout document at ``path`` together with its message files."""
    path = Path(path)
    try:
        root = ET.parse(path).getroot()
    except ET.ParseError as exc:
        raise AppXmlError(f"malformed layout document: {exc}") from exc
    preprocess_apps(root)

    project = ProjectSpec(xml_dir=path.parent)
    first_arg = root.find("appArg")
    if first_arg is not None:
        project.args.append(first_arg.text or "")

    apps_element = None
    for child in root:
        if child.tag == "configDef":
            project.config_def = child.text or ""
        elif child.tag == "configFile":
            project.config_file = child.text or ""
        elif child.tag == "endPoint":
            project.endpoints.update(parse_endpoints(child))
        elif child.tag == "defMsg":
            pmp_name = child.get("pmpName", DEFAULT_PMP)
            if pmp_name in project.catalogs:
                raise AppXmlError(f"two message sets have the same name: {pmp_name}")
            files = [child.get("file")] if child.get("file") is not None else []
            project.catalogs[pmp_name] = MessageCatalog(pmp_name, msg_def_files=files)
        elif child.tag == "app":
            apps_element = child

    project.catalogs.setdefault(DEFAULT_PMP, MessageCatalog(DEFAULT_PMP))
    for catalog in project.catalogs.values():
        for name in catalog.msg_def_files:
            load_message_file(project.xml_dir / name, catalog)

    if apps_element is None:
        raise AppXmlError("document has no app node")
    net_num = apps_element.get("netNum")
    if net_num is not None:
        project.net_num = _atoi(net_num)

    catalog = project.catalogs[DEFAULT_PMP]
    for app_element in apps_element:
        app = load_app(app_element, project.endpoints, catalog)
        for name, server in app.servers.items():
            if name in project.servers:
                raise AppXmlError(f"two servers have the same name: {name}")
            project.servers[name] = server
        project.apps[app.name] = app
    project.root_servers = root_servers(project.apps.values())
    return project