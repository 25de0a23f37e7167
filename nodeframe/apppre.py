"""Preparation of an application layout document before it is loaded.

Missing infrastructure is filled in here. A gate application is added when
several applications exist and none is a gate. Each application gets a
main-loop server when none of its servers runs the main loop. Each
application also gets a routing network server when several applications
exist and it has none.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET

GATE_APP_NAME = "gateAuto"
DEFAULT_NET_NUM = "4"
GATE_NET_TYPE = 1

_LEADING_INT = re.compile(r"[+-]?\d+")
_OPEN_NUM_WIDTH = 3


class AppXmlError(ValueError):
    """Raised when the application layout document is inconsistent."""


def _atoi(text: str | None) -> int:
    if text is None:
        return 0
    match = _LEADING_INT.match(text.lstrip())
    return int(match.group()) if match else 0


def get_key_value(text: str) -> tuple[str, str] | None:
    """Split ``key=value``; return None unless there is exactly one ``=``."""
    parts = text.split("=", 2)
    if len(parts) != 2:
        return None
    return parts[0], parts[1]


def _app_names(apps: ET.Element) -> tuple[set[str], bool]:
    names: set[str] = set()
    found_gate = False
    for app in apps:
        if app.tag in names:
            raise AppXmlError(f"two apps have the same name: {app.tag}")
        names.add(app.tag)
        if _atoi(app.get("appNetType")) == GATE_NET_TYPE:
            if found_gate:
                raise AppXmlError("more than one gate app")
            found_gate = True
    return names, found_gate


def _add_gate(apps: ET.Element, names: set[str]) -> None:
    if GATE_APP_NAME in names:
        raise AppXmlError(f"app name {GATE_APP_NAME!r} is reserved for the gate")
    gate = ET.SubElement(apps, GATE_APP_NAME)
    ET.SubElement(gate, "appArg").text = f"frameConfigFile={GATE_APP_NAME}Frame.txt"
    ET.SubElement(gate, "appArg").text = f"logicConfigFile={GATE_APP_NAME}LogicConf.txt"
    gate.set("appNetType", str(GATE_NET_TYPE))
    ET.SubElement(gate, "server")


def _add_server(servers: ET.Element, existing: set[str], name: str, **attrs: str) -> None:
    if name in existing:
        raise AppXmlError(f"server name {name!r} is already used")
    ET.SubElement(servers, name, attrs)


def preprocess_apps(root: ET.Element) -> None:
    """Complete the ``app`` section of ``root`` in place."""
    apps = root.find("app")
    if apps is None:
        raise AppXmlError("document has no app node")
    net_num = apps.get("netNum", DEFAULT_NET_NUM)
    names, found_gate = _app_names(apps)
    several = len(names) > 1
    if not found_gate and several:
        _add_gate(apps, names)

    for app in list(apps):
        servers = app.find("server")
        if servers is None:
            break
        app_net_type = _atoi(app.get("appNetType"))
        server_names: set[str] = set()
        has_route = False
        all_auto_run = True
        for server in servers:
            if server.tag in server_names:
                raise AppXmlError(f"two servers of {app.tag!r} have the same name: {server.tag}")
            server_names.add(server.tag)
            if "route" in server.attrib and _atoi(server.get("route")):
                has_route = True
            if "mainLoop" in server.attrib and _atoi(server.get("mainLoop")):
                all_auto_run = False
        if all_auto_run:
            _add_server(servers, server_names, f"{app.tag}ConTh", mainLoop="1")
        if not has_route and several:
            open_num = net_num if app_net_type != 0 else "1"
            _add_server(
                servers,
                server_names,
                f"{app.tag}NetTh",
                route="1",
                openNum=open_num[:_OPEN_NUM_WIDTH],
            )