import xml.etree.ElementTree as ET

import pytest

from nodeframe.apploader import (
    AppSpec,
    ProcRpc,
    load_app,
    load_project,
    load_server,
    order_servers,
    parse_endpoints,
    root_servers,
)
from nodeframe.apppre import AppXmlError
from nodeframe.msgdefs import EMPTY_LOOP_HANDLE, MessageCatalog, load_message_string

ENDPOINTS = {"main": 12000, "side": 13000}

MSG_DOC = """<?xml version='1.0' encoding='utf-8' ?>
<struct></struct>
<rpc>
  <grp>
    <ping>
      <ask><v dataType="udword"/></ask>
      <ret><r dataType="udword"/></ret>
    </ping>
  </grp>
</rpc>
"""


def _el(text):
    return ET.fromstring(text)


def _catalog():
    catalog = MessageCatalog()
    load_message_string(MSG_DOC, catalog)
    return catalog


def test_parse_endpoints_reads_ports():
    eps = parse_endpoints(_el('<endPoint><main port="12000"/><side port="13000"/></endPoint>'))
    assert eps == {"main": 12000, "side": 13000}


def test_parse_endpoints_duplicate_raises():
    with pytest.raises(AppXmlError):
        parse_endpoints(_el('<endPoint><main port="1"/><main port="2"/></endPoint>'))


def test_parse_endpoints_missing_port_raises():
    with pytest.raises(AppXmlError):
        parse_endpoints(_el("<endPoint><main/></endPoint>"))


def test_listen_endpoint_defaults():
    app = AppSpec("appA")
    server = load_server(_el('<hub><listen name="main"/></hub>'), app, ENDPOINTS, None)
    ep = server.listen[0]
    assert (ep.name, ep.ip, ep.port, ep.is_default, ep.user_data) == (
        "main", "0.0.0.0", 12000, True, 0,
    )
    assert server.server_group_id == "appAServerTmpID_hub"
    assert server.handle == "hubHandle"
    assert server.handle in server.reg_pack_fun_dec or server.reg_pack_fun_name in server.reg_pack_fun_dec


def test_connect_endpoint_fields():
    app = AppSpec("appA")
    server = load_server(
        _el('<leaf><connect targetEndPoint="main" teag="7" defRoute="1"/></leaf>'),
        app, ENDPOINTS, None,
    )
    ep = server.connect[0]
    assert (ep.name, ep.target, ep.ip, ep.user_data, ep.is_default) == (
        "main", "main", "127.0.0.1", 7, True,
    )
    assert server.has_default_connector


def test_listen_ip_attribute_used():
    server = load_server(
        _el('<hub><listen name="side" ip="10.0.0.5" defRoute="0"/></hub>'),
        AppSpec("a"), ENDPOINTS, None,
    )
    assert server.listen[0].ip == "10.0.0.5"
    assert server.listen[0].port == 13000
    assert not server.has_default_listener


def test_unknown_listen_endpoint_raises():
    with pytest.raises(AppXmlError):
        load_server(_el('<hub><listen name="nowhere"/></hub>'), AppSpec("a"), ENDPOINTS, None)


def test_listen_without_name_raises():
    with pytest.raises(AppXmlError):
        load_server(_el("<hub><listen/></hub>"), AppSpec("a"), ENDPOINTS, None)


def test_two_default_connectors_raise():
    with pytest.raises(AppXmlError):
        load_server(_el("<c><connect/><connect/></c>"), AppSpec("a"), ENDPOINTS, None)


def test_single_non_default_connector_raises():
    with pytest.raises(AppXmlError):
        load_server(_el('<c><connect defRoute="0"/></c>'), AppSpec("a"), ENDPOINTS, None)


def test_server_attributes_recorded():
    server = load_server(
        _el('<s showFps="1" showFpsSetp="30" sleepSetp="5" openNum="3" route="1"/>'),
        AppSpec("a"), ENDPOINTS, None,
    )
    assert server.attrs == ["showFps=1", "showFpsSetp=30", "sleepSetp=5"]
    assert (server.fps_setp, server.sleep_setp, server.open_num, server.route) == (30, 5, 3, True)


def test_main_loop_server_set_on_app():
    app = AppSpec("a")
    server = load_server(_el('<m mainLoop="1"/>'), app, ENDPOINTS, None)
    assert app.main_loop_server == server.tmp_handle
    assert app.main_loop_group_id == server.server_group_id
    assert server.auto_run is False
    with pytest.raises(AppXmlError):
        load_server(_el('<n mainLoop="1"/>'), app, ENDPOINTS, None)


def test_proc_rpc_claims_message():
    catalog = _catalog()
    app = AppSpec("appA")
    server = load_server(
        _el('<s><procRpc><ping askType="ask"/></procRpc></s>'), app, ENDPOINTS, catalog
    )
    assert server.proc_rpcs == [ProcRpc("ping", True, "procPacketFunRetType_del")]
    msg = catalog.find_msg("pingAsk")
    assert msg.def_pro_server_id == server.handle
    assert server.server_group_id in msg.def_pro_server_tmp_id
    assert app.app_group_id in msg.def_pro_server_tmp_id
    assert catalog.find_msg("pingRet").def_pro_server_id == EMPTY_LOOP_HANDLE


def test_proc_rpc_first_server_keeps_message():
    catalog = _catalog()
    app = AppSpec("appA")
    first = load_server(_el('<s1><procRpc><ping askType="ret"/></procRpc></s1>'), app, ENDPOINTS, catalog)
    load_server(_el('<s2><procRpc><ping askType="ret"/></procRpc></s2>'), app, ENDPOINTS, catalog)
    assert catalog.find_msg("pingRet").def_pro_server_id == first.handle


@pytest.mark.parametrize(
    "body",
    [
        '<procRpc><ping/></procRpc>',
        '<procRpc><ping askType="both"/></procRpc>',
        '<procRpc><ping askType="ask"/><ping askType="ask"/></procRpc>',
        '<procRpc><pong askType="ask"/></procRpc>',
    ],
)
def test_proc_rpc_errors(body):
    with pytest.raises(AppXmlError):
        load_server(_el(f"<s>{body}</s>"), AppSpec("a"), ENDPOINTS, _catalog())


def test_order_servers_moves_default_connector_first():
    app = AppSpec("a")
    plain = load_server(_el("<p/>"), app, ENDPOINTS, None)
    hub = load_server(_el('<h><listen name="main"/></h>'), app, ENDPOINTS, None)
    leaf = load_server(_el("<l><connect/></l>"), app, ENDPOINTS, None)
    order = order_servers([plain, hub, leaf])
    assert order[0] is leaf
    assert sorted(s.name for s in order) == ["h", "l", "p"]


def test_order_servers_moves_listener_first():
    app = AppSpec("a")
    plain = load_server(_el("<p/>"), app, ENDPOINTS, None)
    hub = load_server(_el('<h><listen name="main"/></h>'), app, ENDPOINTS, None)
    assert order_servers([plain, hub]) == [hub, plain]


def test_order_servers_keeps_leading_connector():
    app = AppSpec("a")
    leaf = load_server(_el("<l><connect/></l>"), app, ENDPOINTS, None)
    plain = load_server(_el("<p/>"), app, ENDPOINTS, None)
    assert order_servers([leaf, plain]) == [leaf, plain]
    assert order_servers([]) == []


def test_root_servers_lists_pure_listeners():
    app = load_app(
        _el('<a><server><h><listen name="main"/></h><l><connect/></l></server></a>'),
        ENDPOINTS, None,
    )
    assert root_servers([app]) == [app.servers["h"].handle]


def test_load_app_args_and_detach():
    app = load_app(
        _el('<a appNetType="2"><appArg>detachServerS=1</appArg><appArg>x=y</appArg></a>'),
        ENDPOINTS, None,
    )
    assert app.detach_server_s is True
    assert app.args == ["detachServerS=1", "x=y"]
    assert app.net_type == 2


def test_load_app_main_loop_fallback_uses_open_num_one():
    app = load_app(
        _el('<a><server><s1 openNum="2"/><s2 openNum="1"/></server></a>'), ENDPOINTS, None
    )
    assert app.main_loop_server == app.servers["s2"].tmp_handle
    assert app.servers["s2"].auto_run is False
    assert app.servers["s1"].auto_run is True


def test_load_app_duplicate_server_raises():
    with pytest.raises(AppXmlError):
        load_app(_el("<a><server><s/><s/></server></a>"), ENDPOINTS, None)


def _write_project(tmp_path):
    (tmp_path / "msg.xml").write_text(MSG_DOC, encoding="utf-8")
    layout = """<?xml version='1.0' encoding='utf-8' ?>
<project>
  <configFile>conf.txt</configFile>
  <endPoint><main port="12000"/></endPoint>
  <defMsg file="msg.xml"/>
  <app netNum="2">
    <appA>
      <server>
        <hub><listen name="main"/><procRpc><ping askType="ask"/></procRpc></hub>
      </server>
    </appA>
    <appB>
      <server><leaf><connect targetEndPoint="main"/></leaf></server>
    </appB>
  </app>
</project>
"""
    path = tmp_path / "layout.xml"
    path.write_text(layout, encoding="utf-8")
    return path


def test_load_project_full(tmp_path):
    project = load_project(_write_project(tmp_path))
    assert "gateAuto" in project.apps
    assert project.net_num == 2
    assert project.config_file == "conf.txt"
    hub = project.servers["hub"]
    assert project.server_by_handle(hub.handle) is hub
    assert project.server_by_listen_endpoint("main") is hub
    assert project.server_by_listen_endpoint("nowhere") is None
    assert project.root_servers == [hub.handle]
    app_a = project.apps["appA"]
    assert app_a.main_loop_server == project.servers["appAConTh"].tmp_handle
    assert project.catalogs["defMsg"].find_msg("pingAsk").def_pro_server_id == hub.handle


def test_load_project_malformed_raises(tmp_path):
    path = tmp_path / "bad.xml"
    path.write_text("<project><app>", encoding="utf-8")
    with pytest.raises(AppXmlError):
        load_project(path)


def test_load_project_duplicate_server_across_apps(tmp_path):
    path = tmp_path / "dup.xml"
    path.write_text(
        "<project><app><a1><server><s/></server></a1>"
        "<a2><server><s/></server></a2></app></project>",
        encoding="utf-8",
    )
    with pytest.raises(AppXmlError):
        load_project(path)