from pathlib import Path

import yaml

from edgehost.config import AppSpec
from edgehost.definition import ProxyRef
from edgehost.publisher import EDGE_ALIAS, RouteTablePublisher
from edgehost.routes import CompiledRule


def _rule(service, hosts, port=80):
    return CompiledRule(
        service_name=service,
        network="edgehostproxy_edge",
        host_match="HostRegexp:" + ",".join(hosts),
        target_port=port,
    )


def _publisher(tmp_path: Path) -> RouteTablePublisher:
    ref = ProxyRef(project="edgehostproxy", compose_file=tmp_path / "proxy.yml")
    return RouteTablePublisher(ref, tmp_path)


def test_publish_writes_labels_and_joins_edge_network(tmp_path):
    app = AppSpec(name="myapp")
    path = _publisher(tmp_path).publish(app, [_rule("web", ["myapp.lndo.site"]), _rule("api", ["api.lndo.site"], 9090)])

    document = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert document["networks"] == {EDGE_ALIAS: {"external": True, "name": "edgehostproxy_edge"}}
    assert document["services"]["web"]["networks"] == {EDGE_ALIAS: {}}
    assert document["services"]["api"]["labels"] == {
        "traefik.docker.network": "edgehostproxy_edge",
        "traefik.frontend.rule": "HostRegexp:api.lndo.site",
        "traefik.port": "9090",
    }
    assert app.compose_files == [path]


def test_publish_without_rules_still_writes_artifact(tmp_path):
    app = AppSpec(name="myapp")
    path = _publisher(tmp_path).publish(app, [])

    document = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert document["services"] == {}
    assert path.name.startswith("myapp-proxy-")


def test_artifact_names_are_unique(tmp_path):
    publisher = _publisher(tmp_path)
    names = {publisher.artifact_path("myapp").name for _ in range(20)}
    assert len(names) == 20
