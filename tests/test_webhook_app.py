"""Tests for the FastAPI admission webhook."""

import importlib
import io
import logging

import pytest

fastapi = pytest.importorskip("fastapi")
from fastapi.testclient import TestClient
from rich.console import Console

from windows_overcommit.admission.controller import AdmissionController
from windows_overcommit.cluster.inventory import InventoryError, InventorySnapshot
from windows_overcommit.cluster.nodes import Node
from windows_overcommit.common.config import SystemConfig
from windows_overcommit.common.logging import build_handler
from windows_overcommit.workload.spec import CPUTopology, WorkloadSpec

web_app_module = importlib.import_module("windows_overcommit.web.app")


class _FakeInventory:
    def __init__(self, error: Exception | None = None):
        self._error = error

    def snapshot(self) -> InventorySnapshot:
        if self._error:
            raise self._error
        return InventorySnapshot(
            nodes=(Node(name="win", labels={"image_type": "windows"}, cpu_capacity=16),),
            instances=(
                WorkloadSpec(
                    kind="VirtualMachineInstance",
                    name="running",
                    namespace="vms",
                    cpu=CPUTopology(sockets=10),
                    hyperv=True,
                ),
            ),
            templates=(),
        )


def _client(error: Exception | None = None) -> TestClient:
    config = SystemConfig()
    controller = AdmissionController(config.node_filter, _FakeInventory(error))
    return TestClient(web_app_module.create_app(config=config, controller=controller))


def _review(
    sockets: int,
    kind: str = "VirtualMachine",
    operation: str = "CREATE",
    windows: bool = True,
) -> dict:
    template_spec = {"domain": {"cpu": {"sockets": sockets}}}
    if windows:
        template_spec["domain"]["features"] = {"hyperv": {}}
    obj = {
        "apiVersion": "kubevirt.io/v1",
        "kind": kind,
        "metadata": {"name": "new-vm"},
        "spec": {"template": {"spec": template_spec}},
    }
    if kind == "VirtualMachineInstance":
        obj["spec"] = template_spec
    return {
        "apiVersion": "admission.k8s.io/v1",
        "kind": "AdmissionReview",
        "request": {
            "uid": "uid-1",
            "kind": {"group": "kubevirt.io", "version": "v1", "kind": kind},
            "operation": operation,
            "name": "new-vm",
            "namespace": "vms",
            "object": obj,
        },
    }


def test_healthz() -> None:
    response = _client().get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"msg": "server is healthy"}


def test_validate_allows_request_within_capacity() -> None:
    response = _client().post("/validate", json=_review(sockets=4))

    assert response.status_code == 200
    body = response.json()
    assert body["apiVersion"] == "admission.k8s.io/v1"
    assert body["kind"] == "AdmissionReview"
    assert body["response"]["uid"] == "uid-1"
    assert body["response"]["allowed"] is True
    assert body["response"]["status"]["message"] == "request success"


def test_validate_denies_overcommit() -> None:
    response = _client().post(
        "/validate", json=_review(sockets=8, kind="VirtualMachineInstance")
    )

    result = response.json()["response"]
    assert result["allowed"] is False
    assert result["status"]["code"] == 403
    assert "[8]" in result["status"]["message"]
    assert "[6]" in result["status"]["message"]
    assert "[10]" in result["status"]["message"]


def test_validate_skips_non_windows_even_when_cluster_is_unreachable() -> None:
    client = _client(error=InventoryError("failed to list nodes; timeout"))
    response = client.post("/validate", json=_review(sockets=64, windows=False))

    result = response.json()["response"]
    assert result["allowed"] is True
    assert result["status"]["message"] == "skipping validation"


def test_validate_fails_closed_on_listing_error() -> None:
    client = _client(error=InventoryError("failed to list nodes; timeout"))
    response = client.post("/validate", json=_review(sockets=1))

    result = response.json()["response"]
    assert result["allowed"] is False
    assert "failed to list nodes" in result["status"]["message"]


def test_validate_denies_unsupported_kind() -> None:
    response = _client().post("/validate", json=_review(sockets=1, kind="Pod"))

    result = response.json()["response"]
    assert result["uid"] == "uid-1"
    assert result["allowed"] is False
    assert "unsupported kind [Pod]" in result["status"]["message"]


def test_validate_allows_non_create_operations() -> None:
    response = _client().post("/validate", json=_review(sockets=64, operation="UPDATE"))

    result = response.json()["response"]
    assert result["allowed"] is True
    assert "unsupported operation [UPDATE]" in result["status"]["message"]


def test_validate_denies_malformed_review() -> None:
    response = _client().post("/validate", json={"request": {"uid": "uid-2"}})

    assert response.status_code == 200
    result = response.json()["response"]
    assert result["uid"] == "uid-2"
    assert result["allowed"] is False
    assert "failed to unmarshal admission review" in result["status"]["message"]


def test_validate_denies_non_json_body() -> None:
    response = _client().post(
        "/validate", content=b"not json", headers={"Content-Type": "application/json"}
    )

    result = response.json()["response"]
    assert result["uid"] == ""
    assert result["allowed"] is False


def test_controller_is_built_lazily_from_config(monkeypatch) -> None:
    built = []

    def _from_config(cluster_config):
        built.append(cluster_config)
        return _FakeInventory()

    monkeypatch.setattr(web_app_module.ClusterInventory, "from_config", _from_config)

    config = SystemConfig()
    client = TestClient(web_app_module.create_app(config=config))
    assert built == []

    client.post("/validate", json=_review(sockets=2))
    client.post("/validate", json=_review(sockets=2))

    assert built == [config.cluster]


def test_validate_denies_create_without_object() -> None:
    review = _review(sockets=1)
    del review["request"]["object"]

    response = _client().post("/validate", json=review)

    result = response.json()["response"]
    assert result["uid"] == "uid-1"
    assert result["allowed"] is False
    assert "request has no object" in result["status"]["message"]


def test_validate_log_lines_keep_bracketed_outcome() -> None:
    stream = io.StringIO()
    handler = build_handler(console=Console(file=stream, width=200, color_system=None))
    logger = web_app_module.log
    previous_level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    try:
        client = _client()
        client.post("/validate", json=_review(sockets=4))
        client.post("/validate", json=_review(sockets=1, windows=False))
        client.post("/validate", json={"request": {"uid": "uid-2"}})
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous_level)

    output = stream.getvalue()
    assert "[type=VirtualMachine,object=vms/new-vm,uid=uid-1]" in output
    assert "[request success]" in output
    assert "[skipping validation]" in output
    assert "[failed to unmarshal admission review" in output
