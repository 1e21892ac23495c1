import pytest

from bladeoperator.daemonset import (
    build_daemonset,
    build_owner_references,
    deploy_chaosblade_tool,
)
from bladeoperator.settings import OperatorSettings, aliyun_image_repository
from bladeoperator.types import AlreadyExistsError, ApiError, NotFoundError

DEPLOYMENT = {
    "apiVersion": "apps/v1",
    "kind": "Deployment",
    "metadata": {"name": "chaosblade-operator", "uid": "uid-operator"},
}


class FakeClient:
    def __init__(self, deployment=DEPLOYMENT, create_error=None):
        self.deployment = deployment
        self.create_error = create_error
        self.lookups = []
        self.created = []

    def get_deployment(self, namespace, name):
        self.lookups.append((namespace, name))
        if self.deployment is None:
            raise NotFoundError(name)
        return self.deployment

    def create_daemonset(self, daemonset):
        if self.create_error is not None:
            raise self.create_error
        self.created.append(daemonset)


@pytest.fixture
def settings():
    return OperatorSettings(
        chaosblade_image_repository="example/tool",
        chaosblade_version="9.9.9",
        chaosblade_image_pull_policy="Never",
        product="community",
    )


def test_owner_references_point_at_deployment():
    refs = build_owner_references(DEPLOYMENT)
    assert refs == [{
        "apiVersion": DEPLOYMENT["apiVersion"],
        "kind": DEPLOYMENT["kind"],
        "name": "chaosblade-operator",
        "uid": "uid-operator",
        "controller": True,
    }]


def test_daemonset_labels_and_selector_agree(settings):
    ds = build_daemonset(settings, "chaos", [])
    labels = {"app": "chaosblade-tool"}
    assert ds["metadata"]["labels"] == labels
    assert ds["spec"]["selector"]["matchLabels"] == labels
    assert ds["spec"]["template"]["metadata"]["labels"] == labels
    assert ds["metadata"]["name"] == "chaosblade-tool"
    assert ds["metadata"]["namespace"] == "chaos"
    assert ds["spec"]["minReadySeconds"] == 5


def test_daemonset_container_uses_settings(settings):
    pod_spec = build_daemonset(settings, "chaos", [])["spec"]["template"]["spec"]
    (container,) = pod_spec["containers"]
    assert container["image"] == "example/tool:9.9.9"
    assert container["imagePullPolicy"] == "Never"
    assert container["securityContext"]["privileged"] is True


def test_daemonset_image_follows_product():
    aliyun = OperatorSettings(product="ahas", aliyun_region_id="cn-test",
                              aliyun_environment="prod", chaosblade_version="9.9.9")
    container = build_daemonset(aliyun, "chaos", [])["spec"]["template"]["spec"]["containers"][0]
    assert container["image"] == aliyun_image_repository("cn-test", "prod") + ":9.9.9"


def test_daemonset_volumes_and_host_access(settings):
    pod_spec = build_daemonset(settings, "chaos", [])["spec"]["template"]["spec"]
    volumes = {v["name"]: v["hostPath"]["path"] for v in pod_spec["volumes"]}
    assert volumes == {
        "docker-socket": "/var/run/docker.sock",
        "chaosblade-db-volume": "/var/run/chaosblade.dat",
        "hosts": "/etc/hosts",
    }
    mounts = pod_spec["containers"][0]["volumeMounts"]
    assert {m["name"] for m in mounts} == set(volumes)
    assert pod_spec["hostNetwork"] is True
    assert pod_spec["hostPID"] is True
    assert pod_spec["terminationGracePeriodSeconds"] == 30


def test_daemonset_avoids_virtual_kubelet(settings):
    pod_spec = build_daemonset(settings, "chaos", [])["spec"]["template"]["spec"]
    terms = pod_spec["affinity"]["nodeAffinity"][
        "requiredDuringSchedulingIgnoredDuringExecution"]["nodeSelectorTerms"]
    (expression,) = terms[0]["matchExpressions"]
    assert expression["key"] == "type"
    assert expression["values"] == ["virtual-kubelet"]


def test_daemonset_labels_are_independent_copies(settings):
    first = build_daemonset(settings, "chaos", [])
    first["metadata"]["labels"]["extra"] = "x"
    second = build_daemonset(settings, "chaos", [])
    assert second["metadata"]["labels"] == {"app": "chaosblade-tool"}


def test_deploy_creates_owned_daemonset(settings):
    client = FakeClient()
    assert deploy_chaosblade_tool(client, settings, "chaos") is True
    assert client.lookups == [("chaos", "chaosblade-operator")]
    (created,) = client.created
    assert created["metadata"]["ownerReferences"] == build_owner_references(DEPLOYMENT)
    assert created == build_daemonset(settings, "chaos", build_owner_references(DEPLOYMENT))


def test_deploy_skips_existing_daemonset(settings):
    client = FakeClient(create_error=AlreadyExistsError("exists"))
    assert deploy_chaosblade_tool(client, settings, "chaos") is False
    assert client.created == []


def test_deploy_propagates_other_errors(settings):
    with pytest.raises(ApiError, match="forbidden"):
        deploy_chaosblade_tool(FakeClient(create_error=ApiError("forbidden")), settings, "chaos")


def test_deploy_without_operator_deployment_raises(settings):
    client = FakeClient(deployment=None)
    with pytest.raises(NotFoundError):
        deploy_chaosblade_tool(client, settings, "chaos")
    assert client.created == []