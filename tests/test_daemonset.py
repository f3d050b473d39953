import pytest

from bladeop.daemonset import (
    AlreadyExistsError,
    build_affinity,
    build_container,
    build_daemonset,
    build_pod_spec,
    deploy_chaosblade_tool,
)
from bladeop.settings import DAEMONSET_POD_LABELS, Settings


class FakeClient:
    def __init__(self, error=None):
        self.created = []
        self.error = error

    def create(self, obj):
        if self.error is not None:
            raise self.error
        self.created.append(obj)


@pytest.fixture
def settings():
    return Settings(product="community", chaosblade_version="1.7.4")


def test_container_image_and_policy(settings):
    container = build_container(settings)
    assert container["image"] == "chaosbladeio/chaosblade-tool:1.7.4"
    assert container["imagePullPolicy"] == "IfNotPresent"
    assert container["name"] == "chaosblade-tool"
    assert container["securityContext"]["privileged"] is True


def test_container_image_for_aliyun():
    settings = Settings(
        product="ahas", aliyun_region_id="cn-public", aliyun_environment="prod",
        chaosblade_version="1.7.4",
    )
    assert build_container(settings)["image"] == f"{settings.image_repo()}:1.7.4"


def test_affinity_excludes_virtual_kubelet():
    terms = build_affinity()["nodeAffinity"]["requiredDuringSchedulingIgnoredDuringExecution"]
    expression = terms["nodeSelectorTerms"][0]["matchExpressions"][0]
    assert expression["key"] == "type"
    assert expression["values"] == ["virtual-kubelet"]


def test_pod_spec_mounts_match_volumes(settings):
    spec = build_pod_spec(settings)
    volume_names = [v["name"] for v in spec["volumes"]]
    mount_names = [m["name"] for m in spec["containers"][0]["volumeMounts"]]
    assert volume_names == mount_names
    assert spec["hostNetwork"] is True
    assert spec["hostPID"] is True
    assert spec["terminationGracePeriodSeconds"] == 30
    paths = {v["name"]: v["hostPath"]["path"] for v in spec["volumes"]}
    assert paths["docker-socket"] == "/var/run/docker.sock"
    assert paths["hosts"] == "/etc/hosts"


def test_daemonset_metadata_and_selector(settings):
    refs = [{"kind": "Deployment", "name": "chaosblade-operator", "controller": True}]
    ds = build_daemonset(settings, refs)
    assert ds["metadata"]["namespace"] == settings.namespace
    assert ds["metadata"]["ownerReferences"] == refs
    assert ds["spec"]["selector"]["matchLabels"] == dict(DAEMONSET_POD_LABELS)
    assert ds["spec"]["template"]["metadata"]["labels"] == ds["spec"]["selector"]["matchLabels"]
    assert ds["spec"]["minReadySeconds"] == 5


def test_daemonset_labels_are_copies(settings):
    ds = build_daemonset(settings)
    ds["metadata"]["labels"]["extra"] = "x"
    assert dict(DAEMONSET_POD_LABELS) == {"app": "chaosblade-tool"}
    assert build_daemonset(settings)["metadata"]["labels"] == {"app": "chaosblade-tool"}


def test_deploy_creates(settings):
    client = FakeClient()
    assert deploy_chaosblade_tool(client, settings) is True
    assert client.created == [build_daemonset(settings)]


def test_deploy_already_exists(settings):
    client = FakeClient(AlreadyExistsError("exists"))
    assert deploy_chaosblade_tool(client, settings) is False
    assert client.created == []


def test_deploy_other_error_propagates(settings):
    client = FakeClient(RuntimeError("boom"))
    with pytest.raises(RuntimeError, match="boom"):
        deploy_chaosblade_tool(client, settings)