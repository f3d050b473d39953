"""Manifest of the chaosblade tool DaemonSet and its deployment."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from bladeop.settings import DAEMONSET_POD_LABELS, DAEMONSET_POD_NAME, Settings

log = logging.getLogger(__name__)


class AlreadyExistsError(Exception):
    """The object to be created already exists in the cluster."""


def _labels() -> dict[str, str]:
    return dict(DAEMONSET_POD_LABELS)


def build_container(settings: Settings) -> dict[str, Any]:
    """The privileged chaosblade tool container."""
    return {
        "name": DAEMONSET_POD_NAME,
        "image": f"{settings.image_repo()}:{settings.chaosblade_version}",
        "imagePullPolicy": settings.pull_policy,
        "volumeMounts": [
            {"name": "docker-socket", "mountPath": "/var/run/docker.sock"},
            {"name": "chaosblade-db-volume", "mountPath": "/opt/chaosblade/chaosblade.dat"},
            {"name": "hosts", "mountPath": "/etc/hosts"},
        ],
        "securityContext": {"privileged": True},
    }


def build_affinity() -> dict[str, Any]:
    """Node affinity that keeps the tool off virtual kubelets."""
    return {
        "nodeAffinity": {
            "requiredDuringSchedulingIgnoredDuringExecution": {
                "nodeSelectorTerms": [
                    {
                        "matchExpressions": [
                            {"key": "type", "operator": "NotIn", "values": ["virtual-kubelet"]}
                        ]
                    }
                ]
            }
        }
    }


def build_pod_spec(settings: Settings) -> dict[str, Any]:
    """Pod spec of the tool: host network and PID, host volumes mounted."""
    return {
        "containers": [build_container(settings)],
        "affinity": build_affinity(),
        "dnsPolicy": "ClusterFirstWithHostNet",
        "hostNetwork": True,
        "hostPID": True,
        "tolerations": [{"effect": "NoSchedule", "operator": "Exists"}],
        "terminationGracePeriodSeconds": 30,
        "schedulerName": "default-scheduler",
        "restartPolicy": "Always",
        "volumes": [
            {"name": "docker-socket", "hostPath": {"path": "/var/run/docker.sock"}},
            {
                "name": "chaosblade-db-volume",
                "hostPath": {"path": "/var/run/chaosblade.dat", "type": "FileOrCreate"},
            },
            {"name": "hosts", "hostPath": {"path": "/etc/hosts"}},
        ],
    }


def build_daemonset(
    settings: Settings, owner_references: Sequence[dict[str, Any]] | None = None
) -> dict[str, Any]:
    """The full DaemonSet manifest."""
    return {
        "apiVersion": "apps/v1",
        "kind": "DaemonSet",
        "metadata": {
            "name": DAEMONSET_POD_NAME,
            "namespace": settings.namespace,
            "labels": _labels(),
            "ownerReferences": [dict(ref) for ref in owner_references or []],
        },
        "spec": {
            "selector": {"matchLabels": _labels()},
            "template": {
                "metadata": {"name": DAEMONSET_POD_NAME, "labels": _labels()},
                "spec": build_pod_spec(settings),
            },
            "minReadySeconds": 5,
            "updateStrategy": {"type": "RollingUpdate"},
        },
    }


def deploy_chaosblade_tool(
    client: Any, settings: Settings, owner_references: Sequence[dict[str, Any]] | None = None
) -> bool:
    """Create the DaemonSet; return False when it already exists."""
    try:
        client.create(build_daemonset(settings, owner_references))
    except AlreadyExistsError:
        log.info("chaosblade tool exists, skip to deploy")
        return False
    return True