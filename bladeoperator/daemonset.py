"""Daemonset that runs the chaosblade tool on every node."""

from __future__ import annotations

import logging
from typing import Any

from bladeoperator.settings import DAEMONSET_POD_LABELS, DAEMONSET_POD_NAME
from bladeoperator.types import AlreadyExistsError

logger = logging.getLogger(__name__)

OPERATOR_DEPLOYMENT_NAME = "chaosblade-operator"


def build_owner_references(deployment: dict[str, Any]) -> list[dict[str, Any]]:
    """Owner references that make ``deployment`` the controller."""
    metadata = deployment.get("metadata") or {}
    return [
        {
            "apiVersion": deployment.get("apiVersion", ""),
            "kind": deployment.get("kind", ""),
            "name": metadata.get("name", ""),
            "uid": metadata.get("uid", ""),
            "controller": True,
        }
    ]


def _container(settings) -> dict[str, Any]:
    return {
        "name": DAEMONSET_POD_NAME,
        "image": f"{settings.image_repository_for_product()}:{settings.chaosblade_version}",
        "imagePullPolicy": settings.chaosblade_image_pull_policy,
        "volumeMounts": [
            {"name": "docker-socket", "mountPath": "/var/run/docker.sock"},
            {"name": "chaosblade-db-volume", "mountPath": "/opt/chaosblade/chaosblade.dat"},
            {"name": "hosts", "mountPath": "/etc/hosts"},
        ],
        "securityContext": {"privileged": True},
    }


def _affinity() -> dict[str, Any]:
    return {
        "nodeAffinity": {
            "requiredDuringSchedulingIgnoredDuringExecution": {
                "nodeSelectorTerms": [
                    {
                        "matchExpressions": [
                            {
                                "key": "type",
                                "operator": "NotIn",
                                "values": ["virtual-kubelet"],
                            }
                        ]
                    }
                ]
            }
        }
    }


def _pod_spec(settings) -> dict[str, Any]:
    return {
        "containers": [_container(settings)],
        "affinity": _affinity(),
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


def build_daemonset(settings, namespace, owner_references) -> dict[str, Any]:
    """The chaosblade tool DaemonSet as an unstructured object."""
    return {
        "apiVersion": "apps/v1",
        "kind": "DaemonSet",
        "metadata": {
            "name": DAEMONSET_POD_NAME,
            "namespace": namespace,
            "labels": dict(DAEMONSET_POD_LABELS),
            "ownerReferences": [dict(ref) for ref in owner_references],
        },
        "spec": {
            "selector": {"matchLabels": dict(DAEMONSET_POD_LABELS)},
            "template": {
                "metadata": {
                    "name": DAEMONSET_POD_NAME,
                    "labels": dict(DAEMONSET_POD_LABELS),
                },
                "spec": _pod_spec(settings),
            },
            "minReadySeconds": 5,
            "updateStrategy": {"type": "RollingUpdate"},
        },
    }


def deploy_chaosblade_tool(client, settings, namespace) -> bool:
    """Create the tool DaemonSet owned by the operator deployment.

    Returns False when the DaemonSet exists already; other API errors propagate.
    """
    try:
        deployment = client.get_deployment(namespace, OPERATOR_DEPLOYMENT_NAME)
    except Exception:
        logger.exception("cannot get %s deployment from apps/v1", OPERATOR_DEPLOYMENT_NAME)
        raise
    daemonset = build_daemonset(settings, namespace, build_owner_references(deployment))
    try:
        client.create_daemonset(daemonset)
    except AlreadyExistsError:
        logger.info("chaosblade tool exists, skip to deploy")
        return False
    return True