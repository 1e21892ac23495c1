"""Admission mutator that injects the fuse sidecar into annotated pods."""

from __future__ import annotations

import copy
import logging
import posixpath
from typing import Any

from bladeoperator.settings import OperatorSettings
from bladeoperator.version import VERSION

logger = logging.getLogger(__name__)

SIDECAR_NAME = "chaosblade-fuse"
FUSE_SERVER_PORT_NAME = "fuse-port"
FUSE_BINARY = "/opt/chaosblade/bin/chaos_fuse"

INJECT_VOLUME_ANNOTATION = "chaosblade/inject-volume"
INJECT_SUBPATH_ANNOTATION = "chaosblade/inject-volume-subpath"

PROPAGATION_HOST_TO_CONTAINER = "HostToContainer"
PROPAGATION_BIDIRECTIONAL = "Bidirectional"


class MutationError(Exception):
    """The pod cannot receive the sidecar."""


def _clean(path):
    cleaned = posixpath.normpath(path) if path else "."
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def _join(*parts):
    joined = "/".join(part for part in parts if part)
    return _clean(joined) if joined else ""


def _base(path):
    if not path:
        return "."
    stripped = path.rstrip("/")
    if not stripped:
        return "/"
    return stripped.rsplit("/", 1)[-1]


def _dir(path):
    head = path[: path.rfind("/") + 1]
    return _clean(head)


def sidecar_image(settings):
    """Image of the fuse sidecar: the configured one or the tool image."""
    if settings.fuse_sidecar_image:
        return settings.fuse_sidecar_image
    return f"{settings.image_repository_for_product()}:{VERSION}"


class Mutator:
    """Injects the fuse sidecar into pods that ask for it by annotation."""

    def __init__(self, settings=None):
        self.settings = settings if settings is not None else OperatorSettings()

    def mutate_pod(self, pod: dict[str, Any]) -> None:
        """Add the sidecar to ``pod`` in place; raise :class:`MutationError`."""
        metadata = pod.get("metadata") or {}
        name = metadata.get("name", "")
        annotations = metadata.get("annotations")
        if annotations is None:
            return
        if INJECT_VOLUME_ANNOTATION not in annotations:
            logger.info("pod %s has no %s annotation", name, INJECT_VOLUME_ANNOTATION)
            return
        if INJECT_SUBPATH_ANNOTATION not in annotations:
            logger.info("pod %s has no %s annotation", name, INJECT_SUBPATH_ANNOTATION)
            return
        volume_name = annotations[INJECT_VOLUME_ANNOTATION]
        sub_path = annotations[INJECT_SUBPATH_ANNOTATION]

        spec = pod.setdefault("spec", {})
        containers = spec.get("containers") or []
        if any(c.get("name") == SIDECAR_NAME for c in containers):
            logger.info("sidecar has been injected into pod %s", name)
            return
        if not containers:
            raise MutationError("pod has no containers")

        target = None
        for mount in containers[0].get("volumeMounts") or []:
            if mount.get("name") != volume_name:
                continue
            propagation = mount.get("mountPropagation")
            if propagation is None:
                raise MutationError(
                    "target volume mount propagation must be HostToContainer or Bidirectional"
                )
            if propagation not in (PROPAGATION_HOST_TO_CONTAINER, PROPAGATION_BIDIRECTIONAL):
                raise MutationError("target volume mount propagation is not support")
            target = dict(mount, mountPropagation=PROPAGATION_BIDIRECTIONAL)

        if target is None or not target.get("name"):
            raise MutationError(f"pod has no volume mount {volume_name}")

        mount_path = target.get("mountPath", "")
        mount_point = _join(mount_path, sub_path)
        original = _join(mount_path, f"fuse-{sub_path}")
        logger.info(
            "matched pod %s, mount point %s, mount path %s", name, mount_point, mount_path
        )
        if mount_point == mount_path:
            original = _join(_dir(mount_path), f"fuse-{_base(mount_path)}")

        port = self.settings.fuse_server_port
        resources = {"cpu": "100m", "memory": "50Mi"}
        sidecar = {
            "name": SIDECAR_NAME,
            "image": sidecar_image(self.settings),
            "imagePullPolicy": "Always",
            "command": [FUSE_BINARY],
            "args": [
                f"--address=:{port}",
                f"--mountpoint={mount_point}",
                f"--original={original}",
            ],
            "resources": {"requests": dict(resources), "limits": dict(resources)},
            "ports": [{"name": FUSE_SERVER_PORT_NAME, "containerPort": port}],
            "securityContext": {"privileged": True, "runAsUser": 0},
            "volumeMounts": [target],
        }
        spec["containers"] = [sidecar, containers[0]]

    def handle(self, pod):
        """Admission response for ``pod`` with a JSON patch of the change."""
        if not isinstance(pod, dict):
            return _errored(400, "Cannot Decode Request Message")
        patched = copy.deepcopy(pod)
        try:
            self.mutate_pod(patched)
        except MutationError as err:
            logger.error("mutate pod failed: %s", err)
            return _errored(500, str(err))
        patch = []
        original_containers = (pod.get("spec") or {}).get("containers")
        new_containers = (patched.get("spec") or {}).get("containers")
        if new_containers != original_containers:
            op = "add" if original_containers is None else "replace"
            patch.append({"op": op, "path": "/spec/containers", "value": new_containers})
        return {"allowed": True, "patch": patch}


def _errored(code, message):
    return {"allowed": False, "status": {"code": code, "message": message}}