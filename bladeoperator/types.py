"""Resource types of the chaosblade.io/v1alpha1 API group."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Protocol

GROUP = "chaosblade.io"
VERSION = "v1alpha1"
API_VERSION = f"{GROUP}/{VERSION}"
KIND = "ChaosBlade"
LIST_KIND = "ChaosBladeList"

POD_KIND = "pod"
CONTAINER_KIND = "container"
NODE_KIND = "node"

SUCCESS_STATE = "Success"
ERROR_STATE = "Error"
DESTROYED_STATE = "Destroyed"


class ClusterPhase(str, Enum):
    """Lifecycle phase of a ChaosBlade resource."""

    INITIAL = ""
    INITIALIZED = "Initialized"
    RUNNING = "Running"
    UPDATING = "Updating"
    DESTROYING = "Destroying"
    DESTROYED = "Destroyed"
    ERROR = "Error"

    def __str__(self):
        return self.value


class ApiError(Exception):
    """An error reported by the cluster API."""


class NotFoundError(ApiError):
    """The requested object does not exist."""


class AlreadyExistsError(ApiError):
    """The object to create exists already."""


def _format_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_time(text: Optional[str]) -> Optional[datetime]:
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    moment = datetime.fromisoformat(text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


@dataclass
class FlagSpec:
    """A named flag of an experiment with its values."""

    name: str
    value: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "value": list(self.value)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FlagSpec:
        return cls(name=data.get("name", ""), value=list(data.get("value") or []))


@dataclass
class ExperimentSpec:
    """One experiment: scope, target, action and matchers."""

    scope: str
    target: str
    action: str
    desc: str = ""
    matchers: list[FlagSpec] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "scope": self.scope,
            "target": self.target,
            "action": self.action,
        }
        if self.desc:
            data["desc"] = self.desc
        if self.matchers:
            data["matchers"] = [m.to_dict() for m in self.matchers]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExperimentSpec:
        return cls(
            scope=data.get("scope", ""),
            target=data.get("target", ""),
            action=data.get("action", ""),
            desc=data.get("desc", ""),
            matchers=[FlagSpec.from_dict(m) for m in data.get("matchers") or []],
        )


@dataclass
class ChaosBladeSpec:
    """Desired state of a ChaosBlade resource."""

    experiments: list[ExperimentSpec] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"experiments": [e.to_dict() for e in self.experiments]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChaosBladeSpec:
        return cls(
            experiments=[
                ExperimentSpec.from_dict(e) for e in data.get("experiments") or []
            ]
        )


@dataclass
class ResourceStatus:
    """Outcome of an experiment on one resource.

    The identifier is ``Namespace/NodeName/PodName`` for pods and
    ``Namespace/NodeName/PodName/ContainerName`` for containers.
    """

    id: str = ""
    state: str = ""
    error: str = ""
    success: bool = False
    kind: str = ""
    identifier: str = ""

    def fail(self, error: str) -> ResourceStatus:
        """Mark this status as failed with ``error`` and return it."""
        self.state = ERROR_STATE
        self.error = error
        self.success = False
        return self

    def succeed(self) -> ResourceStatus:
        """Mark this status as successful and return it."""
        self.state = SUCCESS_STATE
        self.success = True
        return self

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.id:
            data["id"] = self.id
        data["state"] = self.state
        if self.error:
            data["error"] = self.error
        data["success"] = self.success
        data["kind"] = self.kind
        if self.identifier:
            data["identifier"] = self.identifier
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResourceStatus:
        return cls(
            id=data.get("id", ""),
            state=data.get("state", ""),
            error=data.get("error", ""),
            success=bool(data.get("success", False)),
            kind=data.get("kind", ""),
            identifier=data.get("identifier", ""),
        )


@dataclass
class ExperimentStatus:
    """Outcome of one experiment across its resources."""

    scope: str = ""
    target: str = ""
    action: str = ""
    success: bool = False
    state: str = ""
    error: str = ""
    res_statuses: Optional[list[ResourceStatus]] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "scope": self.scope,
            "target": self.target,
            "action": self.action,
            "success": self.success,
            "state": self.state,
        }
        if self.error:
            data["error"] = self.error
        if self.res_statuses:
            data["resStatuses"] = [s.to_dict() for s in self.res_statuses]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExperimentStatus:
        raw = data.get("resStatuses")
        return cls(
            scope=data.get("scope", ""),
            target=data.get("target", ""),
            action=data.get("action", ""),
            success=bool(data.get("success", False)),
            state=data.get("state", ""),
            error=data.get("error", ""),
            res_statuses=None if raw is None else [ResourceStatus.from_dict(s) for s in raw],
        )


def create_fail_experiment_status(error, res_statuses=None) -> ExperimentStatus:
    """A failed experiment status carrying ``error``."""
    return ExperimentStatus(
        success=False, state=ERROR_STATE, error=error, res_statuses=res_statuses
    )


def create_success_experiment_status(res_statuses=None) -> ExperimentStatus:
    """A successful experiment status."""
    return ExperimentStatus(success=True, state=SUCCESS_STATE, res_statuses=res_statuses)


def create_destroyed_experiment_status(res_statuses=None) -> ExperimentStatus:
    """A status for an experiment that has been destroyed."""
    return ExperimentStatus(
        success=True, state=DESTROYED_STATE, res_statuses=res_statuses
    )


@dataclass
class ChaosBladeStatus:
    """Observed state of a ChaosBlade resource."""

    phase: ClusterPhase = ClusterPhase.INITIAL
    exp_statuses: Optional[list[ExperimentStatus]] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.phase.value:
            data["phase"] = self.phase.value
        data["expStatuses"] = (
            None
            if self.exp_statuses is None
            else [s.to_dict() for s in self.exp_statuses]
        )
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChaosBladeStatus:
        raw = data.get("expStatuses")
        return cls(
            phase=ClusterPhase(data.get("phase") or ""),
            exp_statuses=None
            if raw is None
            else [ExperimentStatus.from_dict(s) for s in raw],
        )


@dataclass
class ChaosBlade:
    """A ChaosBlade custom resource."""

    name: str
    namespace: str = ""
    uid: str = ""
    annotations: dict[str, str] = field(default_factory=dict)
    finalizers: list[str] = field(default_factory=list)
    deletion_timestamp: Optional[datetime] = None
    spec: ChaosBladeSpec = field(default_factory=ChaosBladeSpec)
    status: ChaosBladeStatus = field(default_factory=ChaosBladeStatus)
    api_version: str = API_VERSION
    kind: str = KIND

    def to_dict(self) -> dict[str, Any]:
        metadata: dict[str, Any] = {"name": self.name}
        if self.namespace:
            metadata["namespace"] = self.namespace
        if self.uid:
            metadata["uid"] = self.uid
        if self.annotations:
            metadata["annotations"] = dict(self.annotations)
        if self.finalizers:
            metadata["finalizers"] = list(self.finalizers)
        if self.deletion_timestamp is not None:
            metadata["deletionTimestamp"] = _format_time(self.deletion_timestamp)
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": metadata,
            "spec": self.spec.to_dict(),
            "status": self.status.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChaosBlade:
        metadata = data.get("metadata") or {}
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            uid=metadata.get("uid", ""),
            annotations=dict(metadata.get("annotations") or {}),
            finalizers=list(metadata.get("finalizers") or []),
            deletion_timestamp=_parse_time(metadata.get("deletionTimestamp")),
            spec=ChaosBladeSpec.from_dict(data.get("spec") or {}),
            status=ChaosBladeStatus.from_dict(data.get("status") or {}),
            api_version=data.get("apiVersion", API_VERSION),
            kind=data.get("kind", KIND),
        )


@dataclass
class ChaosBladeList:
    """A list of ChaosBlade resources."""

    items: list[ChaosBlade] = field(default_factory=list)
    api_version: str = API_VERSION
    kind: str = LIST_KIND

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChaosBladeList:
        return cls(
            items=[ChaosBlade.from_dict(i) for i in data.get("items") or []],
            api_version=data.get("apiVersion", API_VERSION),
            kind=data.get("kind", LIST_KIND),
        )


class KubeClient(Protocol):
    """Operations the operator needs from the cluster API.

    Lookups of missing objects raise :class:`NotFoundError`; creating an
    object that exists raises :class:`AlreadyExistsError`.
    """

    def get_blade(self, name: str) -> ChaosBlade:
        """Return the ChaosBlade resource called ``name``."""

    def list_blades(self) -> list[ChaosBlade]:
        """Return every ChaosBlade resource."""

    def update_blade(self, blade: ChaosBlade) -> None:
        """Write the metadata and spec of ``blade``."""

    def update_blade_status(self, blade: ChaosBlade) -> None:
        """Write the status of ``blade``."""

    def clear_blade_finalizers(self, name: str) -> None:
        """Merge-patch the finalizers of ``name`` to an empty list."""

    def get_deployment(self, namespace: str, name: str) -> dict[str, Any]:
        """Return a Deployment as an unstructured object."""

    def create_daemonset(self, daemonset: dict[str, Any]) -> None:
        """Create a DaemonSet from an unstructured object."""