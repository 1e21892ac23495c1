import json
from datetime import datetime, timezone

import pytest

from bladeoperator.types import (
    API_VERSION,
    AlreadyExistsError,
    ApiError,
    ChaosBlade,
    ChaosBladeList,
    ChaosBladeSpec,
    ChaosBladeStatus,
    ClusterPhase,
    ExperimentSpec,
    ExperimentStatus,
    FlagSpec,
    NotFoundError,
    ResourceStatus,
    create_destroyed_experiment_status,
    create_fail_experiment_status,
    create_success_experiment_status,
)


def _experiment():
    return ExperimentSpec(
        scope="pod",
        target="pod",
        action="delete",
        desc="delete pods",
        matchers=[
            FlagSpec(name="labels", value=["app=guestbook"]),
            FlagSpec(name="namespace", value=["default"]),
        ],
    )


def test_cluster_phase_values():
    assert ClusterPhase.INITIAL.value == ""
    assert ClusterPhase("Initialized") is ClusterPhase.INITIALIZED
    assert ClusterPhase("Destroying") is ClusterPhase.DESTROYING
    assert str(ClusterPhase.RUNNING) == "Running"


def test_resource_status_fail():
    status = ResourceStatus(kind="pod", identifier="default/node/pod-0")
    result = status.fail("pod is not read")
    assert result.state == "Error"
    assert result.error == "pod is not read"
    assert result.success is False
    assert result.identifier == "default/node/pod-0"


def test_resource_status_succeed_after_fail_keeps_success_true():
    status = ResourceStatus(kind="pod").fail("boom").succeed()
    assert status.state == "Success"
    assert status.success is True


def test_resource_status_omits_empty_fields():
    data = ResourceStatus(state="Success", success=True, kind="pod").to_dict()
    assert data == {"state": "Success", "success": True, "kind": "pod"}


def test_resource_status_round_trip():
    status = ResourceStatus(
        id="abc", state="Error", error="failed", success=False, kind="container",
        identifier="ns/node/pod/c",
    )
    assert ResourceStatus.from_dict(status.to_dict()) == status


def test_create_fail_experiment_status():
    status = create_fail_experiment_status("cannot find the pod resources", None)
    assert status.success is False
    assert status.state == "Error"
    assert status.error == "cannot find the pod resources"
    assert status.res_statuses is None


def test_create_success_experiment_status():
    statuses = [ResourceStatus(kind="pod").succeed()]
    status = create_success_experiment_status(statuses)
    assert status.success is True
    assert status.state == "Success"
    assert status.res_statuses == statuses


def test_create_destroyed_experiment_status():
    status = create_destroyed_experiment_status([])
    assert status.success is True
    assert status.state == "Destroyed"
    assert status.res_statuses == []


def test_experiment_status_omits_empty_res_statuses():
    data = create_destroyed_experiment_status([]).to_dict()
    assert "resStatuses" not in data
    assert "error" not in data


def test_experiment_status_round_trip():
    status = create_fail_experiment_status(
        "see resStatuses for details", [ResourceStatus(kind="pod").fail("x")]
    )
    assert ExperimentStatus.from_dict(status.to_dict()) == status


def test_experiment_spec_omits_empty_optional_fields():
    data = ExperimentSpec(scope="node", target="cpu", action="load").to_dict()
    assert data == {"scope": "node", "target": "cpu", "action": "load"}


def test_spec_round_trip_through_json():
    spec = ChaosBladeSpec(experiments=[_experiment()])
    text = json.dumps(spec.to_dict())
    assert ChaosBladeSpec.from_dict(json.loads(text)) == spec


def test_flag_spec_missing_value_is_empty_list():
    assert FlagSpec.from_dict({"name": "names"}) == FlagSpec(name="names", value=[])


def test_chaosblade_status_initial_phase_omitted():
    data = ChaosBladeStatus().to_dict()
    assert "phase" not in data
    assert data["expStatuses"] is None


def test_chaosblade_status_round_trip():
    status = ChaosBladeStatus(
        phase=ClusterPhase.RUNNING,
        exp_statuses=[create_success_experiment_status(None)],
    )
    assert ChaosBladeStatus.from_dict(status.to_dict()) == status


def test_chaosblade_defaults():
    blade = ChaosBlade(name="delete-pod")
    data = blade.to_dict()
    assert data["apiVersion"] == "chaosblade.io/v1alpha1"
    assert data["kind"] == "ChaosBlade"
    assert data["metadata"] == {"name": "delete-pod"}


def test_chaosblade_round_trip_with_deletion_timestamp():
    blade = ChaosBlade(
        name="delete-pod",
        annotations={"preSpec": "{}"},
        finalizers=["finalizer.chaosblade.io"],
        deletion_timestamp=datetime(2021, 3, 19, 7, 56, 31, tzinfo=timezone.utc),
        spec=ChaosBladeSpec(experiments=[_experiment()]),
        status=ChaosBladeStatus(phase=ClusterPhase.DESTROYING, exp_statuses=[]),
    )
    assert ChaosBlade.from_dict(json.loads(json.dumps(blade.to_dict()))) == blade


def test_chaosblade_parses_utc_timestamp():
    blade = ChaosBlade.from_dict(
        {"metadata": {"name": "b", "deletionTimestamp": "2021-03-19T07:56:31Z"}}
    )
    assert blade.deletion_timestamp == datetime(
        2021, 3, 19, 7, 56, 31, tzinfo=timezone.utc
    )
    assert blade.to_dict()["metadata"]["deletionTimestamp"] == "2021-03-19T07:56:31Z"


def test_chaosblade_list_from_dict():
    items = [ChaosBlade(name="a").to_dict(), ChaosBlade(name="b").to_dict()]
    result = ChaosBladeList.from_dict({"items": items})
    assert [b.name for b in result.items] == ["a", "b"]
    assert result.api_version == API_VERSION
    assert result.kind == "ChaosBladeList"


def test_chaosblade_list_empty():
    assert ChaosBladeList.from_dict({}).items == []


@pytest.mark.parametrize("error_class", [NotFoundError, AlreadyExistsError])
def test_api_errors_share_base(error_class):
    error = error_class("chaosblade-tool")
    assert issubclass(error_class, ApiError)
    assert "chaosblade-tool" in str(error)