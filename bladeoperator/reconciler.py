"""Reconciler of ChaosBlade resources and the clean-up of stuck blades."""

from __future__ import annotations

import json
import logging
import re
import threading
from datetime import datetime, timedelta, timezone
from fractions import Fraction
from typing import Optional, Protocol

from bladeoperator.predicate import CHAOSBLADE_FINALIZER, PRE_SPEC_ANNOTATION
from bladeoperator.settings import DEFAULT_REMOVE_BLADE_INTERVAL
from bladeoperator.types import (
    ApiError,
    ChaosBlade,
    ChaosBladeSpec,
    ClusterPhase,
    ExperimentSpec,
    ExperimentStatus,
)

logger = logging.getLogger(__name__)

_NANOS_PER_UNIT = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_COMPONENT = re.compile(r"(\d*)(?:\.(\d*))?([^\d.]*)")


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``"72h"``, ``"1h30m"`` or ``"1.5s"``.

    A sign may lead; every number needs a unit out of ns, us, ms, s, m, h,
    except a lone ``"0"``. Raises ValueError for anything else.
    """
    original = text
    sign = 1
    if text and text[0] in "+-":
        if text[0] == "-":
            sign = -1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f'invalid duration "{original}"')
    total = Fraction(0)
    position = 0
    while position < len(text):
        match = _COMPONENT.match(text, position)
        whole, fraction, unit = match.groups()
        if not whole and not fraction:
            raise ValueError(f'invalid duration "{original}"')
        if not unit:
            raise ValueError(f'missing unit in duration "{original}"')
        if unit not in _NANOS_PER_UNIT:
            raise ValueError(f'unknown unit "{unit}" in duration "{original}"')
        value = Fraction(int(whole or "0"))
        if fraction:
            value += Fraction(int(fraction), 10 ** len(fraction))
        total += value * _NANOS_PER_UNIT[unit]
        position = match.end()
    nanos = sign * int(total)
    seconds, rest = divmod(nanos, 1_000_000_000)
    return timedelta(seconds=seconds, microseconds=rest // 1000)


class ExperimentExecutor(Protocol):
    """Runs and reverts the experiments of a ChaosBlade resource."""

    def create(self, name: str, experiment: ExperimentSpec) -> ExperimentStatus:
        """Start ``experiment`` of the blade ``name``."""

    def destroy(
        self, name: str, experiment: ExperimentSpec, old_status: ExperimentStatus
    ) -> ExperimentStatus:
        """Revert ``experiment`` of the blade ``name`` started with ``old_status``."""


class ReconcileChaosBlade:
    """Moves a ChaosBlade resource through its phases."""

    def __init__(self, client, executor: ExperimentExecutor):
        self.client = client
        self.executor = executor

    def reconcile(self, name: str) -> None:
        """Bring the blade ``name`` one step closer to its desired state."""
        try:
            blade = self.client.get_blade(name)
        except ApiError:
            return
        if not blade.spec.experiments:
            return
        phase = blade.status.phase

        if phase == ClusterPhase.DESTROYED:
            blade.finalizers = [f for f in blade.finalizers if f != CHAOSBLADE_FINALIZER]
            try:
                self.client.update_blade(blade)
            except ApiError as err:
                logger.error(
                    "remove chaosblade finalizer failed at destroyed phase, %s: %s", name, err
                )
            return

        if phase == ClusterPhase.DESTROYING or blade.deletion_timestamp is not None:
            try:
                self.finalize(blade)
            except RuntimeError as err:
                logger.error("finalize chaosblade failed at destroying phase, %s: %s", name, err)
            return

        if phase == ClusterPhase.INITIAL:
            if CHAOSBLADE_FINALIZER in blade.finalizers:
                blade.status.phase = ClusterPhase.INITIALIZED
                blade.status.exp_statuses = []
                try:
                    self.client.update_blade_status(blade)
                except ApiError as err:
                    logger.error("update chaosblade phase to Initialized failed, %s: %s", name, err)
            else:
                blade.finalizers.append(CHAOSBLADE_FINALIZER)
                try:
                    self.client.update_blade(blade)
                except ApiError as err:
                    logger.error("add finalizer to chaosblade failed, %s: %s", name, err)
            return

        if phase in (ClusterPhase.INITIALIZED, ClusterPhase.UPDATING):
            new_phase = ClusterPhase.ERROR
            statuses = []
            for experiment in blade.spec.experiments:
                status = self.executor.create(blade.name, experiment)
                if status.success:
                    new_phase = ClusterPhase.RUNNING
                statuses.append(status)
            blade.status.exp_statuses = statuses
            blade.status.phase = new_phase
            try:
                self.client.update_blade_status(blade)
            except ApiError as err:
                logger.error(
                    "Important!!!!!update phase from %s to %s failed, %s: %s",
                    phase, new_phase, name, err,
                )
            return

        if phase in (ClusterPhase.RUNNING, ClusterPhase.ERROR):
            logger.info("update cb: %s", blade)
            pre_spec = blade.annotations.get(PRE_SPEC_ANNOTATION, "")
            if not pre_spec:
                logger.error("can not found matchers in annotations field, %s", name)
                return
            try:
                old_spec = ChaosBladeSpec.from_dict(json.loads(pre_spec))
            except (ValueError, TypeError, AttributeError) as err:
                logger.error("unmarshal old spec failed, %s: %s", pre_spec, err)
                return
            try:
                self.client.update_blade(blade)
            except ApiError as err:
                logger.error("add annotation to chaosblade failed, %s: %s", name, err)
            new_phase = ClusterPhase.UPDATING
            if blade.status.exp_statuses is not None:
                for idx, old_status in enumerate(blade.status.exp_statuses):
                    status = self.executor.destroy(
                        blade.name, old_spec.experiments[idx], old_status
                    )
                    if not status.success:
                        new_phase = ClusterPhase.DESTROYING
                    blade.status.exp_statuses[idx] = status
            blade.status.phase = new_phase
            try:
                self.client.update_blade_status(blade)
            except ApiError as err:
                logger.error(
                    "update phase from %s to %s failed, %s: %s", phase, new_phase, name, err
                )

    def finalize(self, blade: ChaosBlade) -> None:
        """Destroy every experiment of ``blade``; raise RuntimeError if any remain."""
        logger.info("finalize the chaosblade %s", blade.name)
        phase = ClusterPhase.DESTROYED
        statuses = blade.status.exp_statuses
        if statuses is not None and len(blade.spec.experiments) == len(statuses):
            for idx, experiment in enumerate(blade.spec.experiments):
                status = self.executor.destroy(blade.name, experiment, statuses[idx])
                if not status.success:
                    phase = ClusterPhase.DESTROYING
                statuses[idx] = status
        blade.status.phase = phase
        try:
            self.client.update_blade_status(blade)
        except ApiError as err:
            raise RuntimeError(
                f"update chaosblade status failed in finalize phase, {err}"
            ) from err
        if blade.status.phase == ClusterPhase.DESTROYING:
            raise RuntimeError("failed to destory, please see the experiment status")
        logger.info("successfully finalized chaosblade %s", blade.name)


def clean_up_destroying_blades(client, interval: timedelta, now: Optional[datetime] = None):
    """Clear the finalizers of blades stuck destroying for longer than ``interval``.

    Returns the names of the blades that were patched.
    """
    now = now if now is not None else datetime.now(timezone.utc)
    try:
        blades = client.list_blades()
    except ApiError as err:
        logger.error("periodically clean up, list blade error: %s", err)
        blades = []
    logger.info("periodically clean up blade, blade size: %d", len(blades))
    patched = []
    for blade in blades:
        if blade.deletion_timestamp is None:
            continue
        elapsed = now - blade.deletion_timestamp
        if (
            blade.status.phase == ClusterPhase.DESTROYING
            and elapsed.total_seconds() > interval.total_seconds()
        ):
            logger.info(
                "periodically clean up blade %s, deletion time: %s",
                blade.name, blade.deletion_timestamp,
            )
            try:
                client.clear_blade_finalizers(blade.name)
            except ApiError as err:
                logger.error("patch blade: %s, error: %s", blade.name, err)
                continue
            patched.append(blade.name)
    return patched


def run_periodic_clean_up(client, interval_text: str, stop: Optional[threading.Event] = None):
    """Clean up stuck blades now and then every interval until ``stop`` is set."""
    try:
        interval = parse_duration(interval_text)
    except ValueError as err:
        logger.error(
            "parse interval error: %s, use default interval: %s",
            err, DEFAULT_REMOVE_BLADE_INTERVAL,
        )
        interval = parse_duration(DEFAULT_REMOVE_BLADE_INTERVAL)
        interval_text = DEFAULT_REMOVE_BLADE_INTERVAL
    stop = stop if stop is not None else threading.Event()

    clean_up_destroying_blades(client, interval)

    tick = int(interval.total_seconds())
    if tick <= 0:
        raise ValueError(f"non-positive interval for clean up ticker: {interval_text}")
    logger.info("start periodically clean up blade ticker, interval: %s", interval_text)
    while not stop.wait(tick):
        clean_up_destroying_blades(client, interval)