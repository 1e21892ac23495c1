"""Filter of ChaosBlade watch events worth a reconcile."""

from __future__ import annotations

import json
import logging

from bladeoperator.types import ChaosBlade, ClusterPhase

logger = logging.getLogger(__name__)

CHAOSBLADE_FINALIZER = "finalizer.chaosblade.io"
PRE_SPEC_ANNOTATION = "preSpec"


class SpecUpdatedPredicate:
    """Decides which create, delete and update events are reconciled."""

    def create(self, obj) -> bool:
        if not isinstance(obj, ChaosBlade):
            return False
        logger.info("trigger create event, name: %s", obj.name)
        logger.debug("creating obj: %s", obj)
        if obj.deletion_timestamp is not None:
            logger.info(
                "unexpected phase for cb creating, name: %s, phase: %s",
                obj.name, obj.status.phase,
            )
            return False
        if obj.status.phase == ClusterPhase.INITIAL:
            return True
        logger.info(
            "unexpected phase for cb creating, name: %s, phase: %s",
            obj.name, obj.status.phase,
        )
        return False

    def delete(self, obj) -> bool:
        if not isinstance(obj, ChaosBlade):
            return False
        logger.info("trigger delete event, name: %s", obj.name)
        logger.debug("deleting obj: %s", obj)
        return CHAOSBLADE_FINALIZER in obj.finalizers

    def update(self, old, new) -> bool:
        """Whether the change from ``old`` to ``new`` needs a reconcile.

        When the spec changed, the old spec is saved on ``new`` as the
        ``preSpec`` annotation, replacing its other annotations.
        """
        if not isinstance(old, ChaosBlade):
            return False
        logger.info("trigger update event, name: %s", old.name)
        if not isinstance(new, ChaosBlade):
            return False
        logger.debug("updating old obj: %s", old)
        logger.debug("updating new obj: %s", new)
        if new.spec != old.spec:
            pre_spec = json.dumps(old.spec.to_dict(), separators=(",", ":"))
            new.annotations = {PRE_SPEC_ANNOTATION: pre_spec}
            return True
        if new.status.phase == ClusterPhase.INITIAL:
            return True
        if old.deletion_timestamp is None and new.deletion_timestamp is not None:
            return True
        if new.status.phase in (
            ClusterPhase.RUNNING,
            ClusterPhase.ERROR,
            ClusterPhase.DESTROYING,
        ):
            return False
        if new.status.phase != old.status.phase:
            return True
        if new.status != old.status:
            return True
        if new.deletion_timestamp is not None:
            if CHAOSBLADE_FINALIZER in new.finalizers:
                return True
            logger.info(
                "cannot find the %s finalizer, so skip the update event",
                CHAOSBLADE_FINALIZER,
            )
            return False
        logger.info(
            "spec not changed under %s phase, so skip the update event", new.status.phase
        )
        return False

    def generic(self, obj) -> bool:
        return False