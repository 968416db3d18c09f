#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Job queue, bound to the compute environments in priority order.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from batch_composex.common.settings import BatchComposeXSettings
    from batch_composex.compute.compute_environment import ComputeEnvironment

from compose_x_common.compose_x_common import set_else_none
from troposphere import AWS_NO_VALUE, Ref, Template
from troposphere.batch import ComputeEnvironmentOrder, JobQueue

from batch_composex.batch.batch_params import (
    DEFAULT_ORDER,
    DEFAULT_QUEUE_PRIORITY,
    JOB_QUEUE_KEY,
    JOB_QUEUE_T,
    QUEUE_STATES,
    RES_KEY,
)
from batch_composex.common import logical_name
from batch_composex.common.logging import LOG
from batch_composex.common.troposphere_tools import add_resource


class JobQueueSpec:
    """
    A job queue and the ordered list of (compute environment, order) it dispatches jobs to.
    Lower order means higher precedence. Sorting is stable: equal orders keep the declaration order.

    :ivar str name:
    :ivar list[tuple] compute_environments:
    :ivar int priority:
    :ivar str state:
    """

    def __init__(
        self,
        name: str,
        compute_environments: list,
        priority: int = DEFAULT_QUEUE_PRIORITY,
        state: str = "ENABLED",
    ):
        if not compute_environments:
            raise ValueError(
                f"{RES_KEY}.{JOB_QUEUE_KEY} - At least one compute environment is required"
            )
        for _, order in compute_environments:
            if not isinstance(order, int) or isinstance(order, bool) or order < 1:
                raise ValueError(
                    f"{RES_KEY}.{JOB_QUEUE_KEY} - order must be a positive integer. Got",
                    order,
                )
        if not isinstance(priority, int) or priority < 0:
            raise ValueError(f"{RES_KEY}.{JOB_QUEUE_KEY} - priority must be >= 0")
        if state not in QUEUE_STATES:
            raise ValueError(
                f"{RES_KEY}.{JOB_QUEUE_KEY} - state must be one of", QUEUE_STATES
            )
        self.name = name
        self.compute_environments = sorted(
            compute_environments, key=lambda _compute: _compute[1]
        )
        self.priority = priority
        self.state = state
        self._cfn_resource = None

    def __repr__(self):
        return f"JobQueueSpec({self.name}, {self.compute_environments})"

    @property
    def cfn_resource(self) -> JobQueue:
        if not self._cfn_resource:
            self._cfn_resource = JobQueue(
                JOB_QUEUE_T,
                JobQueueName=self.name if self.name else Ref(AWS_NO_VALUE),
                Priority=self.priority,
                State=self.state,
                ComputeEnvironmentOrder=[
                    ComputeEnvironmentOrder(
                        ComputeEnvironment=compute.reference, Order=order
                    )
                    for compute, order in self.compute_environments
                ],
            )
        return self._cfn_resource


def define_job_queue(
    settings: BatchComposeXSettings, compute: ComputeEnvironment
) -> JobQueueSpec:
    """
    Defines the job queue from x-batch.JobQueue, bound to the resolved compute environment.
    """
    batch_config = set_else_none(RES_KEY, settings.compose_content, alt_value={})
    queue_config = set_else_none(JOB_QUEUE_KEY, batch_config, alt_value={})
    name = set_else_none(
        "JobQueueName",
        queue_config,
        alt_value=f"{logical_name(settings.name)}JobQueue",
    )
    queue = JobQueueSpec(
        name,
        [(compute, set_else_none("Order", queue_config, alt_value=DEFAULT_ORDER))],
        priority=queue_config.get("Priority", DEFAULT_QUEUE_PRIORITY),
        state=set_else_none("State", queue_config, alt_value="ENABLED"),
    )
    LOG.info(f"{RES_KEY}.{JOB_QUEUE_KEY} - {queue}")
    return queue


def add_job_queue(template: Template, queue: JobQueueSpec) -> JobQueue:
    return add_resource(template, queue.cfn_resource)
