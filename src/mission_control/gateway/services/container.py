"""服务装配 -- lifespan 与测试共用

所有服务共享同一个 StoreGroup / Notifier / BackgroundRunner，
TaskWriter 与 AgentStatusSync 各只有一个实例。
"""

from dataclasses import dataclass

from mission_control.core.store import StoreGroup
from mission_control.openclaw import LimitsClient, OpenClawGatewayClient

from .activity_service import ActivityService
from .agent_service import AgentService
from .agent_status import AgentStatusSync
from .app_service import AppService
from .background import BackgroundRunner
from .capacity_monitor import CapacityMonitor
from .completion import CompletionIntake
from .dispatcher import Dispatcher
from .notifier import Notifier
from .planning import PlanningEngine
from .session_correlator import SessionCorrelator
from .spec_approval import SpecApproval
from .task_service import TaskService
from .task_writer import TaskWriter


@dataclass
class Services:
    tasks: TaskService
    agents: AgentService
    activities: ActivityService
    apps: AppService
    dispatcher: Dispatcher
    correlator: SessionCorrelator
    planning: PlanningEngine
    approval: SpecApproval
    capacity: CapacityMonitor
    completion: CompletionIntake
    agent_status: AgentStatusSync


def build_services(
    store_group: StoreGroup,
    notifier: Notifier,
    runner: BackgroundRunner,
    gateway: OpenClawGatewayClient,
    limits_client: LimitsClient,
    planning_poll_attempts: int | None = None,
    planning_poll_interval_s: float | None = None,
) -> Services:
    writer = TaskWriter(store_group)
    agent_status = AgentStatusSync(store_group, notifier)
    apps = AppService(store_group)
    correlator = SessionCorrelator(store_group, notifier, gateway)
    dispatcher = Dispatcher(store_group, notifier, gateway, correlator, writer, agent_status)

    return Services(
        tasks=TaskService(store_group, notifier, runner, writer, agent_status, dispatcher, apps),
        agents=AgentService(store_group, notifier, agent_status),
        activities=ActivityService(store_group, notifier),
        apps=apps,
        dispatcher=dispatcher,
        correlator=correlator,
        planning=PlanningEngine(
            store_group,
            notifier,
            gateway,
            runner,
            writer,
            dispatcher,
            poll_attempts=planning_poll_attempts,
            poll_interval_s=planning_poll_interval_s,
        ),
        approval=SpecApproval(store_group, notifier, writer),
        capacity=CapacityMonitor(store_group, notifier, limits_client, writer, agent_status),
        completion=CompletionIntake(store_group, notifier, writer, agent_status),
        agent_status=agent_status,
    )
