"""
A small state machine that runs a graph of commands over a shared context.

Every command is registered in a #CommandGraph under a name, along with the names of the commands to continue with
when it succeeds or is unsuccessful. The #CommandService starts at the graph's start command and follows these
transitions based on the #DeploymentState that the command leaves in the context. A command that puts the context
into #DeploymentState.HAS_ERROR stops the run immediately, regardless of the transitions registered for it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Generic, Iterator, TypeVar

from loguru import logger

if TYPE_CHECKING:
    from kubedeploy.job import JobContext

T = TypeVar("T", bound="BaseCommandContext")


class DeploymentState(str, Enum):
    UNKNOWN = "unknown"
    RUNNING = "running"
    SUCCESS = "success"
    UNSUCCESSFUL = "unsuccessful"
    HAS_ERROR = "has_error"
    DONE = "done"


class Command(ABC, Generic[T]):
    """
    A step of a pipeline. Commands hold no state of their own, they read from and write to the context that they
    are executed with. Failures must be reported through #BaseCommandContext.log_error() rather than raised.
    """

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def execute(self, context: T) -> None: ...


class NextCommandAware(ABC):
    """
    Names the commands that run after a command, depending on whether it succeeded. A command that implements this
    interface decides its successors itself, in place of the ones registered for it in the #CommandGraph.
    """

    @abstractmethod
    def get_success_command(self) -> str | None: ...

    @abstractmethod
    def get_fail_command(self) -> str | None: ...


@dataclass(frozen=True)
class TransitionInfo(NextCommandAware):
    """
    Binds a command to the names of the commands that follow it.
    """

    command: Command
    success: str | None = None
    fail: str | None = None

    def get_success_command(self) -> str | None:
        return self.success

    def get_fail_command(self) -> str | None:
        return self.fail

    def successor(self, state: DeploymentState) -> str | None:
        source = self.command if isinstance(self.command, NextCommandAware) else self
        if state == DeploymentState.SUCCESS:
            return source.get_success_command()
        if state == DeploymentState.UNSUCCESSFUL:
            return source.get_fail_command()
        return None


@dataclass(frozen=True)
class Transition:
    """
    The outcome of executing one command: either continue with the command named *next*, or halt with the overall
    *success* of the run.
    """

    next: str | None
    success: bool

    @property
    def halts(self) -> bool:
        return self.next is None


def resolve_transition(info: TransitionInfo, state: DeploymentState) -> Transition:
    if state == DeploymentState.HAS_ERROR:
        return Transition(None, False)
    if (successor := info.successor(state)) is not None:
        return Transition(successor, True)
    return Transition(None, True)


def command_name(command: "Command | type[Command] | str") -> str:
    if isinstance(command, str):
        return command
    if isinstance(command, type):
        return command.__name__
    return command.name


class CommandGraph:
    """
    The commands of a pipeline and the transitions between them. The first command that is added becomes the start
    command unless another one is set explicitly.
    """

    def __init__(self) -> None:
        self._transitions: dict[str, TransitionInfo] = {}
        self.start: str | None = None

    def __len__(self) -> int:
        return len(self._transitions)

    def __contains__(self, name: object) -> bool:
        return name in self._transitions

    def __iter__(self) -> Iterator[str]:
        return iter(self._transitions)

    def add(
        self,
        command: Command,
        success: "Command | type[Command] | str | None" = None,
        fail: "Command | type[Command] | str | None" = None,
        *,
        start: bool = False,
    ) -> "CommandGraph":
        name = command.name
        if name in self._transitions:
            raise ValueError(f"Command '{name}' is already registered")
        self._transitions[name] = TransitionInfo(
            command,
            command_name(success) if success is not None else None,
            command_name(fail) if fail is not None else None,
        )
        if start or self.start is None:
            self.start = name
        return self

    def get(self, name: str) -> TransitionInfo | None:
        return self._transitions.get(name)

    def find_cycle(self) -> list[str] | None:
        """
        Return the names of the commands that form a cycle in the graph, or `None` if the graph has no cycle.
        """

        visiting: list[str] = []
        done: set[str] = set()

        def visit(name: str) -> list[str] | None:
            if name in visiting:
                return visiting[visiting.index(name) :] + [name]
            if name in done or name not in self._transitions:
                return None
            visiting.append(name)
            info = self._transitions[name]
            for successor in (info.successor(DeploymentState.SUCCESS), info.successor(DeploymentState.UNSUCCESSFUL)):
                if successor is not None and (cycle := visit(successor)):
                    return cycle
            visiting.pop()
            done.add(name)
            return None

        for name in self._transitions:
            if cycle := visit(name):
                return cycle
        return None


class CommandService:
    """
    Runs the commands of a #CommandGraph.

    Graphs with cycles are rejected unless *allow_cycles* is set, in which case a run that executes more than
    *max_steps* commands fails.
    """

    def __init__(self, graph: CommandGraph, *, allow_cycles: bool = False, max_steps: int = 1000) -> None:
        if not allow_cycles and (cycle := graph.find_cycle()):
            raise ValueError(f"Command graph contains a cycle: {' -> '.join(cycle)}")
        self.graph = graph
        self.max_steps = max_steps

    def execute_commands(self, context: "BaseCommandContext") -> bool:
        """
        Run the graph against *context*. Returns `True` if the run completed without error.
        """

        name = self.graph.start
        if len(self.graph) == 0 or name is None:
            logger.error("No commands to execute")
            return False

        for _ in range(self.max_steps):
            info = self.graph.get(name)
            if info is None:
                # The run ends with the last command that was executed.
                logger.warning("Command '{}' is not registered, stopping", name)
                return True

            logger.debug("Executing command '{}'", name)
            context.state = DeploymentState.RUNNING
            info.command.execute(context)
            transition = resolve_transition(info, context.state)
            logger.debug("Command '{}' finished with state {}", name, context.state.name)

            if transition.next is None:
                return transition.success
            name = transition.next

        context.log_error(f"Exceeded the limit of {self.max_steps} command executions")
        return False


class BaseCommandContext:
    """
    The state that is shared by the commands of a run.
    """

    def __init__(self) -> None:
        self.state = DeploymentState.UNKNOWN
        self.last_error: str | None = None
        self.job: "JobContext | None" = None
        self.service: CommandService | None = None

    @property
    def has_error(self) -> bool:
        return self.state == DeploymentState.HAS_ERROR

    def configure(self, job: "JobContext", service: CommandService) -> None:
        self.job = job
        self.service = service

    def execute_commands(self) -> bool:
        if self.service is None:
            raise RuntimeError(f"{type(self).__name__} is not configured")
        return self.service.execute_commands(self)

    def log_status(self, message: str) -> None:
        logger.info("{}", message)

    def log_error(self, error: str | BaseException, prefix: str | None = None) -> None:
        """
        Log an error and put the context into #DeploymentState.HAS_ERROR.
        """

        if isinstance(error, BaseException):
            message = str(error) or type(error).__name__
            logger.opt(exception=error).debug("{} details", type(error).__name__)
        else:
            message = error
        if prefix:
            message = f"{prefix}{message}"
        logger.error("{}", message)
        self.last_error = message
        self.state = DeploymentState.HAS_ERROR
