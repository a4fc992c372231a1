from .arguments import build_arguments
from .handle import EngineHandle
from .supervisor import ProcessSupervisor

__all__ = ["EngineHandle", "ProcessSupervisor", "build_arguments"]
