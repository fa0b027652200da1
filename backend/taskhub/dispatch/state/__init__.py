"""运行状态模块"""

from taskhub.dispatch.state.models import RunPhase, RunState

__all__ = [
    "RunPhase",
    "RunState",
]
