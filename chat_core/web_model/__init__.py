"""本地（进程内）推理模型集成层。

- registry: 进程级唯一模型会话登记表。
- capability: 运行时接口与查找。
- config: 组件级模型配置与 app config 合并。
- cache: 模型缓存清理。
- history: 从初始消息构建对话上下文。
- controller: 模型生命周期控制器。
"""

from chat_core.web_model.controller import ModelLifecycleController, ModelState
from chat_core.web_model.registry import MODEL_REGISTRY, ModelSession, ModelSessionRegistry

__all__ = [
    "MODEL_REGISTRY",
    "ModelLifecycleController",
    "ModelSession",
    "ModelSessionRegistry",
    "ModelState",
]
