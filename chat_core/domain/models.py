"""统一的请求、响应与消息数据模型。

本模块定义了请求调度层与本地模型层共享的标准数据结构：

- MessageContent: 一条可展示的消息（文本/HTML/文件）。
- RequestDetails / RequestContext: 一次请求在拦截前后的内容。
- ResponseEnvelope: 传输层结果 + 有效性标记 + 按 content-type 分类后的数据。
- ExtractedResult: 提取函数的标签化结果（Payload / PollingElsewhere / PollAgain / Malformed）。
- ConversationTurn: 用于给本地模型预置上下文的 (用户, 助手) 对话对。
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, NamedTuple, Optional, Union


# 与聊天组件中的 role 字段对应
USER_ROLE = "user"
AI_ROLE = "ai"


@dataclass
class MessageContent:
    """一条展示给用户的消息内容。

    - text / html: 文本或 HTML 内容，二者至少有一个。
    - files: 附带的文件描述（由上层 UI 解释）。
    - role: 消息角色，初始消息需要用它区分用户与助手。
    - overwrite: True 时覆盖最后一条消息，而不是新增一条。
    """

    text: Optional[str] = None
    html: Optional[str] = None
    files: Optional[List[Dict[str, Any]]] = None
    role: str = AI_ROLE
    overwrite: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "MessageContent":
        return cls(
            text=data.get("text"),
            html=data.get("html"),
            files=data.get("files"),
            role=data.get("role") or AI_ROLE,
            overwrite=bool(data.get("overwrite", False)),
        )


@dataclass
class RequestSettings:
    """服务端点设置：url / method / headers。"""

    url: str = ""
    method: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class RequestDetails:
    """传给请求拦截器的内容，拦截器可以改写 body 与 headers。"""

    body: Any
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class RequestContext:
    """一次具体的 HTTP 请求，每次调用都重新构造，不共享。"""

    url: str
    method: str
    headers: Dict[str, str]
    body: Any = None
    stringify_body: bool = True

    def encoded_body(self) -> Dict[str, Any]:
        """返回传给 httpx 的 body 参数。

        默认序列化为 JSON 文本；stringify_body=False 时原样发送
        str/bytes，映射类型作为 multipart 文件发送。
        """

        if self.body is None:
            return {}
        if self.stringify_body:
            return {"content": json.dumps(self.body, ensure_ascii=False)}
        if isinstance(self.body, (str, bytes)):
            return {"content": self.body}
        return {"files": self.body}


@dataclass
class ResponseEnvelope:
    """传输层响应。

    valid 只由 HTTP 状态码决定，classified 独立地按 content-type 解析，
    因此 valid=False 时仍然可以从 classified 中提取服务端错误信息。
    """

    status_code: int
    valid: bool
    classified: Any
    raw: Any = None


# ---- 提取结果（标签化） ----


@dataclass
class Payload:
    """提取成功，携带最终要展示的内容。"""

    content: MessageContent
    kind: Literal["payload"] = "payload"


@dataclass
class PollingElsewhere:
    """结果会由另一条请求链路送达，本次调度不再投递也不结束。"""

    kind: Literal["polling_elsewhere"] = "polling_elsewhere"


@dataclass
class PollAgain:
    """服务端要求 timeout_ms 毫秒后再次轮询。"""

    timeout_ms: float
    kind: Literal["poll_again"] = "poll_again"


@dataclass
class Malformed:
    """提取函数返回了非对象结果。"""

    raw: Any
    kind: Literal["malformed"] = "malformed"


ExtractedResult = Union[Payload, PollingElsewhere, PollAgain, Malformed]


def to_extracted_result(value: Any) -> ExtractedResult:
    """把提取函数的返回值规范化为 ExtractedResult。

    提取函数既可以直接返回标签化结果，也可以返回普通字典：
    - 含 pollingInAnotherRequest → PollingElsewhere
    - 含 timeoutMS → PollAgain
    - 其他字典 → Payload
    - 非字典（包括 None）→ Malformed
    """

    if isinstance(value, (Payload, PollingElsewhere, PollAgain, Malformed)):
        return value
    if isinstance(value, MessageContent):
        return Payload(content=value)
    if not isinstance(value, Mapping):
        return Malformed(raw=value)
    if value.get("pollingInAnotherRequest") or value.get("polling_in_another_request"):
        return PollingElsewhere()
    timeout = value.get("timeoutMS", value.get("timeout_ms"))
    if timeout:
        return PollAgain(timeout_ms=float(timeout))
    return Payload(content=MessageContent.from_mapping(value))


class ConversationTurn(NamedTuple):
    """(用户文本, 助手文本) 对话对。"""

    user_text: str
    ai_text: str
