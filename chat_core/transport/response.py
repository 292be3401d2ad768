"""按 content-type 把 HTTP 响应规范化为普通 Python 对象。"""

import json
from typing import Any, Dict, List


def is_valid_status(status_code: int) -> bool:
    return 200 <= status_code < 300


def _content_type(resp: Any) -> str:
    headers = getattr(resp, "headers", None) or {}
    return (headers.get("content-type") or "").lower()


def parse_event_stream(text: str) -> List[Any]:
    """解析 text/event-stream 文本，返回每条 data 的内容。

    能解析为 JSON 的 data 返回解析后的对象，否则返回原始字符串；[DONE] 被忽略。
    """

    events: List[Any] = []
    for line in text.splitlines():
        if not line:
            continue
        data_str = line
        if data_str.startswith("data:"):
            data_str = data_str[5:].strip()
        elif data_str.startswith(("event:", "id:", "retry:", ":")):
            continue
        else:
            data_str = data_str.strip()
        if not data_str or data_str == "[DONE]":
            continue
        try:
            events.append(json.loads(data_str))
        except json.JSONDecodeError:
            events.append(data_str)
    return events


def classify_response(resp: Any) -> Any:
    content_type = _content_type(resp)
    if "application/json" in content_type:
        return resp.json()
    if "text/event-stream" in content_type:
        return {"events": parse_event_stream(resp.text)}
    if content_type.startswith("text/"):
        return {"text": resp.text}
    return {"blob": resp.content}


def parse_json(resp: Any) -> Dict[str, Any]:
    return resp.json()
