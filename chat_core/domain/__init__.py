"""领域层模型与协议。

包含：
- models: MessageContent / RequestContext / ResponseEnvelope / ExtractedResult 等数据结构。
- messages: MessageSink 与 ErrorReporter 协议。
- strategies: 请求/响应拦截器与结果提取器协议。
- exceptions: 业务异常类型定义。
"""
