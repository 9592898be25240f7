"""领域层模型与协议。

包含：
- models: ChatMessage / ModelDescriptor / ProviderKind / Purpose 等统一模型。
- preferences: 用户偏好存储（PreferenceStore）抽象。
- cancellation: 请求取消令牌。
- exceptions: 业务异常类型定义。
"""
