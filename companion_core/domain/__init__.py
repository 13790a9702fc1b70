"""领域层模型与协议。

包含：
- models: 统一的 CompletionMessage / CompletionRequest / CompletionResult 模型。
- conversation: 对话轮次 ChatMessage、Role、ConversationLevel 及 MessageStore 抽象。
- collaborators: 截图、提示词等外部协作者协议与时钟抽象。
- exceptions: 业务异常类型定义。
"""
