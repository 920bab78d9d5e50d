"""多会话聊天服务"""

__version__ = "1.0.0"
