"""
Flora Vision

植物识别 / 健康诊断 / 养护指南：
- ai: 请求响应结构校验、data URI 编码、诊断服务客户端
- vision: 摄像头资源管理
- acquisition: 图片获取到诊断结果的状态机
"""

__version__ = "0.1.0"
