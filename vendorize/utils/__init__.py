"""通用工具: 日志、网络、YAML/JSON 读写、子进程"""
