"""vendorize 核心层: 版本约束、依赖解析、安装与自动加载映射"""
