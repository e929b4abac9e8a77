"""vendorize - 轻量级 PHP 依赖包管理器"""

__version__ = "0.3.0"
