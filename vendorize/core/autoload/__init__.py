"""类映射生成与持久化"""

from vendorize.core.autoload.artifact import load_mapping, save_mapping, write_loader
from vendorize.core.autoload.generator import MappingGenerator, MappingTable, PrefixRule

__all__ = [
    "MappingGenerator",
    "MappingTable",
    "PrefixRule",
    "load_mapping",
    "save_mapping",
    "write_loader",
]
