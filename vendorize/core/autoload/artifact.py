"""映射持久化

映射以 JSON 文档保存在存储目录 (mapping.json)，路径一律相对于该文件所在目录，
读取时再还原为绝对路径。另生成一个 PHP 加载器 (autoload.php)，
在 PHP 进程启动时读取 mapping.json 注册自动加载。
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from vendorize.core.autoload.generator import MappingTable, PrefixRule
from vendorize.core.exceptions import ValidationError
from vendorize.utils.file_io import atomic_write, load_json, save_json

logger = logging.getLogger(__name__)

MAPPING_FORMAT = 1


def _to_relative(path: str, base: Path) -> str:
    return Path(os.path.relpath(path, base)).as_posix()


def _to_absolute(path: str, base: Path) -> str:
    return os.path.normpath(os.path.join(base, path))


def save_mapping(table: MappingTable, path: Path) -> None:
    """写出 mapping.json（原子写入）"""
    base = path.parent.absolute()
    data = {
        "format": MAPPING_FORMAT,
        "prefix_rules": [
            {
                "prefix": r.prefix,
                "kind": r.kind,
                "dirs": [_to_relative(d, base) for d in r.dirs],
            }
            for r in table.prefix_rules
        ],
        "class_index": {
            name: _to_relative(f, base) for name, f in table.class_index.items()
        },
        "always_load": [_to_relative(f, base) for f in table.always_load],
    }
    save_json(path, data)
    logger.info("映射已写入: %s", path)


def load_mapping(path: Path) -> MappingTable | None:
    """读取 mapping.json，文件不存在返回 None

    Raises:
        ValidationError: 内容不是合法 JSON 或格式版本不支持
    """
    if not path.exists():
        return None
    try:
        data = load_json(path)
    except (json.JSONDecodeError, ValueError) as e:
        raise ValidationError(f"映射文件无法解析: {path} ({e})") from e

    fmt = data.get("format")
    if fmt != MAPPING_FORMAT:
        raise ValidationError(f"不支持的映射格式版本: {fmt!r} ({path})")

    base = path.parent.absolute()
    table = MappingTable.from_dict(data)
    return MappingTable(
        prefix_rules=[
            PrefixRule(r.prefix, r.kind, [_to_absolute(d, base) for d in r.dirs])
            for r in table.prefix_rules
        ],
        class_index={n: _to_absolute(f, base) for n, f in table.class_index.items()},
        always_load=[_to_absolute(f, base) for f in table.always_load],
    )


_LOADER_TEMPLATE = r"""<?php
// Generated by vendorize. Do not edit.

(function () {
    $base = __DIR__ . '/';
    $map = json_decode(file_get_contents($base . '%(mapping)s'), true);
    if (!is_array($map)) {
        throw new RuntimeException('vendorize: cannot read %(mapping)s');
    }

    spl_autoload_register(function ($class) use ($base, $map) {
        $class = ltrim($class, '\\');
        if (isset($map['class_index'][$class])) {
            require $base . $map['class_index'][$class];
            return;
        }
        foreach ($map['prefix_rules'] as $rule) {
            $prefix = $rule['prefix'];
            if ($prefix !== '' && strpos($class, $prefix) !== 0) {
                continue;
            }
            if ($rule['kind'] === 'psr-4') {
                $rel = strtr(substr($class, strlen($prefix)), '\\', '/') . '.php';
            } else {
                $rel = strtr($class, array('\\' => '/', '_' => '/')) . '.php';
            }
            foreach ($rule['dirs'] as $dir) {
                $file = $base . $dir . '/' . $rel;
                if (is_file($file)) {
                    require $file;
                    return;
                }
            }
        }
    });

    foreach ($map['always_load'] as $file) {
        require_once $base . $file;
    }
})();
"""


def write_loader(path: Path, mapping_name: str) -> None:
    """生成 PHP 加载器，读取同目录下的 mapping_name"""
    atomic_write(path, _LOADER_TEMPLATE % {"mapping": mapping_name})
    logger.info("加载器已写入: %s", path)
