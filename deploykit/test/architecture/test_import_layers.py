from __future__ import annotations

from ._gate import require_arch_checks_enabled
from ._utils import iter_source_files, matches_prefix, package_root, parse_imports

# layer -> packages it must never import
FORBIDDEN = {
    "core": ("deploykit.platform", "deploykit.output", "deploykit.services", "deploykit.cli"),
    "platform": ("deploykit.output", "deploykit.services", "deploykit.cli"),
    "services": ("deploykit.cli",),
}


def test_layers_only_import_downwards() -> None:
    require_arch_checks_enabled()

    root = package_root()
    offenders: list[str] = []
    for layer, forbidden in FORBIDDEN.items():
        for file_path in iter_source_files(root / layer):
            rel = file_path.relative_to(root).as_posix()
            for item in parse_imports(file_path):
                if any(matches_prefix(item.module, prefix) for prefix in forbidden):
                    offenders.append(f"{rel}:{item.line}: forbidden import '{item.module}'")

    assert not offenders, "layer violations:\n" + "\n".join(offenders)


def test_rich_is_only_imported_by_console() -> None:
    require_arch_checks_enabled()

    root = package_root()
    offenders = [
        f"{file_path.relative_to(root).as_posix()}:{item.line}"
        for file_path in iter_source_files(root)
        for item in parse_imports(file_path)
        if matches_prefix(item.module, "rich")
        and file_path.relative_to(root).as_posix() != "output/console.py"
    ]

    assert not offenders, "direct rich imports:\n" + "\n".join(offenders)
