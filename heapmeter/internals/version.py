from __future__ import annotations
import sys, platform, datetime

from heapmeter import __version__ as app_ver, __dev__ as is_dev

def _ensure_utf8_stdout() -> None:
    reconfigure = getattr(sys.stdout, "reconfigure", None)
    if reconfigure is not None:
        reconfigure(encoding="utf-8")

def _get_versions() -> dict[str, str]:
    import llvmlite
    from llvmlite import binding as llvm

    llvmlite_ver = getattr(llvmlite, "__version__", "unknown")
    llvm_lib_ver = ".".join(map(str, (getattr(llvm, "llvm_version_info", None) or ()))) or "unknown"

    return {
        "app": app_ver,
        "python": platform.python_version(),
        "implementation": sys.implementation.name,
        "llvmlite": llvmlite_ver,
        "llvm": llvm_lib_ver,
    }

def print_banner() -> None:
    _ensure_utf8_stdout()
    v = _get_versions()
    today = datetime.date.today().isoformat()

    # ANSI styling only for an interactive terminal
    use_ansi = sys.stdout.isatty()

    if use_ansi:
        BOLD, DIM, RESET = "\x1b[1m", "\x1b[2m", "\x1b[0m"
    else:
        BOLD, DIM, RESET = "", "", ""

    dev_marker = " (dev)" if is_dev else ""
    print(
        f"{BOLD}heapmeter{RESET} • {v['app']}{dev_marker}\n"
        f"{DIM}Python {v['python']} ({v['implementation']}) • llvmlite {v['llvmlite']} • LLVM {v['llvm']} • {today}{RESET}\n"
    )
