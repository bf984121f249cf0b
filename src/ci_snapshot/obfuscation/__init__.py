"""Obfuscation transforms applied to every resource before it is persisted."""

from ci_snapshot.obfuscation.obfuscator import (
    LogObfuscator,
    obfuscate_build,
    obfuscate_log,
    obfuscate_pipeline,
    obfuscate_release,
)

__all__ = [
    "LogObfuscator",
    "obfuscate_build",
    "obfuscate_log",
    "obfuscate_pipeline",
    "obfuscate_release",
]
