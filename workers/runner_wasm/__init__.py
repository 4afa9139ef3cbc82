"""
runner_wasm — freestanding WebAssembly runner builder

Assemble runner.c from the bundled fragments plus chunk data, then compile
it with clang to a wasm32 module that imports its memory and has no entry.
No search logic, no host loader, no toolchain installation.

Profile: wasm32-freestanding-clang-c
"""

__version__ = "0.1.0"
BUILDER_NAME = "runner_wasm"
BUILDER_VERSION = "v0"
PROFILE_ID = "wasm32-freestanding-clang-c"
SCHEMA_VERSION = "0.1"
