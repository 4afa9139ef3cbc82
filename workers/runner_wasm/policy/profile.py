"""
Profile — the locked wasm32 freestanding toolchain profile.

Every flag the produced module depends on lives here so the command
builder in core/ holds no opinions.  Changing the target or the linker
contract is a profile change, not a code change.
"""
from dataclasses import dataclass, replace
from typing import List, Tuple


@dataclass(frozen=True)
class WasmProfile:
    """Describes the toolchain and the ABI the runner module is built for."""

    # Identity
    profile_id: str

    # Toolchain
    compiler: str
    target: str

    # Freestanding environment: no libc, system includes point at an empty stub dir
    stdlib_flags: Tuple[str, ...] = ()
    system_include_dir: str = "stubs"
    codegen_flags: Tuple[str, ...] = ()

    # Linker pass-through (module ABI)
    linker_flags: Tuple[str, ...] = ()

    @classmethod
    def v0(cls) -> "WasmProfile":
        """The locked v0 profile: wasm32-freestanding-clang-c."""
        return cls(
            profile_id="wasm32-freestanding-clang-c",
            compiler="clang",
            target="wasm32-unknown-unknown-wasm",
            stdlib_flags=("-nostdlib", "-nostdinc"),
            system_include_dir="stubs",
            # Stops clang rewriting calls into functions that don't exist, e.g. printf => puts.
            codegen_flags=("-fno-builtin",),
            linker_flags=(
                # Host imports are declared but never defined.
                "--allow-undefined",
                "--import-memory",
                "--export-dynamic",
                "--no-entry",
                "--strip-all",
            ),
        )

    def with_compiler(self, compiler: str) -> "WasmProfile":
        """Same profile, different compiler executable name."""
        return replace(self, compiler=compiler)

    def target_flags(self) -> List[str]:
        """The fixed freestanding block of the compiler command line."""
        flags = [f"--target={self.target}"]
        flags.extend(self.stdlib_flags)
        flags.append(f"-isystem{self.system_include_dir}")
        flags.extend(self.codegen_flags)
        flags.extend(f"-Wl,{flag}" for flag in self.linker_flags)
        return flags
