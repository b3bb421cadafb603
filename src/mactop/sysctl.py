"""Low-level sysctl interface for macOS hardware identification.

Uses ctypes to call sysctlbyname() directly - no subprocess overhead.
libc is loaded lazily so importing this module on other platforms is harmless.
"""

import ctypes
from ctypes import byref, c_int, c_int64, c_size_t

_libc: ctypes.CDLL | None = None


def _get_libc() -> ctypes.CDLL:
    """Load libc and declare sysctlbyname().

    Raises:
        OSError: If libc or sysctlbyname() is unavailable (non-macOS).
    """
    global _libc
    if _libc is None:
        libc = ctypes.CDLL(None)
        try:
            fn = libc.sysctlbyname
        except AttributeError as e:
            raise OSError("sysctlbyname() not available on this platform") from e
        fn.argtypes = [
            ctypes.c_char_p,
            ctypes.c_void_p,
            ctypes.POINTER(c_size_t),
            ctypes.c_void_p,
            c_size_t,
        ]
        fn.restype = c_int
        _libc = libc
    return _libc


def sysctl_int(name: str) -> int | None:
    """Read an integer sysctl value by MIB name.

    Args:
        name: sysctl MIB name (e.g., "hw.perflevel0.logicalcpu")

    Returns:
        Integer value on success, None if sysctl doesn't exist or fails.

    Note:
        Uses c_int64 buffer which handles both 32-bit and 64-bit sysctls.
        The actual value size doesn't matter since sysctl only writes
        what it needs.
    """
    value = c_int64()
    size = c_size_t(ctypes.sizeof(value))
    result = _get_libc().sysctlbyname(name.encode(), byref(value), byref(size), None, 0)
    return value.value if result == 0 else None


def sysctl_str(name: str) -> str | None:
    """Read a string sysctl value by MIB name (e.g., "machdep.cpu.brand_string")."""
    libc = _get_libc()
    size = c_size_t(0)
    if libc.sysctlbyname(name.encode(), None, byref(size), None, 0) != 0:
        return None
    buf = ctypes.create_string_buffer(size.value)
    if libc.sysctlbyname(name.encode(), buf, byref(size), None, 0) != 0:
        return None
    return buf.value.decode(errors="replace").strip()
