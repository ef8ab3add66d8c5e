from dropshare.core import SharingCore, build_core

__all__ = ["SharingCore", "build_core"]
