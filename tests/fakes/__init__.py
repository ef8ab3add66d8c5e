from tests.fakes.flaky_store import FlakyStore

__all__ = ["FlakyStore"]
