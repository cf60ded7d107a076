ENGINE_VERSION = "unbind-0.2.0"

__all__ = ["ENGINE_VERSION"]
