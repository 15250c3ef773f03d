from .bridge import AudioChunkBridge

__all__ = ["AudioChunkBridge"]
