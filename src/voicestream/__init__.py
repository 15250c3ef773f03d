"""VoiceStream - live dictation over cloud and on-device streaming speech engines."""

__app_name__ = "VoiceStream"
__version__ = "0.3.0"
