class CareTalkError(Exception):
    pass


class ConfigError(CareTalkError):
    """Required startup configuration is missing or invalid."""


class StreamInitError(CareTalkError):
    """The recognizer refused to open a streaming session."""


class WriteError(CareTalkError):
    """Audio could not be written to the recognition stream (closed or broken)."""


class TranslationError(CareTalkError):
    pass


class SynthesisError(CareTalkError):
    pass


class TransportError(CareTalkError):
    """An inbound control frame could not be parsed."""
