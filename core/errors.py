"""Error taxonomy for the bridge"""


class BridgeError(Exception):
    """Base class for bridge errors"""


class ProtocolDecodeError(BridgeError):
    """Malformed control command or agent output line"""


class SpawnError(BridgeError):
    """Agent executable could not be started"""


class PipeError(BridgeError):
    """A standard pipe of the agent process is unavailable or broken"""


class StateError(BridgeError):
    """Command not valid for the current session state"""


class ConfigError(BridgeError):
    """Invalid bridge configuration"""
