"""FlowBit Relay - execution tracking and live streaming for external workflow engines."""

__version__ = "1.0.0"
