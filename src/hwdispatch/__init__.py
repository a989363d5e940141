"""
hwdispatch - hardware signing device dispatch layer

Lets a workflow engine drive a Trezor-class signing device without knowing
device-specific request or reply shapes.

Main Components:
- core.derivation_path: BIP32 path parsing and formatting
- core.coin_registry: static SLIP-44 coin metadata
- core.device_session: scoped device session lifecycle
- core.router: (resource, operation) dispatch to chain handlers
- core.results: uniform success/error envelopes
"""

__version__ = "0.1.0"

__all__ = []
