"""
PSS Provider Package

Partial Set Security core for a provider chain: Top-N selection, opt-in and
opt-out, and the end-block ratchet.

Core imports are lazily loaded to keep `import pss` cheap.
For direct module access, import from submodules:

    from pss.provider import get_top_n_validators, opt_in, opt_out
    from pss.config import load_config
    from pss.exceptions import ValidatorInTopNError
"""

__version__ = "0.1.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name in ('ProviderState', 'ProtocolState', 'OptResult'):
        from .provider import types
        return getattr(types, name)
    elif name == 'load_config':
        from .config import load_config
        return load_config
    elif name == 'main':
        from .cli import main
        return main
    raise AttributeError(f"module 'pss' has no attribute {name!r}")

__all__ = ['ProviderState', 'ProtocolState', 'OptResult', 'load_config', 'main']
