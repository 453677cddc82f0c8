"""
govlens - Governance Proposal Lifecycle Package

Core imports are lazily loaded so that importing a submodule does not pull in
the web stack. For direct module access, import from submodules:

    from govlens.governance import DashboardService, reconcile_events
    from govlens.chain import JsonRpcClient
    from govlens.exceptions import UpstreamError
"""

__version__ = "1.0.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'DashboardService':
        from .governance.dashboard import DashboardService
        return DashboardService
    elif name == 'DashboardQuery':
        from .governance.dashboard import DashboardQuery
        return DashboardQuery
    elif name == 'app':
        from .api.main import app
        return app
    elif name == 'load_config':
        from .config.loader import load_config
        return load_config
    raise AttributeError(f"module 'govlens' has no attribute {name!r}")

__all__ = ['DashboardService', 'DashboardQuery', 'app', 'load_config', '__version__']
