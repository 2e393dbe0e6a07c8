"""
fundgov Package

Core imports are lazily loaded so importing a submodule does not pull in
the whole state machine. For direct module access, import from submodules:

    from fundgov.governance import BudgetGovernor, StaticWeightOracle
    from fundgov.config import load_config
    from fundgov.exceptions import GovernanceError
"""

__version__ = "1.0.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'BudgetGovernor':
        from .governance import BudgetGovernor
        return BudgetGovernor
    elif name == 'load_config':
        from .config import load_config
        return load_config
    elif name == 'GovernanceError':
        from .exceptions import GovernanceError
        return GovernanceError
    raise AttributeError(f"module 'fundgov' has no attribute {name!r}")

__all__ = ['BudgetGovernor', 'load_config', 'GovernanceError']
