"""
Study Registration (studyreg)

Feasibility wizard and volunteer estimator for research study registration.
"""

__version__ = "0.1.0"

from studyreg.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
