"""
Slot Permuter Version Information

This file contains the single source of truth for the version number.
All version references throughout the codebase should import from this file.
"""

# Version number (semantic versioning)
__version__ = "1.0.0"

# Display name for the CLI
__version_display__ = f"v{__version__}"
