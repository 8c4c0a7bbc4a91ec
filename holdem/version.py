"""
Version information for the hold'em table service.
Bumped by hand on releases.
"""

VERSION = "0.4.0"
BUILD_DATE = "dev"
COMMIT_HASH = "unknown"

# Server information
def get_version_info():
    """Get formatted version information"""
    return {
        'version': VERSION,
        'build_date': BUILD_DATE,
        'commit_hash': COMMIT_HASH
    }
