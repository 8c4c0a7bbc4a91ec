"""
Server information for the status endpoint: configuration plus version details.
"""

from typing import Any, Dict, Optional

from .config import Config
from .version import get_version_info


def get_server_info(config: Optional[Config] = None) -> Dict[str, Any]:
    """Get complete server information including version and environment details"""
    config = config or Config.from_env()
    version_info = get_version_info()

    return {
        'server_env': config.server_env,
        'server_host': config.host,
        'server_port': config.port,
        'server_name': config.server_name,
        'api_url': f"http://{config.host}:{config.port}/api",
        'default_blinds': f"${config.small_blind}/${config.big_blind}",
        **version_info
    }
