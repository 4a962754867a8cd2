"""
Health check utilities for the application.
"""

from typing import Any, Dict, Optional

from .config import config
from .graph_store import GraphStore, create_graph_store
from .logging_config import get_logger

logger = get_logger(__name__)


def check_health(store: Optional[GraphStore] = None) -> bool:
    """Check the health of all system components.

    Returns:
        True if all components are healthy, False otherwise
    """
    try:
        health_status = get_health_status(store)

        # Check if all components are healthy
        all_healthy = all(status.get('healthy', False) for status in health_status.values())

        if all_healthy:
            logger.info('All system components are healthy')
        else:
            logger.warning('Some system components are unhealthy')

        return all_healthy

    except Exception as e:
        logger.error(f'Health check failed: {e}')
        return False


def get_health_status(store: Optional[GraphStore] = None) -> Dict[str, Any]:
    """Get detailed health status of all components.

    Args:
        store: Store to probe (built from config if None)

    Returns:
        Dictionary with health status of each component
    """
    health_status = {}

    backend = config.store.backend
    try:
        store = store or create_graph_store(config.store)
        health_status['graph_store'] = {'healthy': store.health_check(), 'service': 'Graph store', 'backend': backend}
    except Exception as e:
        health_status['graph_store'] = {'healthy': False, 'service': 'Graph store', 'backend': backend, 'error': str(e)}

    return health_status


def get_system_info(store: Optional[GraphStore] = None) -> Dict[str, Any]:
    """Get system information and configuration.

    Returns:
        Dictionary with system information
    """
    return {
        'service_name': 'GraphMemory',
        'version': '1.0.0',
        'configuration': {
            'graph_backend': config.store.backend,
            'store_timeout_ms': config.store.timeout_ms,
            'delete_policy': config.memory.delete_policy,
            'search_weights': vars(config.search.weights),
        },
        'health_status': get_health_status(store)
    }
