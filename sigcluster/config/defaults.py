# sigcluster/config/defaults.py
"""Default configuration values"""

from pathlib import Path

# Project path
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
LOGS_DIR = PROJECT_ROOT / 'logs'

PATHS = {
    'project_root': str(PROJECT_ROOT),
    'logs_dir': str(LOGS_DIR),
}

# K-means defaults; these reproduce the plain Lloyd routine exactly
CLUSTERING = {
    'n_clusters': 8,
    'tol': 1e-4,
    'tolerance_mode': 'absolute',  # absolute, relative
    'max_iter': None,              # None = run until the tolerance is met
    'empty_cluster': 'keep',       # keep (centroid at origin), reseed
    'warm_start': True,
    'chunk_size': 10000,           # rows per distance block
    'check_memory': True,
    'memory_headroom': 0.8,        # fraction of available memory usable for scratch
}

LOGGING = {
    'level': 'INFO',
    'file_name': 'sigcluster.log',
    'max_file_size': 10 * 1024 * 1024,  # 10MB
    'backup_count': 5,
}
