"""Configuration management for hubmirror."""

import os
import yaml
from typing import Dict, Any, Optional


class Config:
    """Configuration manager for hubmirror."""
    
    def __init__(self):
        self.config_path = os.environ.get('HUBMIRROR_CONFIG')
        self.s3_access_key_id = os.environ.get('S3_ACCESS_KEY_ID')
        self.s3_secret_access_key = os.environ.get('S3_SECRET_ACCESS_KEY')
        self.s3_endpoint_url = os.environ.get('S3_ENDPOINT_URL')
        
        self._mirror_config = None
        self._validate_environment()
    
    def _validate_environment(self):
        """Validate required environment variables."""
        required_vars = ['HUBMIRROR_CONFIG']
        
        missing_vars = [var for var in required_vars if not os.environ.get(var)]
        if missing_vars:
            raise ValueError(f"Missing required environment variables: {', '.join(missing_vars)}")
    
    @property
    def mirror_config(self) -> Dict[str, Any]:
        """Load and cache the hubmirror YAML configuration."""
        if self._mirror_config is None:
            if not os.path.exists(self.config_path):
                raise FileNotFoundError(f"hubmirror config file not found: {self.config_path}")
            
            with open(self.config_path, 'r') as f:
                self._mirror_config = yaml.safe_load(f) or {}
        
        return self._mirror_config
    
    @property
    def database_uri(self) -> str:
        """Get database URI from config."""
        db_config = self.mirror_config.get('DB_URI')
        if not db_config:
            raise ValueError("DB_URI not found in hubmirror configuration")
        return db_config
    
    @property
    def logo_storage_config(self) -> Optional[Dict[str, Any]]:
        """Get logo storage settings, or None when logos are not stored."""
        storage_config = self.mirror_config.get('LOGO_STORAGE')
        if not storage_config:
            return None
        
        missing_vars = [
            var for var in ('S3_ACCESS_KEY_ID', 'S3_SECRET_ACCESS_KEY', 'S3_ENDPOINT_URL')
            if not os.environ.get(var)
        ]
        if missing_vars:
            raise ValueError(f"LOGO_STORAGE requires environment variables: {', '.join(missing_vars)}")
        if not storage_config.get('bucket'):
            raise ValueError("LOGO_STORAGE.bucket not found in hubmirror configuration")
        return storage_config
    
    @property
    def sync_workers(self) -> int:
        return int(self.mirror_config.get('SYNC', {}).get('workers', 5))
    
    @property
    def default_branch(self) -> str:
        return self.mirror_config.get('SYNC', {}).get('default_branch', 'latest')
