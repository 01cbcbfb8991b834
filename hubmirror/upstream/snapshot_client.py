"""Registry client backed by a snapshot file exported from the upstream registry."""

import os
from typing import Any, Dict, List, Optional

import yaml


class SnapshotRegistryClient:
    """Serves repositories, images and tags from a YAML or JSON snapshot.

    Expected layout::

        repositories:
          linuxserver:
            - name: nginx
              namespace: linuxserver
              pullCount: 10
              tags:
                - name: latest
                  fullSize: 100
    """

    def __init__(self, snapshot_path: str):
        self.snapshot_path = snapshot_path
        self._snapshot: Optional[Dict[str, Any]] = None

    @property
    def snapshot(self) -> Dict[str, Any]:
        """Load and cache the snapshot."""
        if self._snapshot is None:
            if not os.path.exists(self.snapshot_path):
                raise FileNotFoundError(f"Upstream snapshot not found: {self.snapshot_path}")

            with open(self.snapshot_path, 'r') as f:
                data = yaml.safe_load(f) or {}

            if not isinstance(data.get('repositories', {}), dict):
                raise ValueError(f"Malformed upstream snapshot: {self.snapshot_path}")
            self._snapshot = data

        return self._snapshot

    def fetch_all_repositories(self) -> List[str]:
        return list(self.snapshot.get('repositories', {}).keys())

    def fetch_images_from_repository(self, repository_name: str) -> List[Dict[str, Any]]:
        images = self.snapshot.get('repositories', {}).get(repository_name) or []
        return [
            {k: v for k, v in image.items() if k != 'tags'}
            for image in images
        ]

    def fetch_all_tags_for_image(self, repository_name: str, image_name: str) -> List[Dict[str, Any]]:
        for image in self.snapshot.get('repositories', {}).get(repository_name) or []:
            if image.get('name') == image_name:
                return list(image.get('tags') or [])
        return []
