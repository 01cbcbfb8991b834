"""Progress reporting utilities."""

import sys
from typing import Any, Dict
from tqdm import tqdm


class ProgressReporter:
    """Progress reporting for image sync runs."""
    
    def __init__(self, total: int, description: str = "Syncing images", unit: str = "image",
                 disable: bool = False):
        self.total = total
        self.description = description
        self.unit = unit
        self.disable = disable
        self.progress_bar = None
        self.updated = 0
        self.skipped = 0
        self.errors = 0
    
    def start(self):
        """Start progress reporting."""
        self.progress_bar = tqdm(
            total=self.total,
            desc=self.description,
            unit=self.unit,
            file=sys.stderr,
            disable=self.disable
        )
    
    def update(self, result: Dict[str, Any]):
        """Update progress with a sync result."""
        if result.get('skipped', False):
            self.skipped += 1
        elif result.get('success', False):
            self.updated += 1
        else:
            self.errors += 1
        
        if self.progress_bar:
            self.progress_bar.set_postfix({
                'updated': self.updated,
                'skipped': self.skipped,
                'errors': self.errors
            })
            self.progress_bar.update(1)
    
    def finish(self):
        """Finish progress reporting."""
        if self.progress_bar:
            self.progress_bar.close()
    
    def __enter__(self):
        self.start()
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finish()
