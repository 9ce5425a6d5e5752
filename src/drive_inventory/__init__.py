"""drive-inventory: resumable Google Drive metadata crawler and analyzer."""

__version__ = "0.1.0"
