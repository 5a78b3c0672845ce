"""
Plate Sync

Reads vehicle license plates from repair photos with Gemini Vision and
replicates the photos to a Google Drive folder named after the plate.
"""

__version__ = "1.0.0"
