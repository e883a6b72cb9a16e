"""Models package for the sample warehouse."""
from backend.models.sample import (
    Category, Platform, Sample, DEFAULT_CATEGORY, DEFAULT_PLATFORM, generate_sample_id
)
from backend.models.store import SampleStore

__all__ = [
    'Category', 'Platform', 'Sample', 'SampleStore',
    'DEFAULT_CATEGORY', 'DEFAULT_PLATFORM', 'generate_sample_id'
]
