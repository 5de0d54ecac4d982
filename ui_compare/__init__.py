"""ui-compare: pixel diff of a live page against its Figma design frame."""

__version__ = '0.1.0'
