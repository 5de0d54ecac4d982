"""Image comparison techniques: the global pixel diff and issue-region analysis."""
