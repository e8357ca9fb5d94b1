"""releasemirror - mirror GitHub release assets into a local directory tree."""
