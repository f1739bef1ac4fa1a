"""prmend core: the per-comment fix pipeline and the poll loop around it."""
