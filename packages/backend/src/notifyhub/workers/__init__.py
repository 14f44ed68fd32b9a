"""Workers — the consumer side of the dispatch pipeline."""
