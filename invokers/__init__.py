"""Request orchestration: async dispatch, batching and the per-lane coordinator."""
