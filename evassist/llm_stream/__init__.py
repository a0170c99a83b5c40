"""Model-facing side of a turn: context, providers, tools and streaming."""
