"""Feature builders: aggregation, growth/rank and geographic rollups."""
