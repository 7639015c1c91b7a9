"""Daily aggregation pipeline: records -> counters -> ranks -> scored stat rows."""
