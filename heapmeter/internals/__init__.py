"""Internal helpers: error catalogue, version banner and declaration parser."""
