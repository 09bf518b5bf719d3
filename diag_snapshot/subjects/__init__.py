"""Subject tools: the programs whose diagnostics are snapshotted."""
