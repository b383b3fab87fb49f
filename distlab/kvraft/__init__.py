"""Client side of a replicated key/value service."""