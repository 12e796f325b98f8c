"""Z3-backed term capability used by the CHC layer."""
