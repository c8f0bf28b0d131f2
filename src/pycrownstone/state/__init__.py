"""State/store layer.

The raw mirror, its derived fast-lookup projection and the presence
store.  Each store has exactly one writer; readers always see a complete
generation because every write swaps in a new immutable snapshot.
"""
