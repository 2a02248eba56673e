"""Share generation, LowMC, shared tables and query descriptions, oblivious permutations and switching networks for three parties."""

__version__ = "0.1.0"