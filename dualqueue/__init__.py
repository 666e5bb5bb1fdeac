"""Worker-thread consumer/producer fed by a high- and a low-priority queue, with demos and benchmarks."""

__version__ = "1.0.0"
__all__ = ["core", "examples", "benchmark"]